"""
API Routes Module
"""
from .health import router as health_router
from .dashboard import router as dashboard_router
from .shopify import router as shopify_router
from .ads import router as ads_router
from .analytics import router as analytics_router
from .appointments import router as appointments_router

__all__ = [
    "health_router",
    "dashboard_router",
    "shopify_router",
    "ads_router",
    "analytics_router",
    "appointments_router",
]
