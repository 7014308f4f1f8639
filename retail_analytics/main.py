"""
FastAPI Production Application

Main entry point for the Retail Marketing Dashboard API.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from retail_analytics.config import get_settings
from retail_analytics.config.logging import configure_logging
from retail_analytics.database.connection import close_database, init_database
from retail_analytics.exceptions import AuthenticationError, DashboardError, InvalidReportRequest
from retail_analytics.serving.api.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from retail_analytics.serving.api.schemas import ErrorResponse
from retail_analytics.serving.api.routes import (
    ads_router,
    analytics_router,
    appointments_router,
    dashboard_router,
    health_router,
    shopify_router,
)

settings = get_settings()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    configure_logging()

    logger.info("Starting Retail Dashboard API", environment=settings.app_env)

    # Reports degrade per source, so a database that is down at boot must not stop the API
    try:
        await init_database()
    except Exception as e:
        logger.warning("Database init failed", error=str(e))

    yield

    logger.info("Shutting down...")
    await close_database()


app = FastAPI(
    title="Retail Marketing Dashboard API",
    description="Sales, ad spend, appointments and web traffic reports for the ES and MX stores",
    version=settings.version,
    docs_url="/docs" if not settings.is_production else None,
    redoc_url="/redoc" if not settings.is_production else None,
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.security.cors_origins,
    allow_credentials=True,
    allow_methods=["GET"],
    allow_headers=["*"],
)
app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestLoggingMiddleware)


def error_response(status_code: int, error: str, details=None, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, details=details).model_dump(),
        headers=headers,
    )


@app.exception_handler(AuthenticationError)
async def authentication_error_handler(request: Request, exc: AuthenticationError) -> JSONResponse:
    logger.info("Request not authenticated", path=request.url.path, reason=exc.message)
    return error_response(exc.status_code, "Unauthorized", exc.message, headers={"WWW-Authenticate": "Bearer"})


@app.exception_handler(InvalidReportRequest)
async def invalid_request_handler(request: Request, exc: InvalidReportRequest) -> JSONResponse:
    return error_response(exc.status_code, exc.message, exc.details or None)


@app.exception_handler(DashboardError)
async def dashboard_error_handler(request: Request, exc: DashboardError) -> JSONResponse:
    logger.error("Report failed", path=request.url.path, error=exc.message, details=exc.details)
    return error_response(exc.status_code, "Failed to build report", exc.message)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error", path=request.url.path, error_type=type(exc).__name__)
    return error_response(500, "Failed to build report", str(exc) if settings.debug else None)


app.include_router(health_router, prefix="/api/v1", tags=["Health"])
app.include_router(dashboard_router, prefix="/api/v1/dashboard", tags=["Dashboard"])
app.include_router(shopify_router, prefix="/api/v1/shopify", tags=["Shopify"])
app.include_router(ads_router, prefix="/api/v1/ads", tags=["Meta Ads"])
app.include_router(analytics_router, prefix="/api/v1/analytics", tags=["Google Analytics"])
app.include_router(appointments_router, prefix="/api/v1/appointments", tags=["Acuity"])


@app.get("/api/v1/info")
async def api_info():
    """API information endpoint."""
    return {
        "name": "Retail Marketing Dashboard API",
        "version": settings.version,
        "environment": settings.app_env,
        "documentation": "/docs" if not settings.is_production else None,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
