"""
Report Data Ingestion Module
"""
from .sources import ReportDataSource, SourceResult

__all__ = [
    "ReportDataSource",
    "SourceResult",
]
