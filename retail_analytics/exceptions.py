"""
Dashboard Exception Classes

Only AuthenticationError and InvalidReportRequest ever reach the client.
SourceFetchError is carried inside a SourceResult and degrades to empty data.
"""

from typing import Any, Dict, Optional


class DashboardError(Exception):
    """Base exception class for all dashboard exceptions"""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class AuthenticationError(DashboardError):
    """Caller is not authenticated against the dashboard"""

    status_code = 401

    def __init__(self, message: str = "User not authenticated", **kwargs):
        super().__init__(message, **kwargs)


class InvalidReportRequest(DashboardError):
    """Report parameters cannot be resolved into a period window"""

    status_code = 400


class SourceFetchError(DashboardError):
    """An external data source could not be read (network, auth, quota or timeout)"""

    def __init__(self, source: str, cause: BaseException):
        self.source = source
        self.cause = cause
        super().__init__(
            f"Failed to fetch {source}: {cause!r}",
            details={"source": source, "error_type": type(cause).__name__},
        )
