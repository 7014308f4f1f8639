"""
Dashboard Authentication

Bearer JWT issued by the dashboard's identity provider. Report endpoints
depend on `require_user`; any missing, malformed or expired token aborts the
request with 401.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import structlog
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt

from retail_analytics.config import get_settings
from retail_analytics.exceptions import AuthenticationError

logger = structlog.get_logger(__name__)

# auto_error=False so a missing header raises AuthenticationError (401), not 403
bearer_scheme = HTTPBearer(auto_error=False)


def create_access_token(
    subject: str,
    expires_delta: Optional[timedelta] = None,
    claims: Optional[Dict[str, Any]] = None,
) -> str:
    """
    Sign an access token for a dashboard user.

    Args:
        subject: User identifier stored in `sub`
        expires_delta: Lifetime, defaults to JWT_EXPIRATION_HOURS
        claims: Extra claims to embed
    """
    security = get_settings().security
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(hours=security.jwt_expiration_hours)
    )
    payload = {**(claims or {}), "sub": subject, "exp": expire}
    return jwt.encode(
        payload,
        security.jwt_secret_key.get_secret_value(),
        algorithm=security.jwt_algorithm,
    )


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Verify a token and return its claims.

    Raises:
        AuthenticationError: Invalid signature, expired, or no subject
    """
    security = get_settings().security
    try:
        payload = jwt.decode(
            token,
            security.jwt_secret_key.get_secret_value(),
            algorithms=[security.jwt_algorithm],
        )
    except ExpiredSignatureError:
        raise AuthenticationError("Token has expired") from None
    except JWTError:
        raise AuthenticationError("Invalid token") from None

    if not payload.get("sub"):
        raise AuthenticationError("Invalid token", details={"reason": "missing subject"})
    return payload


async def require_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Dict[str, Any]:
    """Dependency returning the authenticated user's claims."""
    if credentials is None or not credentials.credentials:
        raise AuthenticationError()

    payload = decode_access_token(credentials.credentials)
    structlog.contextvars.bind_contextvars(user=payload["sub"])
    return payload
