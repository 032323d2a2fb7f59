import logging
import secrets
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from . import config

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def verify_admin_token(token: Optional[str], expected: Optional[str]) -> bool:
    """Constant-time comparison of a bearer token against the configured admin token"""
    if not token or not expected:
        return False
    return secrets.compare_digest(token.encode(), expected.encode())


async def require_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> None:
    """
    Dependency guarding the reservation administration endpoints.

    Raises:
        HTTPException: 503 when no admin token is configured, 401 when the token is missing or wrong
    """
    if not config.ADMIN_API_TOKEN:
        logger.error("❌ Admin endpoint called but ADMIN_API_TOKEN is not configured")
        raise HTTPException(status_code=503, detail="Admin access is not configured")

    token = credentials.credentials if credentials else None
    if not verify_admin_token(token, config.ADMIN_API_TOKEN):
        logger.warning("⚠️ Rejected admin request with missing or invalid token")
        raise HTTPException(
            status_code=401,
            detail="Not authenticated. Please provide a valid Bearer token in the Authorization header.",
            headers={"WWW-Authenticate": "Bearer"},
        )
