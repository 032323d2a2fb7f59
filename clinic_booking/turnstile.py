"""
Cloudflare Turnstile CAPTCHA verification
"""

import hashlib
import logging
from dataclasses import dataclass, field
from typing import Optional

import httpx

from .config import TURNSTILE_SECRET_KEY, TURNSTILE_TOKEN_TTL
from .rate_limiter import get_redis_client

logger = logging.getLogger(__name__)

SITEVERIFY_URL = "https://challenges.cloudflare.com/turnstile/v0/siteverify"

# Error code Cloudflare returns for a token that expired or was already redeemed
EXPIRED_ERROR_CODE = "timeout-or-duplicate"


@dataclass
class TurnstileResult:
    success: bool
    error_codes: list[str] = field(default_factory=list)

    @property
    def expired(self) -> bool:
        return EXPIRED_ERROR_CODE in self.error_codes


def _cache_key(token: str, ip: Optional[str]) -> str:
    return f"turnstile_verified:{hashlib.sha256(f'{token}:{ip}'.encode()).hexdigest()}"


async def verify_turnstile(
    token: str,
    ip: Optional[str] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> TurnstileResult:
    """
    Verify Cloudflare Turnstile token with Redis caching to prevent duplicate verification errors

    Args:
        token: Turnstile token from client
        ip: Client IP address (optional)
        transport: Optional httpx transport (used by tests)

    Returns:
        TurnstileResult with success flag and Cloudflare error codes
    """
    if not token:
        return TurnstileResult(success=False, error_codes=["missing-input-response"])

    if not TURNSTILE_SECRET_KEY:
        logger.warning("⚠️ TURNSTILE_SECRET_KEY not configured - skipping CAPTCHA verification")
        return TurnstileResult(success=True)  # Fail open if not configured

    cache_key = _cache_key(token, ip)

    redis_client = None
    try:
        redis_client = get_redis_client()
        if redis_client and redis_client.get(cache_key):
            logger.info(f"✅ Turnstile verification cached for IP: {ip}")
            return TurnstileResult(success=True)
    except Exception as redis_error:
        logger.warning(f"⚠️ Redis cache check failed: {redis_error}")

    try:
        async with httpx.AsyncClient(transport=transport) as client:
            response = await client.post(
                SITEVERIFY_URL,
                json={"secret": TURNSTILE_SECRET_KEY, "response": token, "remoteip": ip},
                timeout=10.0,
            )
            result = response.json()
    except Exception as e:
        logger.error(f"❌ Turnstile verification error: {str(e)}")
        # Fail open - allow request if verification service is down
        return TurnstileResult(success=True)

    success = result.get("success", False)
    error_codes = result.get("error-codes", [])

    if success:
        logger.info(f"✅ Turnstile verification successful for IP: {ip}")
        # Cache successful verification so the same token survives a retry within its lifetime
        try:
            if redis_client:
                redis_client.setex(cache_key, TURNSTILE_TOKEN_TTL, "verified")
        except Exception as redis_error:
            logger.warning(f"⚠️ Redis cache set failed: {redis_error}")
    else:
        logger.warning(f"❌ Turnstile verification failed for IP: {ip} - Errors: {error_codes}")

    return TurnstileResult(success=success, error_codes=error_codes)
