"""
Response security headers for the booking API.

The API returns JSON with patient details, so responses are never cached, may
only be framed by the booking frontend, and load nothing except the Turnstile
challenge. HSTS is only sent in production.
"""

import logging
from typing import Callable, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from .config import ALLOWED_ORIGINS, ENVIRONMENT

logger = logging.getLogger(__name__)

TURNSTILE_ORIGIN = "https://challenges.cloudflare.com"


def get_csp_policy(frame_origins: Optional[list[str]] = None) -> str:
    ancestors = ["'self'"] + list(ALLOWED_ORIGINS if frame_origins is None else frame_origins)
    return "; ".join(
        [
            "default-src 'none'",
            f"frame-ancestors {' '.join(ancestors)}",
            f"script-src 'self' {TURNSTILE_ORIGIN}",
            f"frame-src {TURNSTILE_ORIGIN}",
            "img-src 'self' data:",
            "base-uri 'none'",
            "form-action 'self'",
        ]
    )


def build_security_headers(production: bool = ENVIRONMENT == "production") -> dict[str, str]:
    headers = {
        "X-Frame-Options": "SAMEORIGIN",
        "X-Content-Type-Options": "nosniff",
        "Referrer-Policy": "strict-origin-when-cross-origin",
        "Content-Security-Policy": get_csp_policy(),
        "Permissions-Policy": "camera=(), geolocation=(), microphone=(), payment=(), usb=()",
    }
    if production:
        headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains; preload"
    return headers


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds the security headers to every response outside exclude_paths"""

    def __init__(self, app, exclude_paths: Optional[list[str]] = None):
        super().__init__(app)
        self.exclude_paths = tuple(exclude_paths or ())
        self.headers = build_security_headers()

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        if self.exclude_paths and request.url.path.startswith(self.exclude_paths):
            return response

        response.headers.update(self.headers)
        response.headers.setdefault("Cache-Control", "no-store")
        return response
