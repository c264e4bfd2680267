"""
Security middleware and startup checks.

Implements:
- Security response headers (CSP, framing, sniffing, referrer, permissions)
- Production configuration validation
"""
import os
import logging
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from app.core.config import Settings

logger = logging.getLogger(__name__)


# The API only serves JSON and downloads
DEFAULT_CSP = {
    "default-src": "'none'",
    "frame-ancestors": "'none'",
    "base-uri": "'none'",
    "form-action": "'none'",
}


def build_csp_header(csp_dict: dict) -> str:
    """Build CSP header string from dictionary."""
    return "; ".join(f"{key} {value}" for key, value in csp_dict.items())


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    def __init__(self, app, csp_overrides: dict = None):
        super().__init__(app)
        csp = DEFAULT_CSP.copy()
        if csp_overrides:
            csp.update(csp_overrides)
        self.csp_header = build_csp_header(csp)

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)

        response.headers["Content-Security-Policy"] = self.csp_header
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = (
            "accelerometer=(), camera=(), geolocation=(), "
            "gyroscope=(), magnetometer=(), microphone=(), "
            "payment=(), usb=()"
        )

        return response


def validate_production_security(settings: Settings) -> None:
    """
    Validate configuration for production.

    Raises RuntimeError if the settings cannot work with several workers.
    """
    env = os.getenv('ENVIRONMENT', 'development').lower()

    if env not in ('production', 'prod'):
        logger.info(f"Running in {env} mode - security validation skipped")
        return

    if settings.storage_backend != "redis":
        raise RuntimeError(
            "STORAGE_BACKEND=redis is required in production; "
            "the in-memory store is not shared between workers."
        )

    if any('localhost' in origin for origin in settings.allowed_origins_list):
        logger.warning(
            "ALLOWED_ORIGINS contains 'localhost' in production. "
            "Consider removing for security."
        )

    logger.info("Production security validation passed")
