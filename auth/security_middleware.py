"""
Security middleware for FastAPI:
- Security headers (CSP, X-Frame-Options, etc.)
- Request logging with extra attention to admin endpoints
"""

import logging
import time

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Add security headers to all responses.

    Headers added:
    - X-Frame-Options
    - X-Content-Type-Options
    - Content-Security-Policy
    - Referrer-Policy
    - Permissions-Policy
    """

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"

        # Landing page uses inline styles only
        csp = (
            "default-src 'self'; "
            "script-src 'self'; "
            "style-src 'self' 'unsafe-inline'; "
            "img-src 'self' data:; "
            "connect-src 'self'; "
            "frame-ancestors 'none'; "
            "base-uri 'self'; "
            "form-action 'self';"
        )
        response.headers["Content-Security-Policy"] = csp
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = (
            "geolocation=(), "
            "microphone=(), "
            "camera=(), "
            "payment=()"
        )

        # Session tokens and API keys must not be cached by intermediaries
        if request.url.path.startswith("/admin") or request.url.path in ("/create-user", "/checkapi"):
            response.headers["Cache-Control"] = "no-store"

        return response


class SecurityLoggingMiddleware(BaseHTTPMiddleware):
    """Log every request; admin endpoints are logged at WARNING"""

    async def dispatch(self, request: Request, call_next):
        client_ip = request.client.host if request.client else "unknown"
        started = time.perf_counter()

        response = await call_next(request)

        elapsed_ms = (time.perf_counter() - started) * 1000
        message = (
            f"{request.method} {request.url.path} -> {response.status_code} "
            f"({elapsed_ms:.1f} ms) from {client_ip}"
        )
        if request.url.path.startswith("/admin") and request.url.path not in ("/admin/login", "/admin/register"):
            logger.warning(f"Admin endpoint access: {message}")
        else:
            logger.info(message)

        return response
