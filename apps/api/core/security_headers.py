"""
Security Headers Middleware

Implements industry-standard security headers to protect against
common web vulnerabilities (XSS, clickjacking, MIME sniffing, etc.)
"""
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from core.config import settings


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Adds security headers to all responses.

    Headers added:
    - X-Content-Type-Options: Prevents MIME type sniffing
    - X-Frame-Options: Prevents clickjacking
    - Strict-Transport-Security: Forces HTTPS (production only)
    - Content-Security-Policy: API responses are data only
    - Referrer-Policy: Controls referrer information
    - Cache-Control: Intake conversations describe health symptoms, never cache them
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)

        # Prevent MIME type sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"

        # Prevent clickjacking - deny all framing
        response.headers["X-Frame-Options"] = "DENY"

        # Control referrer information
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        if request.url.path.startswith("/v1/"):
            response.headers["Cache-Control"] = "no-store"

        # Production-only headers
        if not settings.DEBUG:
            # Force HTTPS for 1 year, include subdomains
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains; preload"
            )
            # Swagger UI needs scripts; everything else is JSON
            if not request.url.path.startswith(("/docs", "/redoc")):
                response.headers["Content-Security-Policy"] = (
                    "default-src 'none'; frame-ancestors 'none';"
                )

        return response
