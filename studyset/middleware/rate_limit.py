"""Per-client rate limits for the endpoints that spawn LibreOffice or call Gemini.

Routes opt in with ``@limiter.limit(RATE_LIMITS[...])``; every route needs a
``request: Request`` parameter for slowapi to find the client.
"""

from typing import List

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from studyset.config import get_settings

DEFAULT_LIMITS = ["200/minute"]

RATE_LIMITS = {
    "convert": "10/minute",         # POST /api/convert, one LibreOffice process each
    "generate_name": "10/minute",   # POST /api/generate-name, one or two model calls
    "generate_quiz": "10/minute",   # POST /api/generate-quiz, up to three model calls
}


def _trusted_proxies() -> List[str]:
    raw = get_settings().trusted_proxies or ""
    return [ip.strip() for ip in raw.split(",") if ip.strip()]


def get_client_ip(request: Request) -> str:
    """
    Rate limit key for a request.

    X-Forwarded-For is honoured only when the direct peer is a configured
    trusted proxy; otherwise any client could pick its own bucket.

    Args:
        request: FastAPI request object

    Returns:
        Client IP address string
    """
    direct_ip: str = get_remote_address(request)

    if direct_ip not in _trusted_proxies():
        return direct_ip

    forwarded_for = request.headers.get("X-Forwarded-For")
    if not forwarded_for:
        return direct_ip
    return forwarded_for.split(",")[0].strip()


# In-memory storage, keyed by client IP
limiter = Limiter(key_func=get_client_ip, default_limits=DEFAULT_LIMITS)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """
    Answer 429 with Retry-After, X-RateLimit-Limit and X-RateLimit-Remaining.

    Args:
        request: FastAPI request object
        exc: RateLimitExceeded exception with limit details

    Returns:
        JSONResponse with status 429
    """
    retry_after = getattr(exc, "retry_after", 60)

    headers = {
        "Retry-After": str(retry_after),
        "X-RateLimit-Remaining": "0",
    }
    limit = getattr(exc, "detail", None)
    if limit:
        headers["X-RateLimit-Limit"] = str(limit)

    return JSONResponse(
        status_code=429,
        content={
            "detail": "Rate limit exceeded",
            "message": f"Too many requests. Please retry after {retry_after} seconds.",
            "retry_after": retry_after,
        },
        headers=headers,
    )


def get_limiter() -> Limiter:
    """Limiter shared by the app state and the route decorators."""
    return limiter
