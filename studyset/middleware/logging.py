"""Structured request logging.

One JSON line per request. Routers report their routing decisions through
response headers (``X-Format``, ``X-Title-Source``, ``X-Quiz-Attempts``,
``X-Error-Kind``) and those are copied into the line, so the log shows which
path an upload took without ever recording its content.
"""

import json
import logging
import sys
import time
from typing import Any, Awaitable, Callable, Dict

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

# Response header -> log field
ROUTING_HEADERS = {
    "X-Format": "format",
    "X-Title-Source": "title_source",
    "X-Quiz-Attempts": "quiz_attempts",
    "X-Error-Kind": "error_kind",
}


def configure_logging(level: int = logging.INFO) -> None:
    """Send application logs to stdout, request lines unprefixed."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        stream=sys.stdout,
    )


def get_request_id(request: Request) -> str:
    """Request ID set by ``RequestIDMiddleware`` ("unknown" outside a request)."""
    return getattr(request.state, "request_id", "unknown")


def request_fields(request: Request) -> Dict[str, Any]:
    return {
        "timestamp": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        "request_id": get_request_id(request),
        "method": request.method,
        "path": request.url.path,
        "user_ip": request.client.host if request.client else "unknown",
    }


def routing_fields(response: Response) -> Dict[str, str]:
    return {
        field: response.headers[header]
        for header, field in ROUTING_HEADERS.items()
        if header in response.headers
    }


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log method, path, status, latency, client IP and routing headers.

    Never logs API keys, request bodies, file contents or extracted text.
    """

    async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        fields = request_fields(request)
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as e:
            fields.update({
                "status_code": 500,
                "processing_time_ms": round((time.perf_counter() - started) * 1000, 2),
                "error": str(e),
                "error_type": type(e).__name__,
            })
            logger.error(json.dumps(fields), exc_info=True)
            raise

        fields["status_code"] = response.status_code
        fields["processing_time_ms"] = round((time.perf_counter() - started) * 1000, 2)
        fields.update(routing_fields(response))

        if response.status_code >= 500:
            logger.error(json.dumps(fields))
        else:
            logger.info(json.dumps(fields))

        return response
