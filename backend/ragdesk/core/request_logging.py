"""
Request logging middleware and root logger setup.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

logger = logging.getLogger("ragdesk.access")

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.headers.get("x-real-ip") or (request.client.host if request.client else "unknown")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every request with status and timing."""

    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        user_agent = (request.headers.get("user-agent") or "No User-Agent")[:100]

        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "%s %s - unhandled after %.1fms - IP: %s",
                request.method, request.url.path, (time.perf_counter() - start) * 1000, client_ip(request),
            )
            raise

        logger.info(
            "%s %s - %d (%.1fms) - IP: %s - UA: %s",
            request.method,
            request.url.path,
            response.status_code,
            (time.perf_counter() - start) * 1000,
            client_ip(request),
            user_agent,
        )
        return response
