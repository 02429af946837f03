# ABOUTME: Logging middleware for request/response tracking
# ABOUTME: Logs method, path, status code and response time of every request

import logging
import time
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

logger = logging.getLogger("app.requests")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware to log one line per request.

    This middleware captures:
    - Response time in milliseconds
    - Actual response status code
    - Client address
    """

    async def dispatch(self, request: Request, call_next):
        start = time.time()
        response = await call_next(request)
        response_time_ms = int((time.time() - start) * 1000)

        logger.info(
            "%s %s -> %d (%d ms) from %s",
            request.method,
            request.url.path,
            response.status_code,
            response_time_ms,
            request.client.host if request.client else "-",
        )
        return response
