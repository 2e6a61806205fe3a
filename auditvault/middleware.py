"""
Request-level middleware for tracing and latency logging.

Provides:
- **Request ID injection**: every request/response carries an
  ``X-Request-ID`` header, and the ID is stamped on every log record written
  while the request is handled.
- **Request timing**: logs the wall-clock duration of every request and
  returns it in ``X-Process-Time``.
"""

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from auditvault.core.logging import request_id_var

logger = logging.getLogger(__name__)

# Reused when the client/gateway supplies one; generated otherwise.
REQUEST_ID_HEADER = "X-Request-ID"

SLOW_REQUEST_MS = 500


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Injects a unique request ID into every request/response cycle.

    - An incoming ``X-Request-ID`` is reused for end-to-end tracing;
      otherwise a UUID4 is generated.
    - The ID is stored on ``request.state.request_id`` and in
      ``request_id_var`` so the logging filter can attach it to records.
    - The ID is echoed back in the response header.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id
        token = request_id_var.set(request_id)
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


class RequestTimingMiddleware(BaseHTTPMiddleware):
    """Logs request duration and adds the ``X-Process-Time`` header."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000

        response.headers["X-Process-Time"] = f"{elapsed_ms:.2f}ms"

        if elapsed_ms > SLOW_REQUEST_MS:
            logger.warning(
                "%s %s -> %d in %.2fms (SLOW)",
                request.method,
                request.url.path,
                response.status_code,
                elapsed_ms,
            )
        else:
            logger.debug(
                "%s %s -> %d in %.2fms",
                request.method,
                request.url.path,
                response.status_code,
                elapsed_ms,
            )

        return response
