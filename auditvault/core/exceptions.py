"""
Domain exceptions and global exception handlers.

Every error response has the same JSON shape::

    {
        "error": true,
        "message": "<human-readable description>"
    }

Services raise the exceptions below without importing FastAPI; the handlers
registered by :func:`add_exception_handlers` translate them to HTTP.

=========================  ======
Exception                  Status
=========================  ======
ValidationException        400
AuthenticationException    401
AuthorizationException     403
NotFoundException          404
ConflictException          409
BusinessRuleViolation      422
UpstreamException          502 / 503
CircuitBreakerError        503
=========================  ======
"""

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from auditvault.core.resilience import CircuitBreakerError

logger = logging.getLogger(__name__)


# ────────────────────────────────────────────────────────────────────────────
# Domain exceptions  (raised by service layer, caught by handlers below)
# ────────────────────────────────────────────────────────────────────────────


class AppException(Exception):
    """Base exception for all application-level errors."""

    headers: dict = {}

    def __init__(self, status_code: int, message: str, details: Any = None):
        self.status_code = status_code
        self.message = message
        self.details = details
        super().__init__(message)


class ValidationException(AppException):
    """Malformed or missing input detected by the service layer (400)."""

    def __init__(self, message: str, details: Any = None):
        super().__init__(status_code=400, message=message, details=details)


class AuthenticationException(AppException):
    """Missing, invalid or expired credentials (401)."""

    headers = {"WWW-Authenticate": "Bearer"}

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(status_code=401, message=message)


class AuthorizationException(AppException):
    """The caller's role lacks the capability for this action (403)."""

    def __init__(self, message: str = "Forbidden"):
        super().__init__(status_code=403, message=message)


class NotFoundException(AppException):
    """Resource not found (404)."""

    def __init__(self, resource: str, identifier: Any):
        super().__init__(
            status_code=404,
            message=f"{resource} with id '{identifier}' not found",
        )


class ConflictException(AppException):
    """Resource already exists / unique-constraint violation (409)."""

    def __init__(self, message: str):
        super().__init__(status_code=409, message=message)


class BusinessRuleViolation(AppException):
    """Business rule was violated (422)."""

    def __init__(self, message: str):
        super().__init__(status_code=422, message=message)


class UpstreamException(AppException):
    """
    A collaborator outside the database failed: the blob store or the
    chat-completion API.  502 by default, 503 when the upstream is
    unavailable or throttling and a retry later may succeed.
    """

    def __init__(self, message: str, status_code: int = 502):
        super().__init__(status_code=status_code, message=message)


# ────────────────────────────────────────────────────────────────────────────
# FastAPI exception handler registration
# ────────────────────────────────────────────────────────────────────────────


def add_exception_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI application instance."""

    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
        """Handle domain-specific exceptions raised by the service layer."""
        content = {"error": True, "message": exc.message}
        if exc.details is not None:
            content["details"] = exc.details
        return JSONResponse(
            status_code=exc.status_code,
            content=content,
            headers=exc.headers or None,
        )

    @app.exception_handler(CircuitBreakerError)
    async def circuit_breaker_handler(
        request: Request, exc: CircuitBreakerError
    ) -> JSONResponse:
        """The database breaker is open: tell the client when to come back."""
        logger.warning("Rejected %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=503,
            content={
                "error": True,
                "message": "Service temporarily unavailable (circuit is open). "
                "Please retry shortly.",
            },
            headers={"Retry-After": str(max(1, int(exc.retry_after)))},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        """Handle standard HTTP exceptions (e.g. 404 from path-not-found)."""
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": True, "message": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Return a 422 listing each invalid field and the reason."""
        errors = []
        for err in exc.errors():
            loc = " -> ".join(str(part) for part in err["loc"])
            errors.append({"field": loc, "message": err["msg"]})
        return JSONResponse(
            status_code=422,
            content={"error": True, "message": "Validation failed", "details": errors},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unexpected exceptions."""
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={
                "error": True,
                "message": "Internal Server Error. Please contact support.",
            },
        )
