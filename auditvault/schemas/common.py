"""
Error envelopes, as rendered by ``core.exceptions.add_exception_handlers``.

Routers list them under ``responses=`` so the OpenAPI schema shows the
``{"error": true, "message": ...}`` body clients actually receive.
"""

from typing import Any, List, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    error: bool = True
    message: str = Field(..., examples=["Only ADMIN or AUDITOR can approve documents"])
    details: Optional[Any] = Field(
        default=None, description="Every problem found, when there is more than one"
    )


class FieldError(BaseModel):
    field: str = Field(..., examples=["body -> status"])
    message: str = Field(..., examples=["Input should be 'PENDING', 'IN_REVIEW', 'APPROVED', 'REJECTED' or 'ARCHIVED'"])


class ValidationErrorResponse(ErrorResponse):
    """422 body: request validation failed before reaching a service."""

    message: str = "Validation failed"
    details: List[FieldError]
