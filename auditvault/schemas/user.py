"""
Pydantic schemas for User API responses and account review.

``password_hash`` is deliberately absent from every response model.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from auditvault.models.user import UserRole, UserStatus


class UserResponse(BaseModel):
    """Schema returned by user and profile endpoints."""

    id: UUID
    email: str
    name: str
    role: UserRole
    status: UserStatus
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UserSummary(BaseModel):
    """Compact user reference embedded in document payloads."""

    id: UUID
    name: str
    email: str

    model_config = ConfigDict(from_attributes=True)


class UserStatusUpdate(BaseModel):
    """Schema for ``POST /users/{id}/status``."""

    status: UserStatus = Field(..., description="ACTIVE to approve, REJECTED to reject")

    @field_validator("status")
    @classmethod
    def validate_review_outcome(cls, v: UserStatus) -> UserStatus:
        if v == UserStatus.PENDING:
            raise ValueError("status must be ACTIVE or REJECTED")
        return v
