"""
Pydantic schemas for registration, login and the bearer token.
"""

from pydantic import BaseModel, EmailStr, Field, field_validator

from auditvault.models.user import UserRole


class RegisterRequest(BaseModel):
    """Schema for ``POST /auth/register``."""

    email: EmailStr = Field(..., examples=["jane.doe@auditvault.com"])
    password: str = Field(..., min_length=8, max_length=128)
    name: str = Field(..., min_length=1, max_length=255, examples=["Jane Doe"])
    role: UserRole = Field(
        default=UserRole.AUDITOR,
        description="Requested role; ADMIN cannot be self-assigned",
    )

    @field_validator("name")
    @classmethod
    def validate_name_not_blank(cls, v: str) -> str:
        """Reject whitespace-only names."""
        if not v.strip():
            raise ValueError("name must not be blank")
        return v.strip()


class LoginRequest(BaseModel):
    """Schema for ``POST /auth/login``."""

    email: EmailStr
    password: str = Field(..., min_length=1)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int = Field(..., description="Token lifetime in seconds")
