"""
Pydantic schemas for Fund API request / response serialisation.

Separating schemas from SQLModel table models keeps the API contract
decoupled from the persistence layer.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from auditvault.schemas.user import UserSummary


def _normalise_code(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    v = v.strip().upper()
    if not v:
        raise ValueError("code must not be blank")
    return v


def _normalise_name(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    if not v.strip():
        raise ValueError("name must not be blank")
    return v.strip()


class FundCreate(BaseModel):
    """Schema for ``POST /funds``."""

    code: str = Field(..., min_length=1, max_length=32, examples=["GF-001"])
    name: str = Field(..., min_length=1, max_length=255, examples=["Global Tech Fund"])
    region: Optional[str] = Field(default=None, max_length=128, examples=["North America"])
    currency: Optional[str] = Field(default=None, max_length=8, examples=["USD"])
    manager_ids: List[UUID] = Field(
        default_factory=list, description="FUND_MANAGER users assigned to the fund"
    )

    normalise_code = field_validator("code")(_normalise_code)
    normalise_name = field_validator("name")(_normalise_name)


class FundUpdate(BaseModel):
    """
    Schema for ``PATCH /funds/{id}``.

    Only the fields present in the body are changed.  ``manager_ids``, when
    given, replaces the whole manager set.
    """

    code: Optional[str] = Field(default=None, min_length=1, max_length=32)
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    region: Optional[str] = Field(default=None, max_length=128)
    currency: Optional[str] = Field(default=None, max_length=8)
    manager_ids: Optional[List[UUID]] = None

    normalise_code = field_validator("code")(_normalise_code)
    normalise_name = field_validator("name")(_normalise_name)


class FundSummary(BaseModel):
    """Compact fund reference embedded in document payloads."""

    id: UUID
    code: str
    name: str

    model_config = ConfigDict(from_attributes=True)


class FundResponse(BaseModel):
    """Schema returned by all fund endpoints."""

    id: UUID
    code: str
    name: str
    region: Optional[str] = None
    currency: Optional[str] = None
    created_at: datetime
    managers: List[UserSummary] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)
