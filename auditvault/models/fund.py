"""
Fund domain model.

Represents an investment vehicle persisted in the ``funds`` table, and the
``fund_managers`` association linking funds to the FUND_MANAGER users who
may see their documents.
"""

import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import CheckConstraint, DateTime
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from auditvault.models.user import User


class FundManagerLink(SQLModel, table=True):
    """Many-to-many association between funds and their manager users."""

    __tablename__ = "fund_managers"  # type: ignore[assignment]

    fund_id: uuid.UUID = Field(foreign_key="funds.id", primary_key=True, ondelete="CASCADE")
    user_id: uuid.UUID = Field(
        foreign_key="users.id", primary_key=True, index=True, ondelete="CASCADE"
    )


class Fund(SQLModel, table=True):
    """
    SQLModel / SQLAlchemy table definition for funds.

    - ``code`` is unique and stored upper-case (e.g. ``GF-001``).
    - ``managers`` is loaded eagerly (selectin) because the async session
      cannot lazy-load it on attribute access.
    """

    __tablename__ = "funds"  # type: ignore[assignment]

    __table_args__ = (
        CheckConstraint("length(code) > 0", name="ck_funds_code_not_empty"),
        CheckConstraint("length(name) > 0", name="ck_funds_name_not_empty"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    code: str = Field(unique=True, index=True, max_length=32)
    name: str = Field(index=True, max_length=255)
    region: Optional[str] = Field(default=None, max_length=128)
    currency: Optional[str] = Field(default=None, max_length=8)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
    )

    # ── Relationships ──
    managers: List["User"] = Relationship(
        link_model=FundManagerLink,
        sa_relationship_kwargs={"lazy": "selectin"},
    )

    def __repr__(self) -> str:
        return f"<Fund id={self.id} code='{self.code}' name='{self.name}'>"
