"""
Document domain model.

A compliance document belongs to exactly one fund and has one stored file in
the blob store (``file_key``).  Its review status follows PENDING -> IN_REVIEW ->
APPROVED/REJECTED -> ARCHIVED; every change is recorded in ``audit_logs``.
"""

import uuid
from datetime import date, datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import CheckConstraint, DateTime, Index
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from auditvault.models.fund import Fund
    from auditvault.models.user import User


class DocumentType(str, Enum):
    QUARTERLY_REPORT = "QUARTERLY_REPORT"
    ANNUAL_REPORT = "ANNUAL_REPORT"
    KIID = "KIID"
    FACTSHEET = "FACTSHEET"
    LEGAL_CONTRACT = "LEGAL_CONTRACT"


class DocumentStatus(str, Enum):
    PENDING = "PENDING"
    IN_REVIEW = "IN_REVIEW"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    ARCHIVED = "ARCHIVED"


class Document(SQLModel, table=True):
    """
    SQLModel / SQLAlchemy table definition for documents.

    Design notes:
    - ``fund_id`` is RESTRICT: a fund with documents cannot be deleted.
    - ``uploaded_by_id`` is nullable so a removed account does not take its
      uploads with it.
    - ``ix_documents_fund_created`` covers the default listing
      (``WHERE fund_id IN (...) ORDER BY created_at DESC``).
    - ``fund`` and ``uploaded_by`` load with selectin; async sessions cannot
      lazy-load on attribute access.
    """

    __tablename__ = "documents"  # type: ignore[assignment]

    __table_args__ = (
        Index("ix_documents_fund_created", "fund_id", "created_at"),
        CheckConstraint("length(title) > 0", name="ck_documents_title_not_empty"),
        CheckConstraint("period_end >= period_start", name="ck_documents_period_order"),
        CheckConstraint("file_size >= 0", name="ck_documents_file_size_non_negative"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    title: str = Field(max_length=255)
    description: Optional[str] = Field(default=None, max_length=2000)
    fund_id: uuid.UUID = Field(foreign_key="funds.id", index=True, ondelete="RESTRICT")
    type: DocumentType = Field(index=True)
    status: DocumentStatus = Field(default=DocumentStatus.PENDING, index=True)
    period_start: date
    period_end: date
    file_key: str = Field(unique=True, max_length=512)
    file_size: int = Field(default=0)
    content_type: Optional[str] = Field(default=None, max_length=255)
    uploaded_by_id: Optional[uuid.UUID] = Field(
        default=None, foreign_key="users.id", index=True, ondelete="SET NULL"
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
    )

    # ── Relationships ──
    fund: Optional["Fund"] = Relationship(sa_relationship_kwargs={"lazy": "selectin"})
    uploaded_by: Optional["User"] = Relationship(sa_relationship_kwargs={"lazy": "selectin"})

    def __repr__(self) -> str:
        return (
            f"<Document id={self.id} fund={self.fund_id} "
            f"type={self.type.value} status={self.status.value}>"
        )
