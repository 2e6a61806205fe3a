"""
Audit trail model.

One row per document lifecycle event.  Rows are append-only: nothing in the
service updates them, and they disappear only together with their document
(``ON DELETE CASCADE``).
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Optional

from sqlalchemy import JSON, DateTime, Index
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from auditvault.models.user import User


class AuditAction(str, Enum):
    CREATED = "CREATED"
    STATUS_CHANGED = "STATUS_CHANGED"


class AuditLogEntry(SQLModel, table=True):
    """
    SQLModel / SQLAlchemy table definition for audit log entries.

    ``details`` is a free-form JSON object:
    - CREATED: ``{"fileKey": ...}``
    - STATUS_CHANGED: ``{"oldStatus": ..., "newStatus": ..., "comment": ...}``

    ``id`` is an autoincrement integer so entries written within the same
    clock tick still sort in insertion order.
    """

    __tablename__ = "audit_logs"  # type: ignore[assignment]

    # Covers: WHERE document_id = ? ORDER BY timestamp DESC, id DESC
    __table_args__ = (Index("ix_audit_logs_document_timestamp", "document_id", "timestamp"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    document_id: uuid.UUID = Field(foreign_key="documents.id", ondelete="CASCADE")
    user_id: uuid.UUID = Field(foreign_key="users.id", index=True, ondelete="RESTRICT")
    action: AuditAction
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
    )
    details: Dict[str, Any] = Field(default_factory=dict, sa_type=JSON)

    # ── Relationships ──
    user: Optional["User"] = Relationship(sa_relationship_kwargs={"lazy": "selectin"})

    def __repr__(self) -> str:
        return (
            f"<AuditLogEntry id={self.id} document={self.document_id} "
            f"action={self.action.value}>"
        )
