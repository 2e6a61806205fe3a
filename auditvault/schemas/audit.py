"""
Pydantic schemas for audit history entries.
"""

from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from auditvault.models.audit_log import AuditAction
from auditvault.models.user import UserRole


class AuditActor(BaseModel):
    """The acting user as they are *now* (current name and role)."""

    id: UUID
    name: str
    role: UserRole

    model_config = ConfigDict(from_attributes=True)


class AuditLogResponse(BaseModel):
    id: int
    document_id: UUID
    user_id: UUID
    action: AuditAction
    timestamp: datetime
    details: Dict[str, Any] = Field(default_factory=dict)
    user: Optional[AuditActor] = None

    model_config = ConfigDict(from_attributes=True)
