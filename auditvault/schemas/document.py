"""
Pydantic schemas for Document API request / response serialisation.

Document creation arrives as multipart form data, so :class:`DocumentCreate`
only carries types; the content rules (non-blank title, period order,
allowed extensions) are enforced by ``DocumentService`` and reported as 400.
"""

from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from auditvault.models.audit_log import AuditLogEntry
from auditvault.models.document import Document, DocumentStatus, DocumentType
from auditvault.schemas.audit import AuditLogResponse
from auditvault.schemas.fund import FundSummary
from auditvault.schemas.user import UserSummary


class DocumentCreate(BaseModel):
    """Metadata fields of ``POST /documents``."""

    title: Optional[str] = None
    description: Optional[str] = None
    fund_id: Optional[UUID] = None
    type: Optional[DocumentType] = None
    period_start: Optional[date] = None
    period_end: Optional[date] = None


class FilePayload(BaseModel):
    """The uploaded file as handed to the service."""

    filename: str = ""
    content_type: Optional[str] = None
    data: bytes = b""

    @property
    def size(self) -> int:
        return len(self.data)


class DocumentStatusUpdate(BaseModel):
    """Schema for ``PATCH /documents/{id}/status``."""

    status: DocumentStatus
    comment: Optional[str] = Field(default=None, max_length=2000)


class DocumentResponse(BaseModel):
    """Schema returned by document list, create and status endpoints."""

    id: UUID
    title: str
    description: Optional[str] = None
    fund_id: UUID
    type: DocumentType
    status: DocumentStatus
    period_start: date
    period_end: date
    file_key: str
    file_size: int
    content_type: Optional[str] = None
    uploaded_by_id: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime
    fund: Optional[FundSummary] = None

    model_config = ConfigDict(from_attributes=True)


class DocumentDetailResponse(DocumentResponse):
    """``GET /documents/{id}``: the document, its uploader and its history."""

    uploaded_by: Optional[UserSummary] = None
    audit_logs: List[AuditLogResponse] = Field(default_factory=list)

    @classmethod
    def from_document(
        cls, document: Document, history: List[AuditLogEntry]
    ) -> "DocumentDetailResponse":
        detail = cls.model_validate(document)
        detail.audit_logs = [AuditLogResponse.model_validate(entry) for entry in history]
        return detail
