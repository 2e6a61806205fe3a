"""
Document service — the document lifecycle.

Owns document creation (file upload plus metadata), listing scoped by role,
status changes gated by the capability table, and deletion.  Every mutation
is one transaction covering the document row *and* its audit entry: either
both are committed or neither is.

Raises domain-specific exceptions from ``auditvault.core.exceptions`` so the
service layer stays framework-agnostic (no direct FastAPI imports).
"""

import logging
from datetime import datetime, timezone
from pathlib import PurePath
from typing import AsyncIterator, List, Optional, Tuple
from uuid import UUID

from auditvault.core.config import settings
from auditvault.core.exceptions import (
    BusinessRuleViolation,
    NotFoundException,
    UpstreamException,
    ValidationException,
)
from auditvault.core.permissions import (
    Capability,
    has_capability,
    require_capability,
    status_capability,
)
from auditvault.core.resilience import TRANSIENT_ERRORS, retry_async
from auditvault.models.audit_log import AuditAction, AuditLogEntry
from auditvault.models.document import Document, DocumentStatus, DocumentType
from auditvault.models.user import User
from auditvault.repositories.document_repo import DocumentRepository
from auditvault.repositories.fund_repo import FundRepository
from auditvault.schemas.document import DocumentCreate, FilePayload
from auditvault.services.audit_service import AuditService
from auditvault.storage.blob_store import BlobStore, make_file_key

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = frozenset({"pdf", "doc", "docx"})

EXPECTED_CONTENT_TYPES = frozenset(
    {
        "application/pdf",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/octet-stream",
    }
)


class DocumentService:
    """
    Encapsulates the lifecycle rules for :class:`Document`.

    The document and fund repositories share one ``AsyncSession`` (and so
    one transaction) with the audit service.
    """

    def __init__(
        self,
        doc_repo: DocumentRepository,
        fund_repo: FundRepository,
        audit_service: AuditService,
        blob_store: BlobStore,
    ):
        self._doc_repo = doc_repo
        self._fund_repo = fund_repo
        self._audit = audit_service
        self._blob_store = blob_store

    # ── Queries ──

    async def find_all(
        self,
        user: User,
        fund_id: Optional[UUID] = None,
        status: Optional[DocumentStatus] = None,
        doc_type: Optional[DocumentType] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Document]:
        """
        Return documents matching the filters, newest first.

        Users without VIEW_ALL_FUNDS (fund managers) only ever see documents
        of the funds they manage, whatever filters they pass.
        """
        fund_ids: Optional[List[UUID]] = None
        if not has_capability(user.role, Capability.VIEW_ALL_FUNDS):
            fund_ids = await self._fund_repo.managed_fund_ids(user.id)
        return await self._doc_repo.list_filtered(
            fund_id=fund_id,
            status=status,
            doc_type=doc_type,
            fund_ids=fund_ids,
            skip=skip,
            limit=limit,
        )

    async def find_one(self, document_id: UUID) -> Tuple[Document, List[AuditLogEntry]]:
        """
        Return a document together with its audit history (newest first).

        Raises :class:`NotFoundException` if the document does not exist.
        """
        document = await self._get_or_404(document_id)
        history = await self._audit.get_history(document_id)
        return document, history

    async def get_history(self, document_id: UUID) -> List[AuditLogEntry]:
        await self._get_or_404(document_id)
        return await self._audit.get_history(document_id)

    async def open_download(self, document_id: UUID) -> Tuple[Document, AsyncIterator[bytes]]:
        """
        Return the document and a stream over its stored bytes.

        Raises :class:`NotFoundException` when either the document or its
        stored file is missing.
        """
        document = await self._get_or_404(document_id)
        if not await self._blob_store.exists(document.file_key):
            logger.error("Document %s has no stored file %s", document.id, document.file_key)
            raise NotFoundException("File", document.file_key)
        return document, self._blob_store.open(document.file_key)

    # ── Commands ──

    async def create(self, doc_in: DocumentCreate, file: FilePayload, user: User) -> Document:
        """
        Upload ``file`` and create its document record.

        Steps:
        1. Validate metadata and file (400, nothing written on failure).
        2. Check the fund exists (404).
        3. Store the bytes with bounded retries (502 when exhausted).
        4. Insert the document and its CREATED audit entry in one commit.
           If that fails, the stored file is removed again.
        """
        _validate_upload(doc_in, file)

        fund = await self._fund_repo.get(doc_in.fund_id)
        if not fund:
            raise NotFoundException("Fund", doc_in.fund_id)

        if file.content_type and file.content_type not in EXPECTED_CONTENT_TYPES:
            logger.warning(
                "Unexpected content type %s for upload %s", file.content_type, file.filename
            )
        if file.size > settings.MAX_UPLOAD_SIZE_BYTES:
            logger.warning(
                "Upload %s is %d bytes (limit %d)",
                file.filename,
                file.size,
                settings.MAX_UPLOAD_SIZE_BYTES,
            )

        file_key = make_file_key(file.filename)
        await self._store_file(file_key, file.data)

        document = Document(
            title=doc_in.title.strip(),
            description=doc_in.description,
            fund_id=fund.id,
            type=doc_in.type,
            period_start=doc_in.period_start,
            period_end=doc_in.period_end,
            file_key=file_key,
            file_size=file.size,
            content_type=file.content_type,
            uploaded_by_id=user.id,
        )
        document.fund = fund
        document.uploaded_by = user

        try:
            await self._doc_repo.add(document)
            await self._audit.log_action(
                user.id, document.id, AuditAction.CREATED, {"fileKey": file_key}
            )
            await self._doc_repo.commit()
        except Exception:
            await self._doc_repo.rollback()
            logger.error("Creating document for %s failed; removing stored file", file_key)
            await self._discard_file(file_key)
            raise

        logger.info(
            "Created document %s (%s) in fund %s by user %s",
            document.id,
            document.type.value,
            fund.code,
            user.id,
        )
        return document

    async def update_status(
        self,
        document_id: UUID,
        new_status: DocumentStatus,
        comment: Optional[str],
        user: User,
    ) -> Document:
        """
        Move a document to ``new_status`` and record the change.

        Raises :class:`NotFoundException` for an unknown document,
        :class:`AuthorizationException` when the role may not set
        ``new_status`` (fund managers may not set any), and
        :class:`BusinessRuleViolation` for a backward move when strict
        transitions are enabled.
        """
        document = await self._get_or_404(document_id)

        require_capability(
            user,
            Capability.CHANGE_DOCUMENT_STATUS,
            "Your role is not allowed to change document status",
        )
        require_capability(
            user,
            status_capability(new_status),
            f"Your role is not allowed to set document status to {new_status.value}",
        )

        old_status = document.status
        if settings.ENFORCE_STATUS_TRANSITIONS:
            _validate_status_transition(old_status, new_status)

        document.status = new_status
        document.updated_at = datetime.now(timezone.utc)

        try:
            await self._doc_repo.add(document)
            await self._audit.log_action(
                user.id,
                document.id,
                AuditAction.STATUS_CHANGED,
                {
                    "oldStatus": old_status.value,
                    "newStatus": new_status.value,
                    "comment": comment,
                },
            )
            await self._doc_repo.commit()
        except Exception:
            await self._doc_repo.rollback()
            logger.error("Status change of document %s rolled back", document_id)
            raise

        logger.info(
            "Document %s status %s -> %s by user %s",
            document.id,
            old_status.value,
            new_status.value,
            user.id,
        )
        return document

    async def remove(self, document_id: UUID) -> None:
        """
        Hard-delete a document with its audit history, then its stored file.

        The database delete is committed first; a failure to remove the file
        afterwards only leaves an orphaned blob and is logged.
        """
        document = await self._get_or_404(document_id)
        file_key = document.file_key

        try:
            await self._doc_repo.stage_delete_with_history(document)
            await self._doc_repo.commit()
        except Exception:
            await self._doc_repo.rollback()
            raise

        await self._discard_file(file_key)
        logger.info("Deleted document %s and its audit history", document_id)

    # ── Internal helpers ──

    async def _get_or_404(self, document_id: UUID) -> Document:
        document = await self._doc_repo.get(document_id)
        if not document:
            raise NotFoundException("Document", document_id)
        return document

    async def _store_file(self, file_key: str, data: bytes) -> None:
        try:
            await retry_async(
                self._blob_store.put,
                file_key,
                data,
                max_attempts=settings.BLOB_STORE_MAX_ATTEMPTS,
                base_delay=settings.BLOB_STORE_RETRY_DELAY,
                timeout=settings.BLOB_STORE_TIMEOUT,
            )
        except TRANSIENT_ERRORS as exc:
            logger.error("Blob store write failed for %s: %s", file_key, exc)
            raise UpstreamException(
                f"Failed to store the uploaded file after "
                f"{settings.BLOB_STORE_MAX_ATTEMPTS} attempts"
            ) from exc

    async def _discard_file(self, file_key: str) -> None:
        try:
            await self._blob_store.delete(file_key)
        except (OSError, ValueError) as exc:
            logger.error("Could not remove stored file %s: %s", file_key, exc)


# ── Upload validation ──


def _validate_upload(doc_in: DocumentCreate, file: FilePayload) -> None:
    """Collect every problem with the upload and raise them together."""
    errors: List[str] = []

    if not doc_in.title or not doc_in.title.strip():
        errors.append("title is required")
    if doc_in.fund_id is None:
        errors.append("fund_id is required")
    if doc_in.type is None:
        errors.append("type is required")
    if doc_in.period_start is None or doc_in.period_end is None:
        errors.append("period_start and period_end are required")
    elif doc_in.period_end < doc_in.period_start:
        errors.append("period_end must not be before period_start")

    if not file.filename or file.size == 0:
        errors.append("a non-empty file is required")
    else:
        extension = PurePath(file.filename).suffix.lower().lstrip(".")
        if extension not in ALLOWED_EXTENSIONS:
            errors.append(
                f"File type '{extension or 'none'}' is not allowed. "
                f"Allowed types: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
            )

    if errors:
        raise ValidationException(errors[0], details=errors)


# ── Status transition rules (enforced only with ENFORCE_STATUS_TRANSITIONS) ──

# Forward-only: PENDING → IN_REVIEW → APPROVED/REJECTED → ARCHIVED.
_ALLOWED_TRANSITIONS: dict[DocumentStatus, set[DocumentStatus]] = {
    DocumentStatus.PENDING: {
        DocumentStatus.PENDING,
        DocumentStatus.IN_REVIEW,
        DocumentStatus.APPROVED,
        DocumentStatus.REJECTED,
        DocumentStatus.ARCHIVED,
    },
    DocumentStatus.IN_REVIEW: {
        DocumentStatus.IN_REVIEW,
        DocumentStatus.APPROVED,
        DocumentStatus.REJECTED,
        DocumentStatus.ARCHIVED,
    },
    DocumentStatus.APPROVED: {DocumentStatus.APPROVED, DocumentStatus.ARCHIVED},
    DocumentStatus.REJECTED: {DocumentStatus.REJECTED, DocumentStatus.ARCHIVED},
    DocumentStatus.ARCHIVED: {DocumentStatus.ARCHIVED},  # terminal
}


def _validate_status_transition(current: DocumentStatus, requested: DocumentStatus) -> None:
    if requested not in _ALLOWED_TRANSITIONS.get(current, set()):
        raise BusinessRuleViolation(
            f"Invalid status transition: '{current.value}' → '{requested.value}'. "
            f"Document lifecycle is PENDING → IN_REVIEW → APPROVED/REJECTED → ARCHIVED."
        )
