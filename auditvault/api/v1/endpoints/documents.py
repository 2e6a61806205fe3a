"""
Document API endpoints.

- POST   /documents                — Upload a document (multipart)
- GET    /documents                — List documents, scoped by role
- GET    /documents/{id}           — Document with uploader and audit history
- GET    /documents/{id}/history   — Audit history only
- GET    /documents/{id}/download  — Stream the stored file
- PATCH  /documents/{id}/status    — Change review status
- DELETE /documents/{id}           — Hard delete with history
"""

from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from auditvault.api.deps import get_current_user
from auditvault.db.session import get_db
from auditvault.models.audit_log import AuditLogEntry
from auditvault.models.document import Document, DocumentStatus, DocumentType
from auditvault.models.fund import Fund
from auditvault.models.user import User
from auditvault.repositories.audit_repo import AuditLogRepository
from auditvault.repositories.document_repo import DocumentRepository
from auditvault.repositories.fund_repo import FundRepository
from auditvault.schemas.audit import AuditLogResponse
from auditvault.schemas.common import ErrorResponse, ValidationErrorResponse
from auditvault.schemas.document import (
    DocumentCreate,
    DocumentDetailResponse,
    DocumentResponse,
    DocumentStatusUpdate,
    FilePayload,
)
from auditvault.services.audit_service import AuditService
from auditvault.services.document_service import DocumentService
from auditvault.storage.blob_store import BlobStore, get_blob_store, original_filename

router = APIRouter()


# ── Dependency injection ──


def _get_document_service(
    db: AsyncSession = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
) -> DocumentService:
    """
    Build a DocumentService wired to the current request's DB session.

    All repositories share the session, so a document and its audit entry
    are committed together.
    """
    return DocumentService(
        doc_repo=DocumentRepository(Document, db),
        fund_repo=FundRepository(Fund, db),
        audit_service=AuditService(AuditLogRepository(AuditLogEntry, db)),
        blob_store=blob_store,
    )


# ── Endpoints ──


@router.post(
    "",
    response_model=DocumentResponse,
    status_code=201,
    summary="Upload a document",
    description=(
        "Multipart form upload.  Allowed file types: pdf, doc, docx.  The "
        "document starts PENDING and a CREATED audit entry is written."
    ),
    responses={
        400: {"model": ErrorResponse, "description": "Invalid metadata or file"},
        404: {"model": ErrorResponse, "description": "Fund not found"},
        502: {"model": ErrorResponse, "description": "File could not be stored"},
    },
)
async def create_document(
    file: Optional[UploadFile] = File(None, description="The document file"),
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    fund_id: Optional[UUID] = Form(None),
    type: Optional[DocumentType] = Form(None),
    period_start: Optional[date] = Form(None),
    period_end: Optional[date] = Form(None),
    current_user: User = Depends(get_current_user),
    service: DocumentService = Depends(_get_document_service),
) -> DocumentResponse:
    payload = FilePayload()
    if file is not None:
        payload = FilePayload(
            filename=file.filename or "",
            content_type=file.content_type,
            data=await file.read(),
        )
    doc_in = DocumentCreate(
        title=title,
        description=description,
        fund_id=fund_id,
        type=type,
        period_start=period_start,
        period_end=period_end,
    )
    return await service.create(doc_in, payload, current_user)


@router.get(
    "",
    response_model=List[DocumentResponse],
    summary="List documents",
    description=(
        "Newest first.  FUND_MANAGER users only see documents of the funds "
        "they manage, whatever the filters."
    ),
)
async def list_documents(
    fund_id: Optional[UUID] = Query(None, description="Filter by fund"),
    doc_type: Optional[DocumentType] = Query(None, alias="type", description="Filter by type"),
    status: Optional[DocumentStatus] = Query(None, description="Filter by status"),
    skip: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(100, ge=1, le=1000, description="Max records to return"),
    current_user: User = Depends(get_current_user),
    service: DocumentService = Depends(_get_document_service),
) -> List[DocumentResponse]:
    return await service.find_all(
        current_user,
        fund_id=fund_id,
        status=status,
        doc_type=doc_type,
        skip=skip,
        limit=limit,
    )


@router.get(
    "/{document_id}",
    response_model=DocumentDetailResponse,
    summary="Get a document with its history",
    responses={404: {"model": ErrorResponse, "description": "Document not found"}},
)
async def get_document(
    document_id: UUID,
    current_user: User = Depends(get_current_user),
    service: DocumentService = Depends(_get_document_service),
) -> DocumentDetailResponse:
    document, history = await service.find_one(document_id)
    return DocumentDetailResponse.from_document(document, history)


@router.get(
    "/{document_id}/history",
    response_model=List[AuditLogResponse],
    summary="Audit history of a document",
    description="Newest first, with each actor's current name and role.",
    responses={404: {"model": ErrorResponse, "description": "Document not found"}},
)
async def get_document_history(
    document_id: UUID,
    current_user: User = Depends(get_current_user),
    service: DocumentService = Depends(_get_document_service),
) -> List[AuditLogResponse]:
    return await service.get_history(document_id)


@router.get(
    "/{document_id}/download",
    response_class=StreamingResponse,
    summary="Download the stored file",
    responses={404: {"model": ErrorResponse, "description": "Document or file not found"}},
)
async def download_document(
    document_id: UUID,
    current_user: User = Depends(get_current_user),
    service: DocumentService = Depends(_get_document_service),
) -> StreamingResponse:
    document, stream = await service.open_download(document_id)
    filename = original_filename(document.file_key)
    return StreamingResponse(
        stream,
        media_type=document.content_type or "application/octet-stream",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.patch(
    "/{document_id}/status",
    response_model=DocumentResponse,
    summary="Change document status",
    description=(
        "FUND_MANAGER users cannot change status; only ADMIN and AUDITOR may "
        "approve.  A STATUS_CHANGED audit entry is written."
    ),
    responses={
        403: {"model": ErrorResponse, "description": "Role not allowed"},
        404: {"model": ErrorResponse, "description": "Document not found"},
        422: {"model": ValidationErrorResponse, "description": "Validation error"},
    },
)
async def update_document_status(
    document_id: UUID,
    body: DocumentStatusUpdate,
    current_user: User = Depends(get_current_user),
    service: DocumentService = Depends(_get_document_service),
) -> DocumentResponse:
    return await service.update_status(document_id, body.status, body.comment, current_user)


@router.delete(
    "/{document_id}",
    status_code=204,
    response_class=Response,
    summary="Delete a document",
    description="Removes the document, its audit history and its stored file.",
    responses={404: {"model": ErrorResponse, "description": "Document not found"}},
)
async def delete_document(
    document_id: UUID,
    current_user: User = Depends(get_current_user),
    service: DocumentService = Depends(_get_document_service),
) -> Response:
    await service.remove(document_id)
    return Response(status_code=204)
