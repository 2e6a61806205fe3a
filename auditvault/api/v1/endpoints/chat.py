"""
Chat assistant API endpoints.

- POST   /chat/completions       — Ask the assistant
- GET    /chat/models            — Selectable models
- GET    /chat/sessions          — Saved sessions of the caller
- POST   /chat/sessions          — Start a session
- GET    /chat/sessions/{id}     — Session with its messages
- PATCH  /chat/sessions/{id}     — Rename
- DELETE /chat/sessions/{id}     — Delete with messages
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from auditvault.api.deps import get_current_user
from auditvault.db.session import get_db
from auditvault.models.chat import ChatMessage, ChatSession
from auditvault.models.document import Document
from auditvault.models.fund import Fund
from auditvault.models.user import User
from auditvault.repositories.chat_repo import ChatMessageRepository, ChatSessionRepository
from auditvault.repositories.document_repo import DocumentRepository
from auditvault.repositories.fund_repo import FundRepository
from auditvault.schemas.chat import (
    ChatCompletionRequest,
    ChatCompletionResponse,
    ChatMessageResponse,
    ChatModelsResponse,
    ChatSessionCreate,
    ChatSessionDetail,
    ChatSessionResponse,
    ChatSessionSummary,
    ChatSessionUpdate,
)
from auditvault.schemas.common import ErrorResponse
from auditvault.services.chat_service import ChatService
from auditvault.services.chat_session_service import ChatSessionService

router = APIRouter()


# ── Dependency injection ──


def _get_chat_session_service(db: AsyncSession = Depends(get_db)) -> ChatSessionService:
    return ChatSessionService(
        ChatSessionRepository(ChatSession, db), ChatMessageRepository(ChatMessage, db)
    )


def _get_chat_service(
    db: AsyncSession = Depends(get_db),
    session_service: ChatSessionService = Depends(_get_chat_session_service),
) -> ChatService:
    return ChatService(
        doc_repo=DocumentRepository(Document, db),
        fund_repo=FundRepository(Fund, db),
        session_service=session_service,
    )


# ── Completions ──


@router.post(
    "/completions",
    response_model=ChatCompletionResponse,
    summary="Ask the assistant",
    description=(
        "Forwards the conversation to the configured model.  Metadata of the "
        "documents in ``document_ids`` is added as context."
    ),
    responses={
        502: {"model": ErrorResponse, "description": "Chat provider error"},
        503: {"model": ErrorResponse, "description": "Chat unavailable or rate limited"},
    },
)
async def create_completion(
    request: ChatCompletionRequest,
    current_user: User = Depends(get_current_user),
    service: ChatService = Depends(_get_chat_service),
) -> ChatCompletionResponse:
    return await service.complete(request, current_user)


@router.get("/models", response_model=ChatModelsResponse, summary="List selectable models")
async def list_models(current_user: User = Depends(get_current_user)) -> ChatModelsResponse:
    return ChatModelsResponse(models=ChatService.available_models())


# ── Sessions ──


@router.get("/sessions", response_model=List[ChatSessionSummary], summary="List my chat sessions")
async def list_sessions(
    current_user: User = Depends(get_current_user),
    service: ChatSessionService = Depends(_get_chat_session_service),
) -> List[ChatSessionSummary]:
    rows = await service.list_sessions(current_user)
    return [
        ChatSessionSummary(
            id=session.id,
            title=session.title,
            created_at=session.created_at,
            updated_at=session.updated_at,
            message_count=count,
        )
        for session, count in rows
    ]


@router.post(
    "/sessions",
    response_model=ChatSessionResponse,
    status_code=201,
    summary="Start a chat session",
)
async def create_session(
    body: ChatSessionCreate,
    current_user: User = Depends(get_current_user),
    service: ChatSessionService = Depends(_get_chat_session_service),
) -> ChatSessionResponse:
    return await service.create(current_user, body.title)


@router.get(
    "/sessions/{session_id}",
    response_model=ChatSessionDetail,
    summary="Get a chat session with its messages",
    responses={
        403: {"model": ErrorResponse, "description": "Not your session"},
        404: {"model": ErrorResponse, "description": "Session not found"},
    },
)
async def get_session(
    session_id: UUID,
    current_user: User = Depends(get_current_user),
    service: ChatSessionService = Depends(_get_chat_session_service),
) -> ChatSessionDetail:
    session, messages = await service.get_with_messages(session_id, current_user)
    return ChatSessionDetail(
        id=session.id,
        title=session.title,
        created_at=session.created_at,
        updated_at=session.updated_at,
        messages=[ChatMessageResponse.model_validate(m) for m in messages],
    )


@router.patch(
    "/sessions/{session_id}",
    response_model=ChatSessionResponse,
    summary="Rename a chat session",
    responses={
        403: {"model": ErrorResponse, "description": "Not your session"},
        404: {"model": ErrorResponse, "description": "Session not found"},
    },
)
async def rename_session(
    session_id: UUID,
    body: ChatSessionUpdate,
    current_user: User = Depends(get_current_user),
    service: ChatSessionService = Depends(_get_chat_session_service),
) -> ChatSessionResponse:
    return await service.rename(session_id, body.title, current_user)


@router.delete(
    "/sessions/{session_id}",
    status_code=204,
    response_class=Response,
    summary="Delete a chat session",
    responses={
        403: {"model": ErrorResponse, "description": "Not your session"},
        404: {"model": ErrorResponse, "description": "Session not found"},
    },
)
async def delete_session(
    session_id: UUID,
    current_user: User = Depends(get_current_user),
    service: ChatSessionService = Depends(_get_chat_session_service),
) -> Response:
    await service.delete(session_id, current_user)
    return Response(status_code=204)
