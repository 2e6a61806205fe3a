"""
Pydantic schemas for the chat assistant and saved chat sessions.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from auditvault.models.chat import ChatRole


class ChatMessageIn(BaseModel):
    role: ChatRole
    content: str = Field(..., min_length=1)


class ChatCompletionRequest(BaseModel):
    """
    Schema for ``POST /chat/completions``.

    ``document_ids`` selects documents whose metadata is given to the model
    as context.  ``session_id`` stores the exchange in a saved session.
    """

    messages: List[ChatMessageIn] = Field(..., min_length=1)
    model: Optional[str] = Field(default=None, examples=["openai/gpt-3.5-turbo"])
    temperature: float = Field(default=0.7, ge=0, le=2)
    max_tokens: int = Field(default=1000, ge=1, le=32_000)
    document_ids: List[UUID] = Field(default_factory=list, max_length=20)
    session_id: Optional[UUID] = None


class ChatMessageOut(BaseModel):
    role: ChatRole
    content: str


class ChatCompletionResponse(BaseModel):
    id: Optional[str] = None
    model: str
    message: ChatMessageOut
    usage: Optional[Dict[str, Any]] = None
    session_id: Optional[UUID] = None


class ChatModelsResponse(BaseModel):
    models: List[str]


class ChatSessionCreate(BaseModel):
    title: Optional[str] = Field(default=None, max_length=255)


class ChatSessionUpdate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)

    @field_validator("title")
    @classmethod
    def validate_title_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("title must not be blank")
        return v.strip()


class ChatSessionResponse(BaseModel):
    id: UUID
    title: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ChatSessionSummary(ChatSessionResponse):
    message_count: int = 0


class ChatMessageResponse(BaseModel):
    id: UUID
    role: ChatRole
    content: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ChatSessionDetail(ChatSessionResponse):
    messages: List[ChatMessageResponse] = Field(default_factory=list)
