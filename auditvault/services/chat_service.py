"""
Chat service — gateway to the OpenRouter chat-completion API.

Selected documents are described to the model in one system message placed
before the conversation; only metadata is shared, never file contents.
Upstream failures are mapped to ``UpstreamException`` (502 / 503).
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from auditvault.core.config import settings
from auditvault.core.exceptions import UpstreamException
from auditvault.core.permissions import Capability, has_capability
from auditvault.models.chat import ChatRole
from auditvault.models.document import Document
from auditvault.models.user import User
from auditvault.repositories.document_repo import DocumentRepository
from auditvault.repositories.fund_repo import FundRepository
from auditvault.schemas.chat import ChatCompletionRequest, ChatCompletionResponse, ChatMessageOut
from auditvault.services.chat_session_service import ChatSessionService

logger = logging.getLogger(__name__)


class ChatService:
    """
    Forwards chat turns to the configured completion endpoint.

    ``transport`` is passed to ``httpx.AsyncClient``; tests supply an
    ``httpx.MockTransport``.
    """

    def __init__(
        self,
        doc_repo: DocumentRepository,
        fund_repo: FundRepository,
        session_service: ChatSessionService,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._doc_repo = doc_repo
        self._fund_repo = fund_repo
        self._sessions = session_service
        self._transport = transport

    @staticmethod
    def available_models() -> List[str]:
        return list(settings.CHAT_AVAILABLE_MODELS)

    async def complete(self, request: ChatCompletionRequest, user: User) -> ChatCompletionResponse:
        """
        Send the conversation upstream and return the assistant reply.

        When ``request.session_id`` is set, the last user message and the
        reply are saved to that session.
        """
        if not settings.OPENROUTER_API_KEY:
            raise UpstreamException(
                "Chat is not configured: set OPENROUTER_API_KEY", status_code=503
            )

        session = None
        if request.session_id is not None:
            session = await self._sessions.get_owned(request.session_id, user)

        messages: List[Dict[str, str]] = [
            {"role": m.role.value, "content": m.content} for m in request.messages
        ]
        documents = await self._context_documents(request, user)
        if documents:
            messages.insert(0, {"role": ChatRole.SYSTEM.value, "content": build_context_prompt(documents)})

        model = request.model or settings.CHAT_DEFAULT_MODEL
        payload = {
            "model": model,
            "messages": messages,
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
        }
        data = await self._post(payload)
        reply = _reply_content(data)

        if session is not None:
            prompt = next(
                (m.content for m in reversed(request.messages) if m.role == ChatRole.USER), None
            )
            if prompt is not None:
                await self._sessions.append_exchange(session, prompt, reply)

        return ChatCompletionResponse(
            id=data.get("id"),
            model=data.get("model") or model,
            message=ChatMessageOut(role=ChatRole.ASSISTANT, content=reply),
            usage=data.get("usage"),
            session_id=session.id if session is not None else None,
        )

    # ── Internal helpers ──

    async def _context_documents(
        self, request: ChatCompletionRequest, user: User
    ) -> List[Document]:
        if not request.document_ids:
            return []
        documents = await self._doc_repo.get_many(request.document_ids)
        if not has_capability(user.role, Capability.VIEW_ALL_FUNDS):
            managed = set(await self._fund_repo.managed_fund_ids(user.id))
            documents = [d for d in documents if d.fund_id in managed]
        order = {doc_id: i for i, doc_id in enumerate(request.document_ids)}
        return sorted(documents, key=lambda d: order.get(d.id, len(order)))

    async def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {settings.OPENROUTER_API_KEY}",
            "Content-Type": "application/json",
            "X-Title": settings.PROJECT_NAME,
        }
        try:
            async with httpx.AsyncClient(
                timeout=settings.CHAT_TIMEOUT, transport=self._transport
            ) as client:
                response = await client.post(
                    settings.OPENROUTER_API_URL, json=payload, headers=headers
                )
        except httpx.TimeoutException:
            logger.error("Chat provider timed out after %.1fs", settings.CHAT_TIMEOUT)
            raise UpstreamException("Chat provider did not respond in time", status_code=503)
        except httpx.RequestError as exc:
            logger.error("Chat provider unreachable: %s", exc)
            raise UpstreamException("Chat provider is unreachable", status_code=503)

        if response.status_code == 401:
            logger.error("Chat provider rejected the API key")
            raise UpstreamException("Chat provider rejected the configured API key")
        if response.status_code == 429:
            logger.warning("Chat provider rate limit hit")
            raise UpstreamException(
                "Rate limit exceeded. Please try again later.", status_code=503
            )
        if response.is_error:
            message = _upstream_error_message(response)
            logger.error("Chat provider error %d: %s", response.status_code, message)
            raise UpstreamException(message)

        try:
            data = response.json()
        except ValueError:
            logger.error(
                "Chat provider returned a non-JSON body (%s): %s",
                response.headers.get("content-type", "unknown"),
                response.text[:200],
            )
            raise UpstreamException("Chat provider returned an unexpected response")
        if not isinstance(data, dict):
            logger.error("Chat provider returned a JSON %s, not an object", type(data).__name__)
            raise UpstreamException("Chat provider returned an unexpected response")
        return data


def _reply_content(data: Dict[str, Any]) -> str:
    try:
        reply = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        logger.error("Malformed chat completion response: %s", str(data)[:500])
        raise UpstreamException("Chat provider returned an unexpected response")
    if not isinstance(reply, str):
        logger.error("Chat completion content is not text: %s", str(reply)[:200])
        raise UpstreamException("Chat provider returned an unexpected response")
    return reply


def build_context_prompt(documents: List[Document]) -> str:
    """Describe ``documents`` for the model, one line each."""
    lines = [
        "You are a compliance assistant for Audit Vault. The user has selected "
        "the following documents as context:"
    ]
    for doc in documents:
        fund = f"{doc.fund.name} ({doc.fund.code})" if doc.fund else "unknown fund"
        lines.append(
            f"- \"{doc.title}\" [{doc.type.value}, status {doc.status.value}] "
            f"for {fund}, period {doc.period_start.isoformat()} to {doc.period_end.isoformat()}"
        )
    lines.append("Answer questions about these documents using only this metadata.")
    return "\n".join(lines)


def _upstream_error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return "Failed to get chat completion"
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    return "Failed to get chat completion"
