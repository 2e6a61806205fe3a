"""
Chat session service — saved assistant conversations.

Sessions are private: every operation checks that the session belongs to
the calling user (403 otherwise).
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional, Tuple
from uuid import UUID

from auditvault.core.exceptions import AuthorizationException, NotFoundException
from auditvault.models.chat import DEFAULT_SESSION_TITLE, ChatMessage, ChatRole, ChatSession
from auditvault.models.user import User
from auditvault.repositories.chat_repo import ChatMessageRepository, ChatSessionRepository

logger = logging.getLogger(__name__)


class ChatSessionService:
    def __init__(self, session_repo: ChatSessionRepository, message_repo: ChatMessageRepository):
        self._sessions = session_repo
        self._messages = message_repo

    async def list_sessions(self, user: User) -> List[Tuple[ChatSession, int]]:
        """``(session, message_count)`` pairs, most recently updated first."""
        return await self._sessions.list_for_user(user.id)

    async def create(self, user: User, title: Optional[str] = None) -> ChatSession:
        session = ChatSession(user_id=user.id, title=(title or "").strip() or DEFAULT_SESSION_TITLE)
        created = await self._sessions.create(session)
        logger.info("Created chat session %s for user %s", created.id, user.id)
        return created

    async def get_owned(self, session_id: UUID, user: User) -> ChatSession:
        """Return the session if ``user`` owns it; 404 / 403 otherwise."""
        session = await self._sessions.get(session_id)
        if not session:
            raise NotFoundException("Chat session", session_id)
        if session.user_id != user.id:
            logger.warning("User %s denied access to chat session %s", user.id, session_id)
            raise AuthorizationException("Access denied")
        return session

    async def get_with_messages(
        self, session_id: UUID, user: User
    ) -> Tuple[ChatSession, List[ChatMessage]]:
        session = await self.get_owned(session_id, user)
        messages = await self._messages.list_for_session(session.id)
        return session, messages

    async def rename(self, session_id: UUID, title: str, user: User) -> ChatSession:
        session = await self.get_owned(session_id, user)
        session.title = title
        session.updated_at = datetime.now(timezone.utc)
        return await self._sessions.update(session)

    async def delete(self, session_id: UUID, user: User) -> None:
        session = await self.get_owned(session_id, user)
        await self._sessions.delete_with_messages(session)
        logger.info("Deleted chat session %s", session_id)

    async def append_exchange(self, session: ChatSession, prompt: str, reply: str) -> None:
        """Persist one user prompt and the assistant reply in a single commit."""
        now = datetime.now(timezone.utc)
        await self._messages.add(ChatMessage(session_id=session.id, role=ChatRole.USER, content=prompt))
        await self._messages.add(
            ChatMessage(session_id=session.id, role=ChatRole.ASSISTANT, content=reply)
        )
        session.updated_at = now
        await self._sessions.add(session)
        await self._sessions.commit()
