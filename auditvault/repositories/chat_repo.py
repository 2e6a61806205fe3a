"""
Chat repositories — saved assistant conversations and their messages.
"""

from typing import List, Tuple
from uuid import UUID

from sqlalchemy import delete, func
from sqlalchemy.future import select

from auditvault.models.chat import ChatMessage, ChatSession
from auditvault.repositories.base import BaseRepository


class ChatSessionRepository(BaseRepository[ChatSession]):
    """Concrete repository for :class:`ChatSession` entities."""

    async def list_for_user(self, user_id: UUID) -> List[Tuple[ChatSession, int]]:
        """Return ``(session, message_count)`` pairs, most recently updated first."""
        message_count = (
            select(ChatMessage.session_id, func.count(ChatMessage.id).label("n"))
            .group_by(ChatMessage.session_id)
            .subquery()
        )
        stmt = (
            select(self.model, func.coalesce(message_count.c.n, 0))
            .outerjoin(message_count, message_count.c.session_id == self.model.id)
            .where(self.model.user_id == user_id)
            .order_by(self.model.updated_at.desc())
        )

        async def _list() -> List[Tuple[ChatSession, int]]:
            result = await self.db.execute(stmt)
            return [(row[0], int(row[1])) for row in result.all()]

        return await self._execute_with_circuit_breaker(_list)

    async def delete_with_messages(self, session: ChatSession) -> None:
        async def _stage() -> None:
            await self.db.execute(delete(ChatMessage).where(ChatMessage.session_id == session.id))
            await self.db.delete(session)

        await self._execute_with_circuit_breaker(_stage)
        await self.commit()


class ChatMessageRepository(BaseRepository[ChatMessage]):
    """Concrete repository for :class:`ChatMessage` entities."""

    async def list_for_session(self, session_id: UUID) -> List[ChatMessage]:
        """Messages of ``session_id`` in conversation order."""
        stmt = (
            select(self.model)
            .where(self.model.session_id == session_id)
            .order_by(self.model.created_at, self.model.id)
        )
        return await self._all(stmt)
