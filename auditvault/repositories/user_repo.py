"""
User repository — data-access layer for the ``users`` table.

Extends generic CRUD with the email look-up used by login and duplicate
detection, and the status listing used by account review.
"""

from typing import List, Optional

from sqlalchemy.future import select

from auditvault.models.user import User, UserStatus
from auditvault.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Concrete repository for :class:`User` entities."""

    async def get_by_email(self, email: str) -> Optional[User]:
        """
        Look up a user by email address (case-insensitive).

        Emails are stored lower-cased, so the argument is lower-cased too.
        """
        stmt = select(self.model).where(self.model.email == email.lower())
        return await self._first(stmt)

    async def list_users(
        self, status: Optional[UserStatus] = None, skip: int = 0, limit: int = 100
    ) -> List[User]:
        """Return users, newest first, optionally filtered by review status."""
        stmt = select(self.model)
        if status is not None:
            stmt = stmt.where(self.model.status == status)
        stmt = stmt.order_by(self.model.created_at.desc(), self.model.email).offset(skip).limit(limit)
        return await self._all(stmt)

    async def get_many(self, ids: List) -> List[User]:
        """Return the users whose ids are in ``ids`` (missing ids are skipped)."""
        if not ids:
            return []
        stmt = select(self.model).where(self.model.id.in_(ids))
        return await self._all(stmt)
