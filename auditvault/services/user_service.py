"""
User service — account directory and account review.

New accounts start PENDING; an ADMIN or COMPLIANCE_OFFICER (REVIEW_USERS)
approves or rejects them here.
"""

import logging
from typing import List, Optional
from uuid import UUID

from auditvault.core.exceptions import BusinessRuleViolation, NotFoundException
from auditvault.core.permissions import Capability, require_capability
from auditvault.models.user import User, UserStatus
from auditvault.repositories.user_repo import UserRepository

logger = logging.getLogger(__name__)


class UserService:
    """Encapsulates look-ups and review rules for :class:`User`."""

    def __init__(self, user_repo: UserRepository):
        self._repo = user_repo

    async def list_users(
        self,
        actor: User,
        status: Optional[UserStatus] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[User]:
        require_capability(actor, Capability.REVIEW_USERS, "Your role is not allowed to list users")
        return await self._repo.list_users(status=status, skip=skip, limit=limit)

    async def get_user(self, user_id: UUID) -> User:
        user = await self._repo.get(user_id)
        if not user:
            raise NotFoundException("User", user_id)
        return user

    async def update_status(self, user_id: UUID, status: UserStatus, actor: User) -> User:
        """
        Approve (ACTIVE) or reject (REJECTED) an account.

        Raises :class:`AuthorizationException` without REVIEW_USERS and
        :class:`BusinessRuleViolation` when reviewers target their own account.
        """
        require_capability(
            actor, Capability.REVIEW_USERS, "Your role is not allowed to review accounts"
        )
        user = await self.get_user(user_id)
        if user.id == actor.id:
            raise BusinessRuleViolation("You cannot change the status of your own account")

        previous = user.status
        user.status = status
        updated = await self._repo.update(user)
        logger.info(
            "User %s status %s -> %s by %s", user_id, previous.value, status.value, actor.id
        )
        return updated
