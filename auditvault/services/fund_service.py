"""
Fund service — business logic layer for fund operations.

All business rules and validation live here; the service never exposes
repository internals to the caller.

Raises domain-specific exceptions from ``auditvault.core.exceptions`` so the
service layer stays framework-agnostic (no direct FastAPI imports).
"""

import logging
from typing import List
from uuid import UUID

from sqlalchemy.exc import IntegrityError

from auditvault.core.exceptions import (
    BusinessRuleViolation,
    ConflictException,
    NotFoundException,
)
from auditvault.core.permissions import Capability, has_capability, require_capability
from auditvault.models.fund import Fund
from auditvault.models.user import User, UserRole
from auditvault.repositories.fund_repo import FundRepository
from auditvault.repositories.user_repo import UserRepository
from auditvault.schemas.fund import FundCreate, FundUpdate

logger = logging.getLogger(__name__)


class FundService:
    """Encapsulates CRUD + business rules for :class:`Fund`."""

    def __init__(self, fund_repo: FundRepository, user_repo: UserRepository):
        self._repo = fund_repo
        self._user_repo = user_repo

    # ── Queries ──

    async def find_all(self, user: User, skip: int = 0, limit: int = 100) -> List[Fund]:
        """Return funds visible to ``user``; fund managers see only their own."""
        manager_id = None if has_capability(user.role, Capability.VIEW_ALL_FUNDS) else user.id
        return await self._repo.list_funds(manager_id=manager_id, skip=skip, limit=limit)

    async def get(self, fund_id: UUID) -> Fund:
        """
        Retrieve a single fund by ID.

        Raises :class:`NotFoundException` if the fund does not exist.
        """
        fund = await self._repo.get(fund_id)
        if not fund:
            raise NotFoundException("Fund", fund_id)
        return fund

    # ── Commands ──

    async def create(self, fund_in: FundCreate, user: User) -> Fund:
        """
        Create a new fund.

        Raises :class:`AuthorizationException` without MANAGE_FUNDS,
        :class:`ConflictException` for a duplicate code and
        :class:`BusinessRuleViolation` for invalid manager ids.
        """
        require_capability(user, Capability.MANAGE_FUNDS, "Your role is not allowed to create funds")

        if await self._repo.get_by_code(fund_in.code):
            raise ConflictException(f"A fund with code '{fund_in.code}' already exists")

        fund = Fund(**fund_in.model_dump(exclude={"manager_ids"}))
        fund.managers = await self._load_managers(fund_in.manager_ids)
        try:
            created = await self._repo.create(fund)
        except IntegrityError as exc:
            await self._repo.db.rollback()
            logger.warning("IntegrityError creating fund %s: %s", fund_in.code, exc)
            raise ConflictException(f"A fund with code '{fund_in.code}' already exists")
        logger.info("Created fund %s (%s) by user %s", created.id, created.code, user.id)
        return created

    async def update(self, fund_id: UUID, fund_in: FundUpdate, user: User) -> Fund:
        """
        Partial update of an existing fund.

        Only fields present in the request body are applied; ``manager_ids``
        replaces the manager set.
        """
        require_capability(user, Capability.MANAGE_FUNDS, "Your role is not allowed to update funds")
        fund = await self.get(fund_id)

        changes = fund_in.model_dump(exclude_unset=True, exclude={"manager_ids"})
        new_code = changes.get("code")
        if new_code and new_code != fund.code:
            existing = await self._repo.get_by_code(new_code)
            if existing and existing.id != fund.id:
                raise ConflictException(f"A fund with code '{new_code}' already exists")
        for key, value in changes.items():
            setattr(fund, key, value)
        if fund_in.manager_ids is not None:
            fund.managers = await self._load_managers(fund_in.manager_ids)

        try:
            updated = await self._repo.update(fund)
        except IntegrityError as exc:
            await self._repo.db.rollback()
            logger.warning("IntegrityError updating fund %s: %s", fund_id, exc)
            raise ConflictException("Fund update conflicts with an existing fund")
        logger.info("Updated fund %s by user %s", updated.id, user.id)
        return updated

    # ── Internal helpers ──

    async def _load_managers(self, manager_ids: List[UUID]) -> List[User]:
        """Resolve ``manager_ids`` to FUND_MANAGER users (422 on any bad id)."""
        wanted = list(dict.fromkeys(manager_ids))
        users = await self._user_repo.get_many(wanted)
        found = {u.id: u for u in users}
        missing = [str(i) for i in wanted if i not in found]
        if missing:
            raise BusinessRuleViolation(f"Unknown manager ids: {', '.join(missing)}")
        not_managers = [str(u.id) for u in users if u.role != UserRole.FUND_MANAGER]
        if not_managers:
            raise BusinessRuleViolation(
                f"Users are not fund managers: {', '.join(not_managers)}"
            )
        return [found[i] for i in wanted]
