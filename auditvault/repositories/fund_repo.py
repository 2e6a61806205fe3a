"""
Fund repository — data-access layer for the ``funds`` table.

Besides generic CRUD it answers the manager-scoping question: which funds
a FUND_MANAGER manages.
"""

from typing import List, Optional
from uuid import UUID

from sqlalchemy.future import select

from auditvault.models.fund import Fund, FundManagerLink
from auditvault.repositories.base import BaseRepository


class FundRepository(BaseRepository[Fund]):
    """Concrete repository for :class:`Fund` entities."""

    async def get_by_code(self, code: str) -> Optional[Fund]:
        stmt = select(self.model).where(self.model.code == code.upper())
        return await self._first(stmt)

    async def list_funds(
        self, manager_id: Optional[UUID] = None, skip: int = 0, limit: int = 100
    ) -> List[Fund]:
        """
        Return funds ordered by code.

        When ``manager_id`` is given only the funds linked to that manager
        are returned.
        """
        stmt = select(self.model)
        if manager_id is not None:
            stmt = stmt.join(FundManagerLink, FundManagerLink.fund_id == self.model.id).where(
                FundManagerLink.user_id == manager_id
            )
        stmt = stmt.order_by(self.model.code).offset(skip).limit(limit)
        return await self._all(stmt)

    async def managed_fund_ids(self, manager_id: UUID) -> List[UUID]:
        """Ids of every fund linked to ``manager_id``."""

        async def _managed() -> List[UUID]:
            stmt = select(FundManagerLink.fund_id).where(FundManagerLink.user_id == manager_id)
            result = await self.db.execute(stmt)
            return list(result.scalars().all())

        return await self._execute_with_circuit_breaker(_managed)

