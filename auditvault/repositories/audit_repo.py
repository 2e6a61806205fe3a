"""
Audit log repository — data-access layer for the ``audit_logs`` table.

Entries are only ever inserted (via ``add``) and read; there is no update
path.
"""

from typing import List
from uuid import UUID

from sqlalchemy.future import select

from auditvault.models.audit_log import AuditLogEntry
from auditvault.repositories.base import BaseRepository


class AuditLogRepository(BaseRepository[AuditLogEntry]):
    """Concrete repository for :class:`AuditLogEntry` rows."""

    async def get_history(self, document_id: UUID) -> List[AuditLogEntry]:
        """
        Return every entry for ``document_id``, newest first.

        Ties on ``timestamp`` are broken by the autoincrement ``id`` so the
        order always matches insertion order reversed.  The acting user is
        loaded with each entry.
        """

        async def _history() -> List[AuditLogEntry]:
            stmt = (
                select(self.model)
                .where(self.model.document_id == document_id)
                .order_by(self.model.timestamp.desc(), self.model.id.desc())
            )
            result = await self.db.execute(stmt)
            return list(result.scalars().all())

        return await self._execute_with_circuit_breaker(_history)
