"""
Document repository — data-access layer for the ``documents`` table.

Adds the filtered listing behind ``GET /documents`` and the two-step delete
that removes a document together with its audit history.
"""

from typing import List, Optional
from uuid import UUID

from sqlalchemy import delete
from sqlalchemy.future import select

from auditvault.models.audit_log import AuditLogEntry
from auditvault.models.document import Document, DocumentStatus, DocumentType
from auditvault.repositories.base import BaseRepository


class DocumentRepository(BaseRepository[Document]):
    """Concrete repository for :class:`Document` entities."""

    async def list_filtered(
        self,
        fund_id: Optional[UUID] = None,
        status: Optional[DocumentStatus] = None,
        doc_type: Optional[DocumentType] = None,
        fund_ids: Optional[List[UUID]] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Document]:
        """
        Return documents matching every given filter, newest first.

        Parameters
        ----------
        fund_id, status, doc_type :
            Optional equality filters.
        fund_ids :
            When not ``None``, restricts results to these funds (used to
            scope FUND_MANAGER callers).  An empty list yields no rows.
        """

        async def _list() -> List[Document]:
            if fund_ids is not None and not fund_ids:
                return []
            stmt = select(self.model)
            if fund_id is not None:
                stmt = stmt.where(self.model.fund_id == fund_id)
            if status is not None:
                stmt = stmt.where(self.model.status == status)
            if doc_type is not None:
                stmt = stmt.where(self.model.type == doc_type)
            if fund_ids is not None:
                stmt = stmt.where(self.model.fund_id.in_(fund_ids))
            stmt = (
                stmt.order_by(self.model.created_at.desc(), self.model.id)
                .offset(skip)
                .limit(limit)
            )
            result = await self.db.execute(stmt)
            return list(result.scalars().all())

        return await self._execute_with_circuit_breaker(_list)

    async def stage_delete_with_history(self, document: Document) -> None:
        """
        Stage removal of ``document`` and all of its audit entries.

        The entries are deleted explicitly rather than relying on the
        foreign-key cascade alone.  Nothing is committed here.
        """

        async def _stage() -> None:
            await self.db.execute(
                delete(AuditLogEntry).where(AuditLogEntry.document_id == document.id)
            )
            await self.db.delete(document)
            await self.db.flush()

        await self._execute_with_circuit_breaker(_stage)

    async def get_many(self, ids: List[UUID]) -> List[Document]:
        """Return the documents whose ids are in ``ids``, in no particular order."""
        if not ids:
            return []
        stmt = select(self.model).where(self.model.id.in_(ids))
        return await self._all(stmt)
