"""
Audit service — writes and reads the document audit trail.

Entries are staged in the caller's transaction: ``log_action`` flushes but
never commits, so the audit row lands (or is rolled back) together with the
change it describes.  Failures are never swallowed; losing an audit record
must fail the whole mutation.
"""

import logging
from typing import Any, Dict, List, Optional
from uuid import UUID

from auditvault.models.audit_log import AuditAction, AuditLogEntry
from auditvault.repositories.audit_repo import AuditLogRepository

logger = logging.getLogger(__name__)


class AuditService:
    """Append-only writer and reader for :class:`AuditLogEntry`."""

    def __init__(self, audit_repo: AuditLogRepository):
        self._repo = audit_repo

    async def log_action(
        self,
        user_id: UUID,
        document_id: UUID,
        action: AuditAction,
        details: Optional[Dict[str, Any]] = None,
    ) -> AuditLogEntry:
        """Stage one entry in the current transaction."""
        entry = AuditLogEntry(
            user_id=user_id,
            document_id=document_id,
            action=action,
            details=dict(details or {}),
        )
        await self._repo.add(entry)
        logger.debug("Staged %s audit entry for document %s", action.value, document_id)
        return entry

    async def get_history(self, document_id: UUID) -> List[AuditLogEntry]:
        """Entries for ``document_id``, newest first, with the acting user loaded."""
        return await self._repo.get_history(document_id)
