"""
Role-based capability table.

The whole authorization policy is the ``ROLE_CAPABILITIES`` mapping below;
services ask :func:`require_capability` instead of comparing role strings, so
the policy can be reviewed (and tested) in one place.
"""

import logging
from enum import Enum
from typing import Dict, FrozenSet

from auditvault.core.exceptions import AuthorizationException
from auditvault.models.document import DocumentStatus
from auditvault.models.user import User, UserRole

logger = logging.getLogger(__name__)


class Capability(str, Enum):
    """Actions gated by role."""

    MANAGE_FUNDS = "manage_funds"
    CHANGE_DOCUMENT_STATUS = "change_document_status"
    APPROVE_DOCUMENTS = "approve_documents"
    REVIEW_USERS = "review_users"
    VIEW_ALL_FUNDS = "view_all_funds"


ROLE_CAPABILITIES: Dict[UserRole, FrozenSet[Capability]] = {
    UserRole.ADMIN: frozenset(
        {
            Capability.MANAGE_FUNDS,
            Capability.CHANGE_DOCUMENT_STATUS,
            Capability.APPROVE_DOCUMENTS,
            Capability.REVIEW_USERS,
            Capability.VIEW_ALL_FUNDS,
        }
    ),
    UserRole.AUDITOR: frozenset(
        {
            Capability.CHANGE_DOCUMENT_STATUS,
            Capability.APPROVE_DOCUMENTS,
            Capability.VIEW_ALL_FUNDS,
        }
    ),
    UserRole.COMPLIANCE_OFFICER: frozenset(
        {
            Capability.MANAGE_FUNDS,
            Capability.CHANGE_DOCUMENT_STATUS,
            Capability.REVIEW_USERS,
            Capability.VIEW_ALL_FUNDS,
        }
    ),
    # Fund managers only see the funds they manage.
    UserRole.FUND_MANAGER: frozenset(),
}

# Extra capability needed to move a document *into* a given status.
_STATUS_CAPABILITIES: Dict[DocumentStatus, Capability] = {
    DocumentStatus.APPROVED: Capability.APPROVE_DOCUMENTS,
}


def has_capability(role: UserRole, capability: Capability) -> bool:
    """Return True if ``role`` grants ``capability``."""
    return capability in ROLE_CAPABILITIES.get(role, frozenset())


def require_capability(user: User, capability: Capability, message: str) -> None:
    """Raise :class:`AuthorizationException` unless ``user`` holds ``capability``."""
    if not has_capability(user.role, capability):
        logger.warning(
            "Denied %s to user %s (role=%s)", capability.value, user.id, user.role.value
        )
        raise AuthorizationException(message)


def status_capability(status: DocumentStatus) -> Capability:
    """Capability required, on top of CHANGE_DOCUMENT_STATUS, to set ``status``."""
    return _STATUS_CAPABILITIES.get(status, Capability.CHANGE_DOCUMENT_STATUS)
