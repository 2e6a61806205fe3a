"""
Database model registry.

Importing this module ensures all table models are registered with
SQLModel's metadata, which is required before calling ``create_all()``.
"""

from auditvault.models.user import User  # noqa: F401
from auditvault.models.fund import Fund, FundManagerLink  # noqa: F401
from auditvault.models.document import Document  # noqa: F401
from auditvault.models.audit_log import AuditLogEntry  # noqa: F401
from auditvault.models.chat import ChatMessage, ChatSession  # noqa: F401
