"""
Shared pytest fixtures for unit tests.

All tests run with ``USE_SQLITE=true`` and mocked dependencies so that
no real database or network I/O is needed.  This ensures tests are
fast, deterministic, and fully isolated.
"""

import os

os.environ.setdefault("USE_SQLITE", "true")

import uuid  # noqa: E402
from datetime import date, datetime, timezone  # noqa: E402
from typing import Any, Dict, Optional  # noqa: E402
from unittest.mock import AsyncMock, MagicMock  # noqa: E402

import pytest  # noqa: E402

from auditvault.models.audit_log import AuditAction, AuditLogEntry  # noqa: E402
from auditvault.models.document import Document, DocumentStatus, DocumentType  # noqa: E402
from auditvault.models.fund import Fund  # noqa: E402
from auditvault.models.user import User, UserRole, UserStatus  # noqa: E402

# ────────────────────────────────────────────────────────────────────────────
# Factory helpers — create domain objects with sensible defaults
# ────────────────────────────────────────────────────────────────────────────

USER_ID = uuid.UUID("11111111-1111-1111-1111-111111111111")
FUND_ID = uuid.UUID("22222222-2222-2222-2222-222222222222")
DOCUMENT_ID = uuid.UUID("33333333-3333-3333-3333-333333333333")
FUND_ID_2 = uuid.UUID("44444444-4444-4444-4444-444444444444")
USER_ID_2 = uuid.UUID("55555555-5555-5555-5555-555555555555")

FILE_KEY = "0123456789abcdef0123456789abcdef-report.pdf"


def make_user(
    *,
    id: uuid.UUID = USER_ID,
    role: UserRole = UserRole.AUDITOR,
    status: UserStatus = UserStatus.ACTIVE,
    email: Optional[str] = None,
    name: str = "Test User",
    password_hash: str = "not-a-real-hash",
) -> User:
    """Create a User domain object with sensible test defaults."""
    return User(
        id=id,
        email=email or f"{role.value.lower()}@example.com",
        name=name,
        password_hash=password_hash,
        role=role,
        status=status,
        created_at=datetime.now(timezone.utc),
    )


def make_fund(
    *,
    id: uuid.UUID = FUND_ID,
    code: str = "GF-001",
    name: str = "Global Tech Fund",
    region: Optional[str] = "North America",
    currency: Optional[str] = "USD",
) -> Fund:
    """Create a Fund domain object with sensible test defaults."""
    return Fund(
        id=id,
        code=code,
        name=name,
        region=region,
        currency=currency,
        created_at=datetime.now(timezone.utc),
    )


def make_document(
    *,
    id: uuid.UUID = DOCUMENT_ID,
    fund_id: uuid.UUID = FUND_ID,
    title: str = "Q1 2025 Report",
    type: DocumentType = DocumentType.QUARTERLY_REPORT,
    status: DocumentStatus = DocumentStatus.PENDING,
    file_key: str = FILE_KEY,
    uploaded_by_id: Optional[uuid.UUID] = USER_ID,
    fund: Optional[Fund] = None,
) -> Document:
    """Create a Document domain object with sensible test defaults."""
    now = datetime.now(timezone.utc)
    document = Document(
        id=id,
        title=title,
        fund_id=fund_id,
        type=type,
        status=status,
        period_start=date(2025, 1, 1),
        period_end=date(2025, 3, 31),
        file_key=file_key,
        file_size=1024,
        content_type="application/pdf",
        uploaded_by_id=uploaded_by_id,
        created_at=now,
        updated_at=now,
    )
    document.fund = fund or make_fund(id=fund_id)
    return document


def make_audit_entry(
    *,
    id: int = 1,
    document_id: uuid.UUID = DOCUMENT_ID,
    user: Optional[User] = None,
    action: AuditAction = AuditAction.CREATED,
    details: Optional[Dict[str, Any]] = None,
) -> AuditLogEntry:
    """Create an AuditLogEntry with its acting user attached."""
    actor = user or make_user()
    entry = AuditLogEntry(
        id=id,
        document_id=document_id,
        user_id=actor.id,
        action=action,
        timestamp=datetime.now(timezone.utc),
        details=details if details is not None else {"fileKey": FILE_KEY},
    )
    entry.user = actor
    return entry


# ────────────────────────────────────────────────────────────────────────────
# Pytest fixtures
# ────────────────────────────────────────────────────────────────────────────


@pytest.fixture()
def mock_db():
    """A mocked AsyncSession that tracks add/commit/refresh/rollback calls."""
    session = AsyncMock()
    session.add = MagicMock()
    session.commit = AsyncMock()
    session.refresh = AsyncMock()
    session.rollback = AsyncMock()
    session.flush = AsyncMock()
    session.execute = AsyncMock()
    session.get = AsyncMock()
    session.merge = AsyncMock()
    session.delete = AsyncMock()
    return session


@pytest.fixture()
def admin():
    return make_user(role=UserRole.ADMIN, email="admin@example.com")


@pytest.fixture()
def auditor():
    return make_user(role=UserRole.AUDITOR, email="auditor@example.com")


@pytest.fixture()
def compliance_officer():
    return make_user(role=UserRole.COMPLIANCE_OFFICER, email="compliance@example.com")


@pytest.fixture()
def fund_manager():
    return make_user(id=USER_ID_2, role=UserRole.FUND_MANAGER, email="manager@example.com")
