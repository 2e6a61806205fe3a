"""
End-to-end tests of the document lifecycle against a real database.

Services, repositories and the filesystem blob store run unmocked on an
in-memory SQLite database (aiosqlite).  Each step opens a fresh session, the
way each API request gets its own.
"""

from datetime import date

import pytest
import pytest_asyncio
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel

from auditvault.core.exceptions import AuthorizationException
from auditvault.core.security import hash_password
from auditvault.db import base  # noqa: F401
from auditvault.db.session import create_sqlite_engine, make_session_factory
from auditvault.models.audit_log import AuditAction, AuditLogEntry
from auditvault.models.document import Document, DocumentStatus, DocumentType
from auditvault.models.fund import Fund
from auditvault.models.user import User, UserRole, UserStatus
from auditvault.repositories.audit_repo import AuditLogRepository
from auditvault.repositories.document_repo import DocumentRepository
from auditvault.repositories.fund_repo import FundRepository
from auditvault.schemas.document import DocumentCreate, FilePayload
from auditvault.services.audit_service import AuditService
from auditvault.services.document_service import DocumentService
from auditvault.storage.blob_store import LocalBlobStore

PDF_BYTES = b"%PDF-1.4\n% quarterly report\n"


# ────────────────────────────────────────────────────────────────────────────
# Fixtures
# ────────────────────────────────────────────────────────────────────────────


@pytest_asyncio.fixture()
async def session_factory():
    engine = create_sqlite_engine()
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield make_session_factory(engine)
    await engine.dispose()


@pytest_asyncio.fixture()
async def seeded(session_factory):
    """Four active users (one per role) and two funds; only fund A has a manager."""
    password_hash = hash_password("password123")
    users = {
        role: User(
            email=f"{role.value.lower()}@funds.com",
            name=role.value.title().replace("_", " "),
            password_hash=password_hash,
            role=role,
            status=UserStatus.ACTIVE,
        )
        for role in UserRole
    }
    fund_a = Fund(code="GF-001", name="Global Tech Fund")
    fund_b = Fund(code="GF-002", name="European Equity Fund")
    fund_a.managers = [users[UserRole.FUND_MANAGER]]

    async with session_factory() as session:
        session.add_all([*users.values(), fund_a, fund_b])
        await session.commit()

    return {
        "users": {role: user.id for role, user in users.items()},
        "fund_a": fund_a.id,
        "fund_b": fund_b.id,
    }


@pytest.fixture()
def store(tmp_path):
    return LocalBlobStore(str(tmp_path / "uploads"))


def _service(session: AsyncSession, store: LocalBlobStore) -> DocumentService:
    return DocumentService(
        doc_repo=DocumentRepository(Document, session),
        fund_repo=FundRepository(Fund, session),
        audit_service=AuditService(AuditLogRepository(AuditLogEntry, session)),
        blob_store=store,
    )


async def _upload(session_factory, store, seeded, role=UserRole.FUND_MANAGER, fund="fund_a"):
    async with session_factory() as session:
        user = await session.get(User, seeded["users"][role])
        document = await _service(session, store).create(
            DocumentCreate(
                title="Q1 2025 Report",
                fund_id=seeded[fund],
                type=DocumentType.QUARTERLY_REPORT,
                period_start=date(2025, 1, 1),
                period_end=date(2025, 3, 31),
            ),
            FilePayload(filename="q1.pdf", content_type="application/pdf", data=PDF_BYTES),
            user,
        )
        return document.id


async def _set_status(session_factory, store, seeded, document_id, role, status, comment=None):
    async with session_factory() as session:
        user = await session.get(User, seeded["users"][role])
        return await _service(session, store).update_status(document_id, status, comment, user)


# ────────────────────────────────────────────────────────────────────────────
# Scenarios
# ────────────────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_review_and_approval_flow(session_factory, store, seeded):
    document_id = await _upload(session_factory, store, seeded)

    await _set_status(
        session_factory, store, seeded, document_id,
        UserRole.COMPLIANCE_OFFICER, DocumentStatus.IN_REVIEW,
    )

    with pytest.raises(AuthorizationException):
        await _set_status(
            session_factory, store, seeded, document_id,
            UserRole.COMPLIANCE_OFFICER, DocumentStatus.APPROVED,
        )

    approved = await _set_status(
        session_factory, store, seeded, document_id,
        UserRole.AUDITOR, DocumentStatus.APPROVED, "Figures reconciled",
    )
    assert approved.status == DocumentStatus.APPROVED

    async with session_factory() as session:
        document, history = await _service(session, store).find_one(document_id)

    assert document.status == DocumentStatus.APPROVED
    assert document.fund.code == "GF-001"
    assert document.uploaded_by.role == UserRole.FUND_MANAGER
    assert [entry.action for entry in history] == [
        AuditAction.STATUS_CHANGED,
        AuditAction.STATUS_CHANGED,
        AuditAction.CREATED,
    ]
    assert history[0].details == {
        "oldStatus": "IN_REVIEW",
        "newStatus": "APPROVED",
        "comment": "Figures reconciled",
    }
    assert history[0].user.role == UserRole.AUDITOR
    assert history[1].details["oldStatus"] == "PENDING"
    assert history[2].details == {"fileKey": document.file_key}


@pytest.mark.asyncio
async def test_fund_manager_cannot_change_status(session_factory, store, seeded):
    document_id = await _upload(session_factory, store, seeded)

    with pytest.raises(AuthorizationException):
        await _set_status(
            session_factory, store, seeded, document_id,
            UserRole.FUND_MANAGER, DocumentStatus.IN_REVIEW,
        )

    async with session_factory() as session:
        history = await AuditService(AuditLogRepository(AuditLogEntry, session)).get_history(
            document_id
        )
    assert [entry.action for entry in history] == [AuditAction.CREATED]


@pytest.mark.asyncio
async def test_listing_is_scoped_for_fund_managers(session_factory, store, seeded):
    await _upload(session_factory, store, seeded, role=UserRole.FUND_MANAGER, fund="fund_a")
    await _upload(session_factory, store, seeded, role=UserRole.ADMIN, fund="fund_b")

    async with session_factory() as session:
        service = _service(session, store)
        manager = await session.get(User, seeded["users"][UserRole.FUND_MANAGER])
        auditor = await session.get(User, seeded["users"][UserRole.AUDITOR])

        managed = await service.find_all(manager)
        other_fund = await service.find_all(manager, fund_id=seeded["fund_b"])
        everything = await service.find_all(auditor)

    assert [d.fund_id for d in managed] == [seeded["fund_a"]]
    assert other_fund == []
    assert len(everything) == 2


@pytest.mark.asyncio
async def test_download_returns_stored_bytes(session_factory, store, seeded):
    document_id = await _upload(session_factory, store, seeded)

    async with session_factory() as session:
        document, stream = await _service(session, store).open_download(document_id)
        data = b"".join([chunk async for chunk in stream])

    assert data == PDF_BYTES
    assert document.file_size == len(PDF_BYTES)


@pytest.mark.asyncio
async def test_delete_removes_history_and_file(session_factory, store, seeded):
    document_id = await _upload(session_factory, store, seeded)
    await _set_status(
        session_factory, store, seeded, document_id, UserRole.AUDITOR, DocumentStatus.REJECTED
    )

    async with session_factory() as session:
        file_key = (await session.get(Document, document_id)).file_key
        await _service(session, store).remove(document_id)

    async with session_factory() as session:
        assert await session.get(Document, document_id) is None
        remaining = await session.execute(
            select(func.count()).select_from(AuditLogEntry).where(
                AuditLogEntry.document_id == document_id
            )
        )
        assert remaining.scalar_one() == 0
    assert not await store.exists(file_key)


@pytest.mark.asyncio
async def test_fund_manager_approval_leaves_no_trace(session_factory, store, seeded):
    document_id = await _upload(session_factory, store, seeded, role=UserRole.ADMIN)
    await _set_status(
        session_factory, store, seeded, document_id, UserRole.AUDITOR, DocumentStatus.APPROVED
    )

    with pytest.raises(AuthorizationException):
        await _set_status(
            session_factory, store, seeded, document_id,
            UserRole.FUND_MANAGER, DocumentStatus.APPROVED,
        )

    async with session_factory() as session:
        document, history = await _service(session, store).find_one(document_id)

    assert document.status == DocumentStatus.APPROVED
    assert len(history) == 2
    assert history[0].timestamp >= history[1].timestamp
