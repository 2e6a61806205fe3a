"""
Seed script — populates the database with sample data for development / demo.

Usage:
    python -m auditvault.seed

Creates the demo accounts (password ``password123``), six funds managed by
the demo fund manager, and a handful of documents with their audit history.
A small placeholder PDF is written to the blob store for every document so
downloads work.

The script is idempotent: it checks for existing data before inserting.
"""

import asyncio
import logging
import uuid
from datetime import date, datetime, timedelta, timezone
from itertools import cycle

from sqlalchemy import select
from sqlmodel import SQLModel

import auditvault.db.base  # noqa: F401
from auditvault.core.logging import setup_logging
from auditvault.core.security import hash_password
from auditvault.db.session import AsyncSessionLocal, engine
from auditvault.models.audit_log import AuditAction, AuditLogEntry
from auditvault.models.document import Document, DocumentStatus, DocumentType
from auditvault.models.fund import Fund
from auditvault.models.user import User, UserRole, UserStatus
from auditvault.storage.blob_store import blob_store, make_file_key

logger = logging.getLogger(__name__)

DEMO_PASSWORD = "password123"

# (email, name, role, status)
USERS = [
    ("admin@auditvault.com", "System Admin", UserRole.ADMIN, UserStatus.ACTIVE),
    ("auditor@auditvault.com", "Alice Auditor", UserRole.AUDITOR, UserStatus.ACTIVE),
    ("manager@funds.com", "Bob Manager", UserRole.FUND_MANAGER, UserStatus.ACTIVE),
    ("compliance@auditvault.com", "Sarah Compliance", UserRole.COMPLIANCE_OFFICER, UserStatus.ACTIVE),
    ("newguy@test.com", "New Guy (Pending)", UserRole.AUDITOR, UserStatus.PENDING),
]

# (code, name, region, currency)
FUNDS = [
    ("GF-001", "Global Tech Fund", "North America", "USD"),
    ("GF-002", "European Growth Fund", "Europe", "EUR"),
    ("GF-003", "Asian Opportunities", "Asia Pacific", "SGD"),
    ("GF-004", "Green Energy ETF", "Global", "USD"),
    ("GF-005", "Crypto Index Fund", "Global", "USD"),
    ("RE-101", "Real Estate Prime", "North America", "USD"),
]

DOCUMENTS_PER_FUND = 2

PLACEHOLDER_PDF = (
    b"%PDF-1.4\n1 0 obj<</Type/Catalog/Pages 2 0 R>>endobj\n"
    b"2 0 obj<</Type/Pages/Kids[]/Count 0>>endobj\ntrailer<</Root 1 0 R>>\n%%EOF\n"
)


async def seed() -> None:
    """Create tables and insert sample data if the database is empty."""
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    async with AsyncSessionLocal() as session:
        result = await session.execute(select(User).limit(1))
        if result.scalars().first() is not None:
            logger.info("Database already contains data; skipping seed.")
            return

        password_hash = hash_password(DEMO_PASSWORD)
        users = {
            email: User(
                email=email, name=name, password_hash=password_hash, role=role, status=status
            )
            for email, name, role, status in USERS
        }
        session.add_all(users.values())

        manager = users["manager@funds.com"]
        funds = [
            Fund(code=code, name=name, region=region, currency=currency, managers=[manager])
            for code, name, region, currency in FUNDS
        ]
        session.add_all(funds)
        await session.flush()

        uploader = users["compliance@auditvault.com"]
        reviewer = users["auditor@auditvault.com"]
        doc_types = cycle(list(DocumentType))
        statuses = cycle(
            [
                DocumentStatus.PENDING,
                DocumentStatus.APPROVED,
                DocumentStatus.IN_REVIEW,
                DocumentStatus.REJECTED,
            ]
        )
        created_at = datetime.now(timezone.utc) - timedelta(days=30)
        documents = 0

        for fund in funds:
            for _ in range(DOCUMENTS_PER_FUND):
                doc_type = next(doc_types)
                status = next(statuses)
                file_key = make_file_key(f"{fund.code}-{doc_type.value.lower()}.pdf")
                await blob_store.put(file_key, PLACEHOLDER_PDF)

                created_at += timedelta(hours=7)
                document = Document(
                    id=uuid.uuid4(),
                    title=f"{doc_type.value.replace('_', ' ').title()} - {fund.code}",
                    fund_id=fund.id,
                    type=doc_type,
                    status=status,
                    period_start=date(2024, 1, 1),
                    period_end=date(2024, 12, 31),
                    file_key=file_key,
                    file_size=len(PLACEHOLDER_PDF),
                    content_type="application/pdf",
                    uploaded_by_id=uploader.id,
                    created_at=created_at,
                    updated_at=created_at,
                )
                session.add(document)
                await session.flush()
                session.add(
                    AuditLogEntry(
                        document_id=document.id,
                        user_id=uploader.id,
                        action=AuditAction.CREATED,
                        timestamp=created_at,
                        details={"fileKey": file_key},
                    )
                )
                if status != DocumentStatus.PENDING:
                    session.add(
                        AuditLogEntry(
                            document_id=document.id,
                            user_id=reviewer.id,
                            action=AuditAction.STATUS_CHANGED,
                            timestamp=created_at + timedelta(hours=2),
                            details={
                                "oldStatus": DocumentStatus.PENDING.value,
                                "newStatus": status.value,
                                "comment": "Seeded review",
                            },
                        )
                    )
                documents += 1

        await session.commit()

        logger.info(
            "Seeded %d users, %d funds, %d documents (password: %s)",
            len(USERS),
            len(funds),
            documents,
            DEMO_PASSWORD,
        )


if __name__ == "__main__":
    setup_logging()
    asyncio.run(seed())
