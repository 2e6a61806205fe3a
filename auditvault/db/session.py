"""
Database engine and per-request sessions.

``get_db`` is the FastAPI dependency; every repository built for a request
shares the session it yields, so one commit covers a document and its audit
entries.
"""

from collections.abc import AsyncGenerator

from sqlalchemy import Engine, event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from auditvault.core.config import settings


def enable_sqlite_foreign_keys(sync_engine: Engine) -> None:
    """
    Turn on ``PRAGMA foreign_keys`` for every new SQLite connection.

    The audit trail relies on ``ON DELETE CASCADE`` and documents on
    ``RESTRICT``; SQLite ignores both unless the pragma is set.  The listener
    goes on the sync engine because aiosqlite wraps a sync connection.
    """

    @event.listens_for(sync_engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def create_sqlite_engine(url: str = "sqlite+aiosqlite://", echo: bool = False) -> AsyncEngine:
    """
    In-memory SQLite engine.

    StaticPool keeps a single connection, so every session sees the same
    in-memory database.
    """
    sqlite_engine = create_async_engine(
        url,
        echo=echo,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(sqlite_engine.sync_engine)
    return sqlite_engine


if settings.USE_SQLITE:
    engine = create_sqlite_engine(settings.DATABASE_URL, echo=settings.DEBUG)
else:
    engine = create_async_engine(
        settings.DATABASE_URL,
        echo=settings.DEBUG,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
        pool_pre_ping=True,
    )


def make_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # expire_on_commit=False: attributes stay readable after commit without
    # an implicit (sync) reload.
    return async_sessionmaker(bind=bind, class_=AsyncSession, expire_on_commit=False)


AsyncSessionLocal = make_session_factory(engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield one session per request; it is closed when the request ends."""
    async with AsyncSessionLocal() as session:
        yield session
