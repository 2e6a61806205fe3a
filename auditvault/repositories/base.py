"""
Generic async repository (Data Access Layer).

Implements the Repository pattern on top of SQLAlchemy's ``AsyncSession``.
Concrete repositories inherit from ``BaseRepository[T]`` and add the
entity-specific queries their service needs.

Design rationale:
- Generic typing (``ModelType``) avoids duplicating CRUD logic per entity.
- ``create`` and ``update`` are single-entity operations that commit on
  their own.  Multi-row changes that must land together (a
  document plus its audit entry) use ``add`` to stage rows and one
  ``commit`` at the end, so the whole unit succeeds or is rolled back.
- **IntegrityError** is NOT caught here.  Each service maps
  it to its own domain error (duplicate email, duplicate fund code, ...).
- **OperationalError** (connection loss, deadlock) IS caught here and the
  session is rolled back + error re-raised, preventing dirty session leaks.
"""

import logging
from typing import Any, Generic, List, Optional, Type, TypeVar

from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel

from auditvault.core.resilience import db_circuit_breaker

logger = logging.getLogger(__name__)

ModelType = TypeVar("ModelType", bound=SQLModel)


class BaseRepository(Generic[ModelType]):
    """
    Generic CRUD repository for SQLModel entities.

    Parameters
    ----------
    model : Type[ModelType]
        The SQLModel class this repository manages.
    db : AsyncSession
        An active async database session (injected per-request).

    Resilience:
        Every database call is routed through the global ``db_circuit_breaker``
        so a database outage fails fast with ``CircuitBreakerError`` instead
        of piling up requests waiting on connection timeouts.
    """

    def __init__(self, model: Type[ModelType], db: AsyncSession):
        self.model = model
        self.db = db

    # ── Internal helpers ──

    async def _execute_with_circuit_breaker(
        self, func: Any, *args: Any, **kwargs: Any
    ) -> Any:
        """Route any async callable through the circuit breaker."""
        return await db_circuit_breaker.call(func, *args, **kwargs)

    async def _all(self, stmt: Any) -> List[Any]:
        """Run a SELECT through the breaker and return every scalar row."""

        async def _run() -> List[Any]:
            result = await self.db.execute(stmt)
            return list(result.scalars().all())

        return await self._execute_with_circuit_breaker(_run)

    async def _first(self, stmt: Any) -> Optional[Any]:
        async def _run() -> Optional[Any]:
            result = await self.db.execute(stmt)
            return result.scalars().first()

        return await self._execute_with_circuit_breaker(_run)

    async def _commit_or_rollback(self, operation: str) -> None:
        try:
            await self.db.commit()
        except OperationalError:
            await self.db.rollback()
            logger.error("OperationalError during %s for %s", operation, self.model.__name__)
            raise

    # ── Reads ──

    async def get(self, id: Any) -> Optional[ModelType]:
        """Fetch a single entity by primary key.  Returns ``None`` if not found."""

        async def _get() -> Optional[ModelType]:
            return await self.db.get(self.model, id)

        return await self._execute_with_circuit_breaker(_get)

    # ── Single-entity writes (commit immediately) ──

    async def create(self, obj_in: ModelType) -> ModelType:
        """
        Insert a new entity and return the refreshed instance.

        **IntegrityError** is NOT caught; services handle it with
        domain-specific messages.
        """

        async def _create() -> ModelType:
            self.db.add(obj_in)
            await self._commit_or_rollback("create")
            await self.db.refresh(obj_in)
            return obj_in

        return await self._execute_with_circuit_breaker(_create)

    async def update(self, entity: ModelType) -> ModelType:
        """
        Persist changes to an already-tracked entity.

        The caller mutates the entity's attributes before calling this.
        """

        async def _update() -> ModelType:
            merged = await self.db.merge(entity)
            await self._commit_or_rollback("update")
            await self.db.refresh(merged)
            return merged

        return await self._execute_with_circuit_breaker(_update)

    # ── Unit of work (stage several rows, commit once) ──

    async def add(self, entity: Any) -> Any:
        """
        Stage ``entity`` in the current transaction and flush it.

        Flushing assigns database-generated keys and surfaces constraint
        violations early; nothing is visible to other sessions until
        :meth:`commit`.
        """

        async def _add() -> Any:
            self.db.add(entity)
            await self.db.flush()
            return entity

        return await self._execute_with_circuit_breaker(_add)

    async def commit(self) -> None:
        """Commit every staged change; roll back and re-raise on failure."""

        async def _commit() -> None:
            try:
                await self.db.commit()
            except Exception:
                await self.db.rollback()
                logger.error("Commit failed for %s unit of work; rolled back", self.model.__name__)
                raise

        await self._execute_with_circuit_breaker(_commit)

    async def rollback(self) -> None:
        """Discard every staged change."""
        await self.db.rollback()
