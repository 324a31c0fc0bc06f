"""PostgreSQL unit of work: one session, one transaction, row locks held until commit."""

from __future__ import annotations

import logging

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lead_router.adapters.persistence.database import async_session_factory
from lead_router.adapters.persistence.repositories import (
    SqlAssignmentRecordRepository,
    SqlWorkerRepository,
    SqlWorkItemRepository,
)
from lead_router.application.ports.unit_of_work import UnitOfWork
from lead_router.config import settings
from lead_router.domain.errors import (
    AssignmentError,
    LockTimeout,
    PersistenceFailure,
    TransactionConflict,
)

logger = logging.getLogger(__name__)

LOCK_NOT_AVAILABLE = "55P03"
SERIALIZATION_FAILURE = "40001"
DEADLOCK_DETECTED = "40P01"
UNIQUE_VIOLATION = "23505"

_CONFLICT_STATES = {SERIALIZATION_FAILURE, DEADLOCK_DETECTED, UNIQUE_VIOLATION}

# asyncpg raises connection failures (refused, DNS, timeouts) unwrapped
DB_ERRORS = (SQLAlchemyError, OSError)


def _sqlstate(exc: BaseException) -> str | None:
    orig = getattr(exc, "orig", None)
    for candidate in (orig, getattr(orig, "__cause__", None)):
        if candidate is None:
            continue
        # asyncpg exposes ``sqlstate``, psycopg2 exposes ``pgcode``
        code = getattr(candidate, "sqlstate", None) or getattr(candidate, "pgcode", None)
        if code:
            return code
    return None


def translate_db_error(exc: Exception) -> AssignmentError:
    """Map a driver/SQLAlchemy failure onto the assignment error taxonomy."""
    if isinstance(exc, AssignmentError):
        return exc
    code = _sqlstate(exc) if isinstance(exc, DBAPIError) else None
    if code == LOCK_NOT_AVAILABLE:
        return LockTimeout(f"Lock wait exceeded lock_timeout ({code})")
    if code in _CONFLICT_STATES:
        return TransactionConflict(f"Concurrent transaction conflict ({code})")
    if isinstance(exc, OSError):
        return PersistenceFailure(f"Database unavailable: {exc.__class__.__name__}: {exc}")
    return PersistenceFailure(f"Database error: {exc.__class__.__name__}: {exc}")


class SqlUnitOfWork(UnitOfWork):
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] = async_session_factory,
        lock_timeout_ms: int = settings.lock_timeout_ms,
    ):
        self._session_factory = session_factory
        self._lock_timeout_ms = lock_timeout_ms
        self._session: AsyncSession | None = None

    async def __aenter__(self) -> SqlUnitOfWork:
        self._session = self._session_factory()
        self.workers = SqlWorkerRepository(self._session)
        self.work_items = SqlWorkItemRepository(self._session)
        self.assignments = SqlAssignmentRecordRepository(self._session)
        if self._lock_timeout_ms > 0:
            try:
                # SET LOCAL does not accept bind parameters; the value is an int
                await self._session.execute(
                    text(f"SET LOCAL lock_timeout = {int(self._lock_timeout_ms)}")
                )
            except DB_ERRORS as exc:
                await self._close()
                raise translate_db_error(exc) from exc
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self._close()
        if isinstance(exc, DB_ERRORS):
            raise translate_db_error(exc) from exc

    async def _close(self) -> None:
        if self._session is None:
            return
        try:
            await self._session.rollback()
        except DB_ERRORS:
            logger.exception("Rollback failed")
        finally:
            await self._session.close()
            self._session = None

    async def commit(self) -> None:
        try:
            await self._session.commit()
        except DB_ERRORS as exc:
            raise translate_db_error(exc) from exc

    async def rollback(self) -> None:
        if self._session is not None:
            await self._session.rollback()

    @property
    def session(self) -> AsyncSession:
        """The underlying session, for read-only queries such as analytics."""
        if self._session is None:
            raise RuntimeError("Unit of work is not active")
        return self._session
