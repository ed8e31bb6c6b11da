"""Datastore — async SQLAlchemy engine with connect probe, sessions and health checks.

Invariants:
    - connect() only returns once a round-trip (SELECT 1) succeeded; it raises otherwise
    - is_connected is True only after a successful connect() and before dispose()
    - Every session auto-rolls-back on exception (no partial commits leak)
    - SQLAlchemy exceptions inside a session surface as DatabaseError (tier 3)

Design Decisions:
    - Engine created lazily on first connect(): a bad URL fails inside the supervisor's
      retry loop instead of at import time
    - pool_pre_ping=True: stale connections after a datastore restart are replaced on
      checkout, which is the only mid-life reconnect behavior
    - Pool sizing is skipped for SQLite (its pools reject size arguments)
    - expire_on_commit=False: prevents lazy-load issues in async context
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.exc import (
    DBAPIError, IntegrityError, OperationalError, SQLAlchemyError,
)
from sqlalchemy.ext.asyncio import (
    AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine,
)

from mernapp.core.errors import DatabaseError
from mernapp.db.base import Base

logger = logging.getLogger(__name__)

# Most specific first: IntegrityError and OperationalError are DBAPIError subclasses
_FAILURES: tuple[tuple[type[SQLAlchemyError], str, str], ...] = (
    (IntegrityError, "Integrity constraint violated", "commit"),
    (OperationalError, "Connection or operational error", "execute"),
    (DBAPIError, "Database driver error", "query"),
)


def _describe_failure(exc: SQLAlchemyError) -> tuple[str, str]:
    for exc_type, message, operation in _FAILURES:
        if isinstance(exc, exc_type):
            return message, operation
    return "Database operation failed", "unknown"


class Datastore:
    """Owns the single async engine of this process."""

    def __init__(
        self, database_url: str, pool_size: int = 20, max_overflow: int = 10,
    ):
        self.database_url = database_url
        self.pool_size = pool_size
        self.max_overflow = max_overflow
        self.engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        """Create the engine if needed and prove the datastore answers."""
        if self.engine is None:
            self.engine = self._create_engine()
            self._session_factory = async_sessionmaker(
                self.engine, class_=AsyncSession, expire_on_commit=False,
            )
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        self._connected = True

    async def create_all(self) -> None:
        """Create missing tables for every model registered on Base."""
        async with self._require_engine().begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Provide session with auto-rollback on exception."""
        if self._session_factory is None:
            raise DatabaseError("Datastore not connected", "session")
        session = self._session_factory()
        try:
            yield session
        except SQLAlchemyError as e:
            await session.rollback()
            message, operation = _describe_failure(e)
            logger.error(f"{message} during {operation}: {e}")
            raise DatabaseError(message, operation) from e
        finally:
            await session.close()

    async def health_check(self) -> bool:
        """Check datastore connectivity (for readiness probes)."""
        if self.engine is None:
            return False
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"DB health check failed: {e}")
            return False

    async def dispose(self) -> None:
        if self.engine is not None:
            await self.engine.dispose()
        self._connected = False

    def _create_engine(self) -> AsyncEngine:
        kwargs: dict = {"pool_pre_ping": True}
        if not self.database_url.startswith("sqlite"):
            kwargs.update(
                pool_size=self.pool_size,
                max_overflow=self.max_overflow,
                pool_recycle=3600,
            )
        return create_async_engine(self.database_url, **kwargs)

    def _require_engine(self) -> AsyncEngine:
        if self.engine is None:
            raise DatabaseError("Datastore not connected", "create_all")
        return self.engine
