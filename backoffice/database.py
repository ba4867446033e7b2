"""
Database store, unit-of-work management, and base model class.

This module sets up SQLAlchemy 2.0 with async support. Key components:

  - Base: Declarative base class that all ORM models inherit from
  - Store: Owns the async engine and session factory. One Store is built
    in the application lifespan and held on app.state.store; nothing in
    the codebase reaches for a module-level engine.
  - Store.unit_of_work(): One atomic unit — commit on success, rollback on
    any exception. Every balance mutation and the record that explains it
    are written inside the same unit.
  - get_store() / get_db(): FastAPI dependencies.

Isolation:
  SQLite has no row locks, so every SQLite unit of work starts with
  BEGIN IMMEDIATE. That takes the database write lock up front, which
  serialises concurrent writers: two admins approving the same withdrawal
  run one after the other, and the second one sees the first one's result.
  Other databases run at DB_ISOLATION_LEVEL (SERIALIZABLE by default) and the
  services lock the rows they read with SELECT ... FOR UPDATE.

Failures:
  Driver-level errors (lock timeouts, lost connections, constraint
  violations) are converted to StorageFailureError after rollback. Nothing
  from a failed unit is applied and nothing is retried automatically.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import Depends, Request
from sqlalchemy import event
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from backoffice.exceptions import StorageFailureError

logger = logging.getLogger(__name__)

# Seconds a SQLite writer waits for the write lock before giving up
SQLITE_BUSY_TIMEOUT = 15


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    All models inherit from this class, which provides metadata tracking
    for table creation and common declarative mapping features.
    """
    pass


def _use_immediate_transactions(engine: AsyncEngine) -> None:
    """Make every SQLite transaction take the write lock when it begins."""

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        # Stop the sqlite3 driver from issuing its own deferred BEGIN
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


class Store:
    """
    The persistence dependency passed to every component that writes.

    Lifecycle is tied to the process: main.py builds the Store on startup
    and disposes of it on shutdown. Tests build their own Store against a
    throwaway database and install it on app.state.
    """

    def __init__(
        self,
        url: str,
        *,
        echo: bool = False,
        isolation_level: str | None = None,
    ):
        self.url = url
        self.is_sqlite = url.startswith("sqlite")

        engine_kwargs: dict = {"echo": echo}
        if self.is_sqlite:
            engine_kwargs["connect_args"] = {"timeout": SQLITE_BUSY_TIMEOUT}
        elif isolation_level:
            engine_kwargs["isolation_level"] = isolation_level

        self.engine: AsyncEngine = create_async_engine(url, **engine_kwargs)
        if self.is_sqlite:
            _use_immediate_transactions(self.engine)

        # expire_on_commit=False keeps attributes readable after commit —
        # otherwise accessing them would trigger a lazy load outside the
        # session, which fails in async context.
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    async def create_all(self) -> None:
        """Create all tables (development convenience; no migrations yet)."""
        database = self.engine.url.database
        if self.is_sqlite and database and database != ":memory:":
            Path(database).parent.mkdir(parents=True, exist_ok=True)
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()

    @asynccontextmanager
    async def unit_of_work(self) -> AsyncIterator[AsyncSession]:
        """
        Run a block as one atomic unit.

        Usage:
            async with store.unit_of_work() as db:
                await funding_service.transition(db, ...)

        The session commits when the block exits normally. Any exception —
        a domain error such as InsufficientFundsError or a driver error —
        rolls back every write made in the block.
        """
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except DBAPIError as exc:
                await session.rollback()
                logger.error("Unit of work rolled back after storage error: %s", exc)
                raise StorageFailureError() from exc
            except Exception:
                await session.rollback()
                raise


def get_store(request: Request) -> Store:
    """FastAPI dependency returning the Store built at startup."""
    return request.app.state.store


async def get_db(store: Store = Depends(get_store)) -> AsyncIterator[AsyncSession]:
    """
    FastAPI dependency that provides a session for read-only endpoints.

    Usage in a route:
        @router.get("/items")
        async def list_items(db: AsyncSession = Depends(get_db)):
            ...

    Mutating endpoints open their own unit of work on the Store instead, so
    the commit happens before the response is built.
    """
    async with store.unit_of_work() as session:
        yield session
