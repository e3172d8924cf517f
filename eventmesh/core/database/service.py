"""
Async engine and session ownership for the relational event store.

Purpose
-------
``DatabaseService`` wraps one SQLAlchemy ``AsyncEngine`` built from a
``DatabaseSettings`` snapshot. The relational backend receives it by
injection and only ever touches the database through two context managers:

- ``get_session()``      reads; nothing is committed
- ``get_transaction()``  writes; commit on clean exit, rollback on error

Pooling
-------
PostgreSQL (asyncpg) uses ``AsyncAdaptedQueuePool`` sized from Config.
The testing environment always uses ``NullPool`` so every test gets fresh
connections. SQLite keeps the driver default.

On PostgreSQL each session sets ``statement_timeout`` so a stuck query
cannot hold an outcome-update row lock forever.

Errors
------
- ConfigurationError            no DATABASE_URL
- DatabaseInitializationError   engine could not be created
- DatabaseNotInitializedError   session requested before initialize()
                                or after shutdown()
- DatabaseError                 schema DDL failed
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, Optional, Type, TypeVar

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import AsyncAdaptedQueuePool, NullPool, Pool

from eventmesh.core.config.config import Config
from eventmesh.core.database.base import Base
from eventmesh.core.exceptions import ConfigurationError, DatabaseError
from eventmesh.core.logging.logger import get_logger

logger = get_logger(__name__)

ModelT = TypeVar("ModelT")


class DatabaseInitializationError(RuntimeError):
    pass


class DatabaseNotInitializedError(RuntimeError):
    pass


@dataclass(frozen=True)
class DatabaseSettings:
    """Connection settings, fixed for the life of one engine."""

    url: str
    echo: bool = False
    pool_class: Optional[Type[Pool]] = None
    pool_size: int = 5
    max_overflow: int = 10
    pool_recycle: int = 1800
    pool_timeout: int = 30
    statement_timeout_ms: int = 30_000

    @property
    def dialect(self) -> str:
        return self.url.split("://", 1)[0].split("+", 1)[0]

    @property
    def is_postgres(self) -> bool:
        return self.dialect == "postgresql"

    def engine_options(self) -> Dict[str, Any]:
        options: Dict[str, Any] = {"echo": self.echo}
        if self.pool_class is not None:
            options["poolclass"] = self.pool_class
        if self.pool_class is AsyncAdaptedQueuePool:
            options.update(
                pool_size=self.pool_size,
                max_overflow=self.max_overflow,
                pool_recycle=self.pool_recycle,
                pool_timeout=self.pool_timeout,
                pool_pre_ping=True,
            )
        return options

    @classmethod
    def from_config(cls, url: Optional[str] = None) -> DatabaseSettings:
        """
        Snapshot Config, optionally overriding the URL.

        Raises
        ------
        ConfigurationError
            Neither ``url`` nor DATABASE_URL is set.
        """
        resolved = url if url is not None else Config.DATABASE_URL
        if not isinstance(resolved, str) or not resolved.strip():
            raise ConfigurationError("DATABASE_URL", "is required for the relational store")

        if Config.is_testing():
            pool_class: Optional[Type[Pool]] = NullPool
        elif resolved.startswith("sqlite"):
            pool_class = None
        else:
            pool_class = AsyncAdaptedQueuePool

        return cls(
            url=resolved,
            echo=Config.DATABASE_ECHO,
            pool_class=pool_class,
            pool_size=Config.DATABASE_POOL_SIZE,
            max_overflow=Config.DATABASE_MAX_OVERFLOW,
            pool_recycle=Config.DATABASE_POOL_RECYCLE,
            pool_timeout=Config.DATABASE_POOL_TIMEOUT,
            statement_timeout_ms=Config.DATABASE_STATEMENT_TIMEOUT_MS,
        )


class DatabaseService:
    """
    Owns the engine and hands out sessions.

    ``initialize()`` and ``shutdown()`` are idempotent and serialized by an
    asyncio lock; sessions may be used concurrently from one event loop.
    """

    def __init__(self, settings: DatabaseSettings) -> None:
        self._settings = settings
        self._engine: Optional[AsyncEngine] = None
        self._sessions: Optional[async_sessionmaker[AsyncSession]] = None
        self._lifecycle_lock = asyncio.Lock()

    @classmethod
    def from_config(cls, url: Optional[str] = None) -> DatabaseService:
        return cls(DatabaseSettings.from_config(url))

    @property
    def settings(self) -> DatabaseSettings:
        return self._settings

    @property
    def is_initialized(self) -> bool:
        return self._engine is not None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        async with self._lifecycle_lock:
            if self._engine is not None:
                return
            try:
                engine = create_async_engine(
                    self._settings.url, **self._settings.engine_options()
                )
            except (SQLAlchemyError, ImportError, ValueError) as exc:
                logger.error(
                    "Could not create database engine",
                    extra={"dialect": self._settings.dialect, "error_type": type(exc).__name__},
                    exc_info=True,
                )
                raise DatabaseInitializationError(str(exc)) from exc

            self._engine = engine
            self._sessions = async_sessionmaker(engine, expire_on_commit=False)
            logger.info(
                "Database engine ready",
                extra={
                    "dialect": self._settings.dialect,
                    "pool": getattr(self._settings.pool_class, "__name__", "default"),
                },
            )

    async def create_schema(self) -> None:
        """Create any table registered on ``Base.metadata`` that is missing."""
        engine = self._engine_or_raise()
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except (SQLAlchemyError, OSError) as exc:
            raise DatabaseError("create_schema", exc) from exc
        logger.info("Event store schema ensured", extra={"tables": sorted(Base.metadata.tables)})

    async def shutdown(self) -> None:
        async with self._lifecycle_lock:
            engine, self._engine, self._sessions = self._engine, None, None
            if engine is None:
                return
            await engine.dispose()
            logger.info("Database engine disposed", extra={"dialect": self._settings.dialect})

    async def health_check(self) -> bool:
        """``SELECT 1``; False instead of raising."""
        if self._engine is None:
            return False
        started = time.perf_counter()
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as exc:
            logger.warning(
                "Database health check failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
            return False
        logger.debug(
            "Database health check passed",
            extra={"duration_ms": round((time.perf_counter() - started) * 1000, 2)},
        )
        return True

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def _engine_or_raise(self) -> AsyncEngine:
        if self._engine is None:
            raise DatabaseNotInitializedError(
                "DatabaseService.initialize() has not been awaited (or shutdown() was)"
            )
        return self._engine

    def _new_session(self) -> AsyncSession:
        self._engine_or_raise()
        assert self._sessions is not None
        return self._sessions()

    async def _limit_statements(self, session: AsyncSession) -> None:
        if self._settings.is_postgres:
            timeout = int(self._settings.statement_timeout_ms)
            await session.execute(text(f"SET LOCAL statement_timeout = {timeout}"))

    @asynccontextmanager
    async def get_session(self) -> AsyncIterator[AsyncSession]:
        """Session for reads; closed on exit without committing."""
        session = self._new_session()
        try:
            await self._limit_statements(session)
            yield session
        finally:
            await session.close()

    @asynccontextmanager
    async def get_transaction(self) -> AsyncIterator[AsyncSession]:
        """
        Session inside one transaction.

        Commits when the block exits cleanly. Any exception rolls back and
        propagates unchanged. Do not call ``commit()`` inside the block.
        """
        session = self._new_session()
        started = time.perf_counter()
        try:
            await self._limit_statements(session)
            yield session
            await session.commit()
        except Exception as exc:
            await session.rollback()
            logger.warning(
                "Transaction rolled back",
                extra={
                    "error_type": type(exc).__name__,
                    "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                },
            )
            raise
        finally:
            await session.close()

    @staticmethod
    async def get_locked_entity(
        session: AsyncSession, model: Type[ModelT], pk: Any
    ) -> Optional[ModelT]:
        """``SELECT ... FOR UPDATE`` by primary key; SQLite ignores the lock."""
        return await session.get(model, pk, with_for_update=True)
