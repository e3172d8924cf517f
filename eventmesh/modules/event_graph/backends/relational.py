"""
RelationalBackend: SQL-backed event store.

Wraps `EventGraphRepository` and turns every SQLAlchemy or driver failure
into `StoreBackendError`, so the store has exactly one exception type to
handle. Owns the lifecycle of its `DatabaseService` when asked to.
"""

from __future__ import annotations

from datetime import datetime
from typing import Awaitable, Optional, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from eventmesh.core.database.service import (
    DatabaseInitializationError,
    DatabaseNotInitializedError,
    DatabaseService,
)
from eventmesh.core.exceptions import DatabaseError, StoreBackendError
from eventmesh.core.logging.logger import get_logger
from eventmesh.modules.event_graph.backends.base import EventStoreBackend
from eventmesh.modules.event_graph.repository import EventGraphRepository
from eventmesh.modules.event_graph.types import (
    DocumentableEvent,
    EventHistoryQuery,
    NarrativeContext,
    NarrativeFields,
    OutcomeUpdate,
)

logger = get_logger(__name__)

T = TypeVar("T")

# Failures that mean "the durable store could not do it"
_BACKEND_FAILURES = (SQLAlchemyError, DatabaseNotInitializedError, OSError)
_START_FAILURES = _BACKEND_FAILURES + (DatabaseInitializationError, DatabaseError)


class RelationalBackend(EventStoreBackend):
    """
    Durable store on PostgreSQL (asyncpg) or SQLite (aiosqlite).

    Parameters
    ----------
    database_service:
        Service providing sessions and transactions.
    create_schema:
        Create missing tables in `start()`.
    """

    name = "relational"
    durable = True

    def __init__(
        self,
        database_service: DatabaseService,
        *,
        create_schema: bool = False,
    ) -> None:
        self._db_service = database_service
        self._repository = EventGraphRepository(database_service)
        self._create_schema = create_schema

    @property
    def database_service(self) -> DatabaseService:
        return self._db_service

    async def start(self) -> None:
        try:
            await self._db_service.initialize()
            if self._create_schema:
                await self._db_service.create_schema()
        except _START_FAILURES as exc:
            raise StoreBackendError(self.name, "start", exc) from exc

    async def close(self) -> None:
        await self._db_service.shutdown()

    async def health_check(self) -> bool:
        return await self._db_service.health_check()

    async def _run(self, operation: str, call: Awaitable[T]) -> T:
        try:
            return await call
        except _BACKEND_FAILURES as exc:
            raise StoreBackendError(self.name, operation, exc) from exc

    # ------------------------------------------------------------------ #
    # Events
    # ------------------------------------------------------------------ #

    async def insert_event(self, event: DocumentableEvent) -> DocumentableEvent:
        return await self._run("insert_event", self._repository.insert_event(event))

    async def get_event(self, event_id: str) -> Optional[DocumentableEvent]:
        return await self._run("get_event", self._repository.get_event(event_id))

    async def query_events(
        self, query: EventHistoryQuery, limit: Optional[int] = None
    ) -> list[DocumentableEvent]:
        return await self._run(
            "query_events", self._repository.query_events(query, limit)
        )

    async def update_outcome(
        self, event_id: str, update: OutcomeUpdate
    ) -> Optional[DocumentableEvent]:
        return await self._run(
            "update_outcome", self._repository.update_outcome(event_id, update)
        )

    # ------------------------------------------------------------------ #
    # Narratives
    # ------------------------------------------------------------------ #

    async def upsert_narrative(
        self,
        event_id: str,
        fields: NarrativeFields,
        now: Optional[datetime] = None,
    ) -> NarrativeContext:
        return await self._run(
            "upsert_narrative",
            self._repository.upsert_narrative(event_id, fields, now),
        )

    async def get_narrative(self, event_id: str) -> Optional[NarrativeContext]:
        return await self._run(
            "get_narrative", self._repository.get_narrative(event_id)
        )
