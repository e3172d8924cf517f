"""
Event Graph Repository

Purpose
-------
Data access layer for `event_history` and `narrative_context`. Translates
between ORM rows and the immutable event graph types and owns every SQL
statement the relational backend issues.

Responsibilities
----------------
- Insert event rows
- Fetch a single event by id
- Filtered history queries pushed down to SQL
- Outcome update under a row lock
- Narrative upsert keyed by event id

Non-Responsibilities
--------------------
- Fallback and error degradation (handled by EventGraphStore)
- Input validation (handled by EventValidator)

Errors are logged with context and re-raised unchanged.
"""

from __future__ import annotations

import time
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import select

from eventmesh.core.database.base import utc_now
from eventmesh.core.logging.logger import get_logger
from eventmesh.modules.event_graph.model import EventHistory, NarrativeContextRow
from eventmesh.modules.event_graph.types import (
    DocumentableEvent,
    EventHistoryQuery,
    NarrativeContext,
    NarrativeFields,
    OutcomeUpdate,
    new_id,
)

if TYPE_CHECKING:
    from eventmesh.core.database.service import DatabaseService

logger = get_logger(__name__)


class EventGraphRepository:
    """
    SQL access for the durable event graph.

    All writes run inside `DatabaseService.get_transaction()`; reads use
    `get_session()`.
    """

    def __init__(self, database_service: DatabaseService) -> None:
        self._db_service = database_service

        logger.debug("EventGraphRepository initialized")

    # ═══════════════════════════════════════════════════════════════════════
    # EVENTS
    # ═══════════════════════════════════════════════════════════════════════

    async def insert_event(self, event: DocumentableEvent) -> DocumentableEvent:
        start_time = time.monotonic()

        try:
            async with self._db_service.get_transaction() as session:
                session.add(EventHistory.from_event(event))
                await session.flush()

        except Exception as exc:
            logger.error(
                "Failed to insert event",
                extra={
                    "event_id": event.id,
                    "event_name": event.event_name,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
                exc_info=True,
            )
            raise

        logger.debug(
            "Event row inserted",
            extra={
                "event_id": event.id,
                "event_name": event.event_name,
                "latency_ms": round((time.monotonic() - start_time) * 1000, 2),
            },
        )
        return event

    async def get_event(self, event_id: str) -> Optional[DocumentableEvent]:
        try:
            async with self._db_service.get_session() as session:
                row = await session.get(EventHistory, event_id)
                return row.to_event() if row is not None else None

        except Exception as exc:
            logger.error(
                "Failed to get event by id",
                extra={
                    "event_id": event_id,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
                exc_info=True,
            )
            raise

    async def query_events(
        self,
        query: EventHistoryQuery,
        limit: Optional[int] = None,
    ) -> list[DocumentableEvent]:
        """
        Events matching the filters of ``query``, oldest first.

        With ``limit`` the most recent ``limit`` matches are returned (still
        oldest first). ``event_id`` / ``include_related`` are ignored here.
        """
        try:
            async with self._db_service.get_session() as session:
                stmt = select(EventHistory)

                if query.event_name is not None:
                    stmt = stmt.where(EventHistory.event_name == query.event_name)
                if query.source is not None:
                    stmt = stmt.where(EventHistory.source == query.source)
                if query.user_id is not None:
                    stmt = stmt.where(EventHistory.user_id == query.user_id)
                if query.session_id is not None:
                    stmt = stmt.where(EventHistory.session_id == query.session_id)
                if query.start_time is not None:
                    stmt = stmt.where(EventHistory.timestamp >= query.start_time)
                if query.end_time is not None:
                    stmt = stmt.where(EventHistory.timestamp <= query.end_time)

                if limit is not None:
                    stmt = stmt.order_by(
                        EventHistory.timestamp.desc(), EventHistory.created_at.desc()
                    ).limit(limit)
                    result = await session.execute(stmt)
                    rows = list(result.scalars().all())
                    rows.reverse()
                else:
                    stmt = stmt.order_by(
                        EventHistory.timestamp.asc(), EventHistory.created_at.asc()
                    )
                    result = await session.execute(stmt)
                    rows = list(result.scalars().all())

                return [row.to_event() for row in rows]

        except Exception as exc:
            logger.error(
                "Failed to query event history",
                extra={
                    "event_name": query.event_name or "N/A",
                    "source": query.source or "N/A",
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
                exc_info=True,
            )
            raise

    async def update_outcome(
        self, event_id: str, update: OutcomeUpdate
    ) -> Optional[DocumentableEvent]:
        """
        Replace the outcome of one event under a row lock.

        Returns
        -------
        Optional[DocumentableEvent]
            The updated event, or None when no row has ``event_id``.
        """
        try:
            async with self._db_service.get_transaction() as session:
                row = await self._db_service.get_locked_entity(
                    session, EventHistory, event_id
                )
                if row is None:
                    return None

                updated = row.to_event().with_outcome(update)
                record = updated.to_record()
                # New dict objects so the JSON columns are flagged dirty
                row.context = record["context"]
                row.user_intent = record["user_intent"]
                return updated

        except Exception as exc:
            logger.error(
                "Failed to update event outcome",
                extra={
                    "event_id": event_id,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
                exc_info=True,
            )
            raise

    # ═══════════════════════════════════════════════════════════════════════
    # NARRATIVES
    # ═══════════════════════════════════════════════════════════════════════

    async def get_narrative(self, event_id: str) -> Optional[NarrativeContext]:
        try:
            async with self._db_service.get_session() as session:
                result = await session.execute(
                    select(NarrativeContextRow).where(
                        NarrativeContextRow.event_id == event_id
                    )
                )
                row = result.scalar_one_or_none()
                return row.to_narrative() if row is not None else None

        except Exception as exc:
            logger.error(
                "Failed to get narrative context",
                extra={
                    "event_id": event_id,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
                exc_info=True,
            )
            raise

    async def upsert_narrative(
        self,
        event_id: str,
        fields: NarrativeFields,
        now: Optional[datetime] = None,
    ) -> NarrativeContext:
        """
        Insert or wholesale-replace the narrative of ``event_id``.

        An existing row keeps its ``id`` and ``created_at``; every content
        field is overwritten and ``updated_at`` refreshed.
        """
        timestamp = now or utc_now()
        values = fields.to_record()

        try:
            async with self._db_service.get_transaction() as session:
                result = await session.execute(
                    select(NarrativeContextRow)
                    .where(NarrativeContextRow.event_id == event_id)
                    .with_for_update()
                )
                row = result.scalar_one_or_none()

                if row is None:
                    row = NarrativeContextRow(
                        id=new_id(),
                        event_id=event_id,
                        created_at=timestamp,
                        updated_at=timestamp,
                        **values,
                    )
                    session.add(row)
                else:
                    for column, value in values.items():
                        setattr(row, column, value)
                    row.updated_at = timestamp

                await session.flush()
                return row.to_narrative()

        except Exception as exc:
            logger.error(
                "Failed to save narrative context",
                extra={
                    "event_id": event_id,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
                exc_info=True,
            )
            raise
