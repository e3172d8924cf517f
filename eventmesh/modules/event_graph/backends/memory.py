"""
InMemoryBackend: process-local event store.

Used in development when no durable store is configured, and as the fallback
that catches writes the relational backend rejects. Contents are lost when
the process exits.

Ordering: queries return events by ascending timestamp; events with equal
timestamps keep insertion order.
"""

from __future__ import annotations

import copy
from dataclasses import replace
from datetime import datetime
from typing import Optional

from eventmesh.core.database.base import utc_now
from eventmesh.core.exceptions import StoreBackendError
from eventmesh.core.logging.logger import get_logger
from eventmesh.modules.event_graph.backends.base import EventStoreBackend
from eventmesh.modules.event_graph.types import (
    DocumentableEvent,
    EventHistoryQuery,
    NarrativeContext,
    NarrativeFields,
    OutcomeUpdate,
    new_id,
)

logger = get_logger(__name__)


def _detached(event: DocumentableEvent) -> DocumentableEvent:
    """Copy of ``event`` sharing no mutable payload or metadata with it."""
    metadata = event.metadata
    if metadata is not None and metadata.extra:
        metadata = replace(metadata, extra=copy.deepcopy(dict(metadata.extra)))
    return replace(event, payload=copy.deepcopy(event.payload), metadata=metadata)


class InMemoryBackend(EventStoreBackend):
    """
    Dict-backed store.

    Every method completes without awaiting anything, so each call is atomic
    with respect to the event loop.
    """

    name = "memory"
    durable = False

    def __init__(self) -> None:
        # Insertion-ordered
        self._events: dict[str, DocumentableEvent] = {}
        self._narratives: dict[str, NarrativeContext] = {}

    def __len__(self) -> int:
        return len(self._events)

    def __contains__(self, event_id: object) -> bool:
        return event_id in self._events

    # ------------------------------------------------------------------ #
    # Events
    # ------------------------------------------------------------------ #

    async def insert_event(self, event: DocumentableEvent) -> DocumentableEvent:
        if event.id in self._events:
            raise StoreBackendError(
                self.name,
                "insert_event",
                KeyError(f"event id already exists: {event.id}"),
            )

        self._events[event.id] = _detached(event)
        logger.debug(
            "Event stored in memory",
            extra={"event_id": event.id, "event_name": event.event_name},
        )
        return _detached(event)

    async def get_event(self, event_id: str) -> Optional[DocumentableEvent]:
        event = self._events.get(event_id)
        return _detached(event) if event is not None else None

    async def query_events(
        self, query: EventHistoryQuery, limit: Optional[int] = None
    ) -> list[DocumentableEvent]:
        matched = [
            _detached(event) for event in self._events.values() if query.matches(event)
        ]
        # Stable: equal timestamps stay in insertion order
        matched.sort(key=lambda event: event.timestamp)
        if limit is not None:
            matched = matched[-limit:] if limit > 0 else []
        return matched

    async def update_outcome(
        self, event_id: str, update: OutcomeUpdate
    ) -> Optional[DocumentableEvent]:
        event = self._events.get(event_id)
        if event is None:
            return None

        updated = event.with_outcome(update)
        self._events[event_id] = updated
        return _detached(updated)

    # ------------------------------------------------------------------ #
    # Narratives
    # ------------------------------------------------------------------ #

    async def upsert_narrative(
        self,
        event_id: str,
        fields: NarrativeFields,
        now: Optional[datetime] = None,
    ) -> NarrativeContext:
        timestamp = now or utc_now()
        existing = self._narratives.get(event_id)

        narrative = NarrativeContext(
            id=existing.id if existing else new_id(),
            event_id=event_id,
            fields=fields,
            created_at=existing.created_at if existing else timestamp,
            updated_at=timestamp,
        )
        self._narratives[event_id] = narrative
        return narrative

    async def get_narrative(self, event_id: str) -> Optional[NarrativeContext]:
        return self._narratives.get(event_id)

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #

    def clear(self) -> None:
        self._events.clear()
        self._narratives.clear()
