"""
EventStoreBackend: the storage strategy behind EventGraphStore.

Purpose
-------
One interface, two implementations (`InMemoryBackend`, `RelationalBackend`),
chosen once when the store is constructed and injected into it. The store
never asks which backend it has.

Contract
--------
- Methods are coroutines.
- Not-found is a normal result (None / False), never an exception.
- Any other failure is raised as `StoreBackendError`; the store decides
  whether to fall back or degrade.
- Returned events are immutable snapshots.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from eventmesh.modules.event_graph.types import (
    DocumentableEvent,
    EventHistoryQuery,
    NarrativeContext,
    NarrativeFields,
    OutcomeUpdate,
)


class EventStoreBackend(ABC):
    """Storage strategy for documentable events and their narratives."""

    #: Short identifier used in logs and errors
    name: str = "abstract"

    #: True when writes survive a process restart
    durable: bool = False

    async def start(self) -> None:
        """Acquire resources. Default: nothing to do."""

    async def close(self) -> None:
        """Release resources. Default: nothing to do."""

    @abstractmethod
    async def insert_event(self, event: DocumentableEvent) -> DocumentableEvent:
        """Store a new event. Ids are unique; inserting an existing id is an error."""

    @abstractmethod
    async def get_event(self, event_id: str) -> Optional[DocumentableEvent]:
        ...

    @abstractmethod
    async def query_events(
        self, query: EventHistoryQuery, limit: Optional[int] = None
    ) -> list[DocumentableEvent]:
        """
        Events matching the filters of ``query``, ordered by timestamp.

        With ``limit``, only the most recent ``limit`` matches.
        """

    @abstractmethod
    async def update_outcome(
        self, event_id: str, update: OutcomeUpdate
    ) -> Optional[DocumentableEvent]:
        """Apply ``update``; return the new event, or None if ``event_id`` is unknown."""

    @abstractmethod
    async def upsert_narrative(
        self,
        event_id: str,
        fields: NarrativeFields,
        now: Optional[datetime] = None,
    ) -> NarrativeContext:
        ...

    @abstractmethod
    async def get_narrative(self, event_id: str) -> Optional[NarrativeContext]:
        ...

    async def health_check(self) -> bool:
        return True

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name={self.name!r}, durable={self.durable})>"
