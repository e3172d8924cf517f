"""
EventGraphStore: durable record of documentable events.

Purpose
-------
Records structured events that producers consider worth explaining later,
lets consumers attach an outcome and a narrative to them, and reconstructs
whole workflows by walking `related_events` links.

Responsibilities
----------------
- Generate ids and classify `should_document` on publish
- Write to the injected backend; on a durable write failure keep the event in
  an in-memory fallback instead of dropping it
- Filtered history queries, optionally replaced by a graph traversal
- The single mutation path: outcome updates
- Narrative upsert and lookup

Design Decisions
----------------
- **Backend injected once**: the store is handed an `EventStoreBackend` at
  construction and never re-selects it.
- **Nothing here is fatal**: backend failures are logged; writes fall back,
  reads degrade to [] / None. Malformed input is the exception: it raises
  ValidationError before any I/O.
- **No retry**: a failed durable write lands in the fallback and stays there.
- **Fallback is visible**: reads consult the fallback as well, so an event
  that fell back can still be fetched, queried, traversed and updated.
- **Last write wins**: concurrent outcome updates are not merged.

Dependencies
------------
- eventmesh.core.config (traversal depth and pool limits)
- eventmesh.core.logging.logger (structured logging)
- eventmesh.core.exceptions (StoreBackendError)
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Mapping, Optional, Union

from eventmesh.core.config import Config
from eventmesh.core.exceptions import StoreBackendError
from eventmesh.core.logging.logger import LogContext, get_logger
from eventmesh.modules.event_graph.backends.base import EventStoreBackend
from eventmesh.modules.event_graph.backends.memory import InMemoryBackend
from eventmesh.modules.event_graph.classifier import resolve_should_document
from eventmesh.modules.event_graph.traversal import traverse
from eventmesh.modules.event_graph.types import (
    DocumentableEvent,
    EventDraft,
    EventHistoryQuery,
    NarrativeContext,
    NarrativeFields,
    OutcomeUpdate,
    new_id,
)
from eventmesh.modules.event_graph.validators import EventValidator

logger = get_logger(__name__)

DraftInput = Union[EventDraft, Mapping[str, Any]]
OutcomeInput = Union[OutcomeUpdate, Mapping[str, Any]]
NarrativeInput = Union[NarrativeFields, Mapping[str, Any]]


def _error_extra(exc: StoreBackendError) -> dict[str, Any]:
    """Log fields describing a backend failure."""
    return {
        "backend": exc.backend,
        "store_operation": exc.operation,
        "error": str(exc.original_error),
        "error_type": type(exc.original_error).__name__,
        "error_code": exc.error_code,
        "severity": exc.severity.value,
    }


class EventGraphStore:
    """
    Async facade over an event store backend.

    Parameters
    ----------
    backend:
        Active storage strategy.
    fallback:
        Where writes go when a durable backend fails. Created automatically
        for durable backends; never used for a non-durable one.
    max_depth:
        Default traversal depth. Config.EVENT_GRAPH_MAX_DEPTH if None.
    pool_limit:
        Max events fetched as the traversal working set.
        Config.EVENT_GRAPH_POOL_LIMIT if None.

    Examples
    --------
    >>> store = EventGraphStore(InMemoryBackend())
    >>> event = await store.publish_documentable(
    ...     EventDraft(event_name="widget.created", source="wizard")
    ... )
    >>> event.should_document
    True
    """

    def __init__(
        self,
        backend: EventStoreBackend,
        *,
        fallback: Optional[InMemoryBackend] = None,
        max_depth: Optional[int] = None,
        pool_limit: Optional[int] = None,
    ) -> None:
        self._backend = backend
        if backend.durable:
            self._fallback: Optional[InMemoryBackend] = (
                fallback if fallback is not None else InMemoryBackend()
            )
        else:
            self._fallback = None

        self._max_depth = EventValidator.validate_optional_depth(
            max_depth, Config.EVENT_GRAPH_MAX_DEPTH
        )
        self._pool_limit = Config.EVENT_GRAPH_POOL_LIMIT if pool_limit is None else pool_limit
        self._fallback_writes = 0

        logger.info(
            "EventGraphStore initialized",
            extra={
                "backend": backend.name,
                "durable": backend.durable,
                "fallback_enabled": self._fallback is not None,
                "max_depth": self._max_depth,
                "pool_limit": self._pool_limit,
            },
        )

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    @property
    def backend(self) -> EventStoreBackend:
        return self._backend

    @property
    def fallback(self) -> Optional[InMemoryBackend]:
        return self._fallback

    async def start(self) -> None:
        """
        Start the backend.

        A durable backend that cannot start leaves the store running on its
        memory fallback; later durable calls fail and fall back the same way.
        """
        try:
            await self._backend.start()
        except StoreBackendError as exc:
            if self._fallback is None:
                raise
            logger.warning(
                "Durable event store unavailable at start; using memory fallback",
                extra=_error_extra(exc),
            )

    async def close(self) -> None:
        await self._backend.close()

    async def health_check(self) -> bool:
        return await self._backend.health_check()

    def get_stats(self) -> dict[str, Any]:
        return {
            "backend": self._backend.name,
            "durable": self._backend.durable,
            "fallback_writes": self._fallback_writes,
            "fallback_events": len(self._fallback) if self._fallback is not None else 0,
        }

    # ------------------------------------------------------------------ #
    # Publish
    # ------------------------------------------------------------------ #

    async def publish_documentable(self, draft: DraftInput) -> DocumentableEvent:
        """
        Record a new event.

        Parameters
        ----------
        draft:
            EventDraft, or its camelCase dict form. ``should_document`` left
            as None is decided by the auto-classifier.

        Returns
        -------
        DocumentableEvent:
            The stored event with its generated id. Returned even when the
            durable write failed and the event went to the fallback.

        Raises
        ------
        ValidationError
            If the draft is malformed.
        """
        if not isinstance(draft, EventDraft):
            draft = EventDraft.from_dict(draft)
        EventValidator.validate_draft(draft)

        event = DocumentableEvent.from_draft(
            draft,
            event_id=new_id(),
            should_document=resolve_should_document(
                draft.event_name, draft.should_document
            ),
        )

        async with LogContext(component="event_graph", operation="publish_documentable"):
            try:
                await self._backend.insert_event(event)
            except StoreBackendError as exc:
                await self._write_fallback_event(event, exc)
                return event

            logger.info(
                "Documentable event recorded",
                extra={
                    "event_id": event.id,
                    "event_name": event.event_name,
                    "source": event.source,
                    "should_document": event.should_document,
                    "backend": self._backend.name,
                },
            )
        return event

    async def _write_fallback_event(
        self, event: DocumentableEvent, exc: StoreBackendError
    ) -> None:
        if self._fallback is None:
            logger.error(
                "Event store write failed; event not stored",
                extra={
                    "event_id": event.id,
                    "event_name": event.event_name,
                    **_error_extra(exc),
                },
            )
            return

        await self._fallback.insert_event(event)
        self._fallback_writes += 1
        logger.warning(
            "Durable event write failed; event kept in memory fallback",
            extra={
                "event_id": event.id,
                "event_name": event.event_name,
                "fallback_events": len(self._fallback),
                **_error_extra(exc),
            },
        )

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    async def get_event(self, event_id: str) -> Optional[DocumentableEvent]:
        """Return the event, or None if unknown or the store is unreadable."""
        EventValidator.validate_event_id(event_id)

        event: Optional[DocumentableEvent] = None
        try:
            event = await self._backend.get_event(event_id)
        except StoreBackendError as exc:
            logger.error(
                "Failed to read event",
                extra={"event_id": event_id, **_error_extra(exc)},
            )

        if event is None and self._fallback is not None:
            event = await self._fallback.get_event(event_id)
        return event

    async def query_event_history(
        self,
        query: Optional[EventHistoryQuery] = None,
        **filters: Any,
    ) -> list[DocumentableEvent]:
        """
        Query recorded events.

        Filters may be passed as an EventHistoryQuery, as keyword arguments
        (``event_name=..., start_time=...``), or both; keywords win.

        Returns
        -------
        list[DocumentableEvent]:
            Matching events ordered by timestamp. With ``include_related`` and
            ``event_id``, the events reachable from ``event_id`` among the
            matches, in traversal order ([] if the start event is not among
            them). [] when the store is unreadable.

        Raises
        ------
        ValidationError
            If the filters are malformed.

        Examples
        --------
        >>> workflow = await store.query_event_history(
        ...     event_id=started.id, include_related=True, max_depth=3
        ... )
        """
        query = query or EventHistoryQuery()
        if filters:
            query = replace(query, **filters)
        EventValidator.validate_query(query)

        limit = self._pool_limit if query.wants_traversal else None

        events: list[DocumentableEvent] = []
        try:
            events = await self._backend.query_events(query, limit)
        except StoreBackendError as exc:
            logger.error(
                "Failed to query event history",
                extra={
                    "event_name": query.event_name or "N/A",
                    "source": query.source or "N/A",
                    **_error_extra(exc),
                },
            )

        if self._fallback is not None and len(self._fallback):
            events = self._merge(events, await self._fallback.query_events(query, limit), limit)

        if not query.wants_traversal:
            return events

        assert query.event_id is not None
        depth = query.max_depth if query.max_depth is not None else self._max_depth
        result = traverse(events, query.event_id, depth)

        logger.debug(
            "Event graph traversed",
            extra={
                "event_id": query.event_id,
                "pool_size": len(events),
                "max_depth": depth,
                "result_size": len(result),
            },
        )
        return result

    @staticmethod
    def _merge(
        primary: list[DocumentableEvent],
        extra: list[DocumentableEvent],
        limit: Optional[int],
    ) -> list[DocumentableEvent]:
        if not extra:
            return primary

        seen = {event.id for event in primary}
        merged = primary + [event for event in extra if event.id not in seen]
        merged.sort(key=lambda event: event.timestamp)
        if limit is not None:
            merged = merged[-limit:] if limit > 0 else []
        return merged

    # ------------------------------------------------------------------ #
    # Outcome
    # ------------------------------------------------------------------ #

    async def update_event_outcome(self, event_id: str, update: OutcomeInput) -> None:
        """
        Record what actually happened after an event.

        Replaces ``context.outcome`` and, when given, ``user_intent.impact_metric``.
        Unknown ids are a logged no-op; nothing is created. Backend failures are
        logged and not raised.

        Raises
        ------
        ValidationError
            If ``event_id`` or ``update`` is malformed.
        """
        if not isinstance(update, OutcomeUpdate):
            update = OutcomeUpdate(
                outcome=update.get("outcome"),  # type: ignore[arg-type]
                impact_metric=update.get("impactMetric", update.get("impact_metric")),
            )
        EventValidator.validate_event_id(event_id)
        EventValidator.validate_outcome(update)

        updated: Optional[DocumentableEvent] = None
        failed = False
        try:
            updated = await self._backend.update_outcome(event_id, update)
        except StoreBackendError as exc:
            failed = True
            logger.error(
                "Failed to update event outcome",
                extra={"event_id": event_id, **_error_extra(exc)},
            )

        if updated is None and self._fallback is not None:
            updated = await self._fallback.update_outcome(event_id, update)

        if updated is not None:
            logger.info(
                "Event outcome updated",
                extra={
                    "event_id": event_id,
                    "event_name": updated.event_name,
                    "has_impact_metric": update.impact_metric is not None,
                },
            )
        elif not failed:
            logger.info(
                "Outcome update for unknown event ignored",
                extra={"event_id": event_id},
            )

    # ------------------------------------------------------------------ #
    # Narratives
    # ------------------------------------------------------------------ #

    async def save_narrative_context(
        self, event_id: str, fields: NarrativeInput
    ) -> None:
        """
        Create or wholesale-replace the narrative of ``event_id``.

        Saving twice leaves exactly one narrative holding the second call's
        content. Backend failures fall back to memory and are logged.
        """
        if not isinstance(fields, NarrativeFields):
            fields = NarrativeFields.from_dict(fields)
        EventValidator.validate_event_id(event_id)

        try:
            await self._backend.upsert_narrative(event_id, fields)
        except StoreBackendError as exc:
            if self._fallback is None:
                logger.error(
                    "Failed to save narrative context",
                    extra={"event_id": event_id, **_error_extra(exc)},
                )
                return

            await self._fallback.upsert_narrative(event_id, fields)
            logger.warning(
                "Durable narrative write failed; narrative kept in memory fallback",
                extra={"event_id": event_id, **_error_extra(exc)},
            )
            return

        logger.debug(
            "Narrative context saved",
            extra={"event_id": event_id, "backend": self._backend.name},
        )

    async def get_narrative_context(self, event_id: str) -> Optional[NarrativeContext]:
        EventValidator.validate_event_id(event_id)

        narrative: Optional[NarrativeContext] = None
        try:
            narrative = await self._backend.get_narrative(event_id)
        except StoreBackendError as exc:
            logger.error(
                "Failed to read narrative context",
                extra={"event_id": event_id, **_error_extra(exc)},
            )

        if narrative is None and self._fallback is not None:
            narrative = await self._fallback.get_narrative(event_id)
        return narrative
