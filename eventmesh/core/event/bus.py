"""
eventmesh EventBus: synchronous pattern-based publish/subscribe.

Purpose
-------
Lets independently rendered widgets publish facts and react to facts
published by other widgets, while keeping a bounded trace of recent traffic
for real-time debugging.

Responsibilities
----------------
- Register subscriptions and hand back an idempotent unsubscribe callable
- Append every publish to a bounded FIFO log, delivered or not
- Deliver to every matching subscription in registration order
- Isolate subscriber failures (one raising handler never blocks the others)
- Global delivery switch; "safe mode" is the disabled state
- Metrics and introspection for debugging surfaces

Design Decisions
----------------
- **Instance-based**: one bus is constructed by the application and passed
  explicitly to whoever needs it. There is no module-level singleton.
- **Synchronous dispatch**: `publish` returns only after every matching
  handler has run or raised. Nothing can interleave mid-dispatch on a
  single event loop, so each publish is delivered atomically.
- **Log first, deliver second**: safe mode still records the event, and
  re-enabling delivery never replays what was missed.
- **Fire-and-forget**: `publish` never raises because of a subscriber.

Dependencies
------------
- eventmesh.core.config (EVENT_LOG_CAPACITY)
- eventmesh.core.logging.logger (structured logging)
- eventmesh.core.event.registry (SubscriptionRegistry)
- eventmesh.core.event.router (EventRouter)
- eventmesh.core.event.metrics (EventMetricsRecorder, EventMetrics)
- eventmesh.core.event.errors (handle_subscriber_error)
- eventmesh.core.event.context (apply_event_log_context)
"""

from __future__ import annotations

from collections import deque
from typing import Any, Optional

from eventmesh.core.config import Config
from eventmesh.core.event.context import apply_event_log_context
from eventmesh.core.event.errors import handle_subscriber_error
from eventmesh.core.event.metrics import EventMetrics, EventMetricsRecorder
from eventmesh.core.event.registry import SubscriptionRegistry
from eventmesh.core.event.router import EventRouter
from eventmesh.core.event.types import (
    EventHandler,
    EventPayload,
    LiveEvent,
    Subscription,
    SubscriptionInfo,
    Unsubscribe,
)
from eventmesh.core.logging.logger import get_logger

logger = get_logger(__name__)


class EventBus:
    """
    In-process event bus for dashboard widgets.

    Thread Safety
    -------------
    Designed for a single-threaded event loop. All methods are synchronous
    and must be called from the same thread.

    Examples
    --------
    >>> bus = EventBus()
    >>> received = []
    >>> unsubscribe = bus.subscribe("github.*", received.append, owner_id="jira")
    >>> bus.publish("github.pr.selected", {"jiraTicket": "SCRUM-5"}, source="github")
    >>> received[0]["jiraTicket"]
    'SCRUM-5'
    >>> unsubscribe()
    """

    def __init__(
        self,
        registry: Optional[SubscriptionRegistry] = None,
        router: Optional[EventRouter] = None,
        metrics: Optional[EventMetricsRecorder] = None,
        *,
        log_capacity: Optional[int] = None,
        enabled: bool = True,
        enable_metrics: bool = True,
    ) -> None:
        """
        Initialize EventBus.

        Parameters
        ----------
        registry:
            Optional SubscriptionRegistry. Creates one around ``router`` if None.
        router:
            Optional EventRouter used by the default registry.
        metrics:
            Optional EventMetricsRecorder. Creates default if None.
        log_capacity:
            Size of the recent-event log. Uses Config.EVENT_LOG_CAPACITY if None.
        enabled:
            Initial delivery state. False starts the bus in safe mode.
        enable_metrics:
            Whether to collect metrics. Default True.
        """
        capacity = Config.EVENT_LOG_CAPACITY if log_capacity is None else log_capacity
        if capacity < 1:
            raise ValueError(f"log_capacity must be at least 1, got {capacity}")

        self._registry = registry if registry is not None else SubscriptionRegistry(router)
        self._metrics = metrics if metrics is not None else EventMetricsRecorder()
        self._metrics_enabled = enable_metrics
        self._log: deque[LiveEvent] = deque(maxlen=capacity)
        self._enabled = enabled

        logger.info(
            "EventBus initialized",
            extra={
                "log_capacity": capacity,
                "enabled": self._enabled,
                "metrics_enabled": self._metrics_enabled,
            },
        )

    # ------------------------------------------------------------------ #
    # Subscription API
    # ------------------------------------------------------------------ #

    def subscribe(
        self,
        pattern: str,
        handler: EventHandler,
        owner_id: Optional[str] = None,
    ) -> Unsubscribe:
        """
        Subscribe a handler to every event matching ``pattern``.

        Parameters
        ----------
        pattern:
            "*", "<prefix>.*" or an exact event name.
        handler:
            Callable taking the published payload.
        owner_id:
            Optional widget identifier, for debugging.

        Returns
        -------
        Unsubscribe:
            Callable removing exactly this subscription. Calling it again is
            a no-op.

        Examples
        --------
        >>> off = bus.subscribe("jira.*", on_jira_event, owner_id="github-widget")
        >>> off()
        >>> off()  # already removed, nothing happens
        """
        subscription = Subscription.create(pattern, handler, owner_id)
        self._registry.add(subscription)

        if self._metrics_enabled:
            self._metrics.increment_subscription_count()

        logger.debug(
            "EventBus: subscribed",
            extra={
                "subscription_id": subscription.id,
                "pattern": pattern,
                "owner_id": owner_id or "N/A",
            },
        )

        def unsubscribe() -> None:
            self._unsubscribe(subscription.id)

        return unsubscribe

    def _unsubscribe(self, subscription_id: str) -> bool:
        removed = self._registry.remove(subscription_id)

        if removed:
            if self._metrics_enabled:
                self._metrics.decrement_subscription_count()
            logger.debug(
                "EventBus: unsubscribed",
                extra={"subscription_id": subscription_id},
            )

        return removed

    def clear_subscriptions(self) -> None:
        """
        Remove every subscription.

        Intended for tests or a full dashboard reset.
        """
        total = self._registry.clear_all()

        if self._metrics_enabled:
            self._metrics.reset_subscription_count()

        logger.info(
            "EventBus: cleared all subscriptions",
            extra={"previous_subscription_count": total},
        )

    # ------------------------------------------------------------------ #
    # Publish API
    # ------------------------------------------------------------------ #

    def publish(
        self,
        event_name: str,
        payload: EventPayload = None,
        source: Optional[str] = None,
    ) -> None:
        """
        Publish an event.

        The event is appended to the log first. When delivery is enabled,
        every matching subscription is then invoked in registration order
        with ``payload``. Handler failures are logged and skipped.

        Parameters
        ----------
        event_name:
            Dotted event name, e.g. "github.pr.selected".
        payload:
            Arbitrary structured data handed to every handler unchanged.
        source:
            Optional publisher identifier, recorded in the log.

        Examples
        --------
        >>> bus.publish("github.pr.selected", {"prNumber": 42}, source="github-widget")
        """
        self._log.append(LiveEvent(name=event_name, payload=payload, source=source))

        if self._metrics_enabled:
            self._metrics.record_publish(event_name)

        apply_event_log_context(event_name, payload, source)

        if not self._enabled:
            if self._metrics_enabled:
                self._metrics.record_suppressed(event_name)
            logger.debug(
                "EventBus: safe mode, delivery suppressed",
                extra={"event_name": event_name, "source": source or "N/A"},
            )
            return

        # Snapshot, so handlers that (un)subscribe do not alter this delivery
        subscriptions = self._registry.matching(event_name)

        if not subscriptions:
            logger.debug(
                "EventBus: no subscribers for event",
                extra={"event_name": event_name},
            )
            return

        logger.debug(
            "EventBus: delivering event",
            extra={
                "event_name": event_name,
                "source": source or "N/A",
                "subscriber_count": len(subscriptions),
                "payload_keys": list(payload.keys()) if isinstance(payload, dict) else [],
            },
        )

        for subscription in subscriptions:
            self._deliver(event_name, payload, subscription)

    def _deliver(
        self,
        event_name: str,
        payload: EventPayload,
        subscription: Subscription,
    ) -> None:
        try:
            subscription.handler(payload)
        except Exception as exc:
            handle_subscriber_error(
                logger=logger,
                event_name=event_name,
                subscription=subscription,
                exc=exc,
                metrics=self._metrics if self._metrics_enabled else None,
            )
            return

        if self._metrics_enabled:
            self._metrics.record_delivery(event_name)

    # ------------------------------------------------------------------ #
    # Delivery switch
    # ------------------------------------------------------------------ #

    @property
    def is_enabled(self) -> bool:
        return self._enabled

    @property
    def safe_mode(self) -> bool:
        """True while delivery is disabled."""
        return not self._enabled

    def set_enabled(self, enabled: bool) -> None:
        """
        Enable or disable delivery.

        Events published while disabled stay in the log but are never
        delivered, not even after delivery is re-enabled.
        """
        enabled = bool(enabled)
        if enabled == self._enabled:
            return

        self._enabled = enabled
        logger.warning(
            "EventBus: delivery %s", "enabled" if enabled else "disabled (safe mode)",
            extra={"enabled": enabled},
        )

    def toggle(self) -> bool:
        """Flip the delivery switch and return the new state."""
        self.set_enabled(not self._enabled)
        return self._enabled

    # ------------------------------------------------------------------ #
    # Event log
    # ------------------------------------------------------------------ #

    def get_log(self) -> list[LiveEvent]:
        """Return the logged events, oldest first. The list is a copy."""
        return list(self._log)

    def clear_log(self) -> None:
        self._log.clear()
        logger.debug("EventBus: event log cleared")

    @property
    def log_capacity(self) -> int:
        return self._log.maxlen or 0

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #

    def get_subscriptions(self) -> list[SubscriptionInfo]:
        """Snapshots of every subscription in registration order."""
        return self._registry.snapshot()

    def get_subscriptions_by_owner(self) -> dict[Optional[str], list[SubscriptionInfo]]:
        return self._registry.by_owner()

    def get_matching_subscriptions(self, event_name: str) -> list[SubscriptionInfo]:
        """
        Snapshots of the subscriptions that would receive ``event_name``.

        Examples
        --------
        >>> [s.pattern for s in bus.get_matching_subscriptions("github.pr.selected")]
        ['github.*', '*']
        """
        return [s.info() for s in self._registry.matching(event_name)]

    def get_subscription_count(self, event_name: Optional[str] = None) -> int:
        """
        Number of subscriptions, or of those matching ``event_name`` when given.
        """
        return self._registry.count(event_name)

    def get_all_patterns(self) -> list[str]:
        return self._registry.patterns()

    def get_metrics(self) -> Optional[EventMetrics]:
        """
        Return an immutable snapshot of current metrics.

        Returns
        -------
        Optional[EventMetrics]:
            Metrics snapshot if metrics are enabled, None otherwise.
        """
        if not self._metrics_enabled:
            return None
        return self._metrics.snapshot()

    def get_metrics_summary(self) -> dict[str, Any]:
        metrics = self.get_metrics()
        if metrics is None:
            return {}
        return metrics.get_summary()

    def enable_metrics(self) -> None:
        self._metrics_enabled = True
        logger.info("EventBus: metrics enabled")

    def disable_metrics(self) -> None:
        self._metrics_enabled = False
        logger.info("EventBus: metrics disabled")
