"""
EventMetrics and EventMetricsRecorder for the eventmesh EventBus.

Purpose
-------
Counters for publishing, delivery, safe-mode suppression, and subscriber
failures, with immutable snapshots for debugging surfaces.

Design Decisions
----------------
- **Immutable snapshots**: EventMetrics is frozen; mutations go through the
  recorder.
- **Per-event counters**: publishes, deliveries and errors are keyed by event
  name; suppressed publishes are keyed the same way.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class EventMetrics:
    """
    Immutable snapshot of bus metrics.

    Attributes
    ----------
    events_published:
        Event name to publish count (includes suppressed publishes).
    events_suppressed:
        Event name to count of publishes that were logged but not delivered
        because the bus was disabled.
    deliveries:
        Event name to number of successful handler invocations.
    subscriber_errors:
        Event name to number of handler invocations that raised.
    total_subscriptions:
        Current number of live subscriptions.

    Examples
    --------
    >>> metrics = EventMetrics(
    ...     events_published={"github.pr.selected": 4},
    ...     subscriber_errors={"github.pr.selected": 1},
    ...     total_subscriptions=2,
    ... )
    >>> metrics.get_summary()["error_rate"]
    25.0
    """

    events_published: dict[str, int] = field(default_factory=dict)
    events_suppressed: dict[str, int] = field(default_factory=dict)
    deliveries: dict[str, int] = field(default_factory=dict)
    subscriber_errors: dict[str, int] = field(default_factory=dict)
    total_subscriptions: int = 0

    def get_summary(self) -> dict[str, Any]:
        """
        Generate a formatted summary of metrics.

        Returns
        -------
        dict[str, Any]:
            Summary containing total and per-event publish counts, suppressed
            and delivered totals, error totals, the current subscription
            count, and ``error_rate`` (errors per publish, as a percentage).
        """
        total_events = sum(self.events_published.values())
        total_errors = sum(self.subscriber_errors.values())

        error_rate = (total_errors / max(1, total_events)) * 100.0

        return {
            "total_events_published": total_events,
            "events_by_type": dict(self.events_published),
            "total_suppressed": sum(self.events_suppressed.values()),
            "total_deliveries": sum(self.deliveries.values()),
            "total_errors": total_errors,
            "errors_by_event": dict(self.subscriber_errors),
            "total_subscriptions": self.total_subscriptions,
            "error_rate": round(error_rate, 2),
        }


class EventMetricsRecorder:
    """
    Mutable metrics recorder for one EventBus.

    Thread Safety
    -------------
    Not thread-safe.

    Examples
    --------
    >>> recorder = EventMetricsRecorder()
    >>> recorder.record_publish("jira.ticket.opened")
    >>> recorder.increment_subscription_count()
    >>> recorder.snapshot().total_subscriptions
    1
    """

    def __init__(self) -> None:
        self._events_published: defaultdict[str, int] = defaultdict(int)
        self._events_suppressed: defaultdict[str, int] = defaultdict(int)
        self._deliveries: defaultdict[str, int] = defaultdict(int)
        self._subscriber_errors: defaultdict[str, int] = defaultdict(int)
        self._total_subscriptions: int = 0

    def record_publish(self, event_name: str) -> None:
        self._events_published[event_name] += 1

    def record_suppressed(self, event_name: str) -> None:
        self._events_suppressed[event_name] += 1

    def record_delivery(self, event_name: str) -> None:
        self._deliveries[event_name] += 1

    def record_error(self, event_name: str) -> None:
        self._subscriber_errors[event_name] += 1

    @property
    def total_subscriptions(self) -> int:
        return self._total_subscriptions

    def increment_subscription_count(self) -> None:
        self._total_subscriptions += 1

    def decrement_subscription_count(self) -> None:
        """Decrement the subscription count, clamped at 0."""
        self._total_subscriptions = max(0, self._total_subscriptions - 1)

    def reset_subscription_count(self) -> None:
        self._total_subscriptions = 0

    def snapshot(self) -> EventMetrics:
        """
        Return an immutable snapshot of current metrics.

        Creates new dict instances to prevent accidental mutation leaks.
        """
        return EventMetrics(
            events_published=dict(self._events_published),
            events_suppressed=dict(self._events_suppressed),
            deliveries=dict(self._deliveries),
            subscriber_errors=dict(self._subscriber_errors),
            total_subscriptions=self._total_subscriptions,
        )
