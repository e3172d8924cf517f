"""
Event System for eventmesh.

Purpose
-------
Synchronous, pattern-based publish/subscribe between dashboard widgets. A bus
is constructed explicitly (see `eventmesh.core.infra.application_context`)
and passed to the widgets that need it; there is no global instance.
"""

from .bus import EventBus
from .context import apply_event_log_context
from .lifecycle import SubscriptionScope, subscription
from .metrics import EventMetrics, EventMetricsRecorder
from .registry import SubscriptionRegistry
from .router import EventRouter, is_wildcard, matches
from .types import (
    EventHandler,
    EventPayload,
    LiveEvent,
    Subscription,
    SubscriptionInfo,
    Unsubscribe,
)

__all__ = [
    "EventBus",
    "EventRouter",
    "matches",
    "is_wildcard",
    "SubscriptionRegistry",
    "Subscription",
    "SubscriptionInfo",
    "LiveEvent",
    "EventPayload",
    "EventHandler",
    "Unsubscribe",
    "EventMetrics",
    "EventMetricsRecorder",
    "subscription",
    "SubscriptionScope",
    "apply_event_log_context",
]
