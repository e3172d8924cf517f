"""
Error handling helpers for the eventmesh EventBus.

Purpose
-------
Centralizes what happens when a subscriber raises during dispatch: structured
logging with full context, and a metrics update. The failure never reaches the
publisher or the remaining subscribers.

Dependencies
------------
- eventmesh.core.event.types (Subscription)
- eventmesh.core.event.metrics (EventMetricsRecorder)
- eventmesh.core.exceptions (EventBusError)
"""

from __future__ import annotations

from logging import Logger
from typing import Optional

from eventmesh.core.event.metrics import EventMetricsRecorder
from eventmesh.core.event.types import Subscription
from eventmesh.core.exceptions import EventBusError


def handle_subscriber_error(
    *,
    logger: Logger,
    event_name: str,
    subscription: Subscription,
    exc: Exception,
    metrics: Optional[EventMetricsRecorder],
) -> EventBusError:
    """
    Log a subscriber failure and update metrics.

    Parameters
    ----------
    logger:
        Logger instance to use for error logging.
    event_name:
        Name of the event that was being dispatched.
    subscription:
        The subscription whose handler raised.
    exc:
        The exception that was raised.
    metrics:
        Optional recorder to update. If None, metrics are skipped.

    Returns
    -------
    EventBusError:
        Structured description of the failure. It is returned, not raised.
    """
    if metrics is not None:
        metrics.record_error(event_name)

    error = EventBusError(
        event_name=event_name,
        subscription_id=subscription.id,
        original_error=exc,
    )

    logger.error(
        "EventBus subscriber error",
        extra={
            "event_name": event_name,
            "subscription_id": subscription.id,
            "pattern": subscription.pattern,
            "owner_id": subscription.owner_id or "N/A",
            "handler": subscription.handler_name,
            "error": str(exc),
            "error_type": type(exc).__name__,
            "error_code": error.error_code,
        },
        exc_info=exc,
    )

    return error
