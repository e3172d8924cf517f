"""
Event log context helpers for the eventmesh EventBus.

Purpose
-------
Enriches the ambient LogContext with event metadata while an event is
dispatched, so subscriber logs can be traced back to the publish.

Design Decisions
----------------
- **Best-effort context**: setting up log context never breaks dispatch.
- **Keys, not values**: only payload keys are recorded, never payload values.
- **Dict payloads only**: non-dict payloads contribute just the event name.
"""

from __future__ import annotations

from typing import Any

from eventmesh.core.logging.logger import get_logger, set_log_context

logger = get_logger(__name__)


def apply_event_log_context(event_name: str, payload: Any, source: Any = None) -> None:
    """
    Apply event-related fields to LogContext for structured logging.

    Parameters
    ----------
    event_name:
        The name of the event being published.
    payload:
        The event payload. When it is a dict, its keys are recorded.
    source:
        Optional publisher identifier.

    Examples
    --------
    >>> apply_event_log_context("github.pr.selected", {"prNumber": 42})
    # Subsequent logs carry event_name and event_keys
    """
    try:
        fields: dict[str, Any] = {"event_name": event_name}
        if isinstance(payload, dict):
            fields["event_keys"] = [str(key) for key in payload.keys()]
        if source is not None:
            fields["source"] = source
        set_log_context(**fields)
    except Exception as exc:
        logger.debug(
            "Failed to apply event log context",
            extra={
                "event_name": event_name,
                "error": str(exc),
                "error_type": type(exc).__name__,
            },
        )
