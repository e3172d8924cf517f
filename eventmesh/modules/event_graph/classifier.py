"""
Auto-classifier for documentable events.

Decides, for events whose producer did not say, whether an event is
significant enough to narrate later. An event is significant when its name
equals one of SIGNIFICANT_EVENTS or is a dotted descendant of one
("widget.created.kanban" counts, "widget.createdX" does not).

Producers can always override by setting ``should_document`` explicitly.
"""

from __future__ import annotations

from typing import Iterable, Optional

SIGNIFICANT_EVENTS: tuple[str, ...] = (
    "widget.created",
    "provider.connected",
    "automation.triggered",
    "workflow.completed",
    "error.occurred",
)


def is_significant(
    event_name: str, vocabulary: Iterable[str] = SIGNIFICANT_EVENTS
) -> bool:
    """
    Examples
    --------
    >>> is_significant("widget.created")
    True
    >>> is_significant("widget.created.kanban")
    True
    >>> is_significant("mouse.moved")
    False
    """
    return any(
        event_name == name or event_name.startswith(name + ".") for name in vocabulary
    )


def resolve_should_document(event_name: str, explicit: Optional[bool]) -> bool:
    """Return ``explicit`` when set, otherwise classify ``event_name``."""
    if explicit is not None:
        return explicit
    return is_significant(event_name)
