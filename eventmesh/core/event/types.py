"""
Core Event Types for the eventmesh EventBus.

Purpose
-------
Type definitions shared by the bus, its registry, and its debugging surface:
handler callables, subscription records, and logged live events.

Design Decisions
----------------
- **Payload is opaque**: widgets publish whatever structured data they like;
  the bus never inspects values.
- **Handlers are synchronous**: dispatch completes before `publish` returns.
- **Subscriptions are private**: callers hold an unsubscribe callable, and the
  debugger sees `SubscriptionInfo` snapshots without the handler.
- **LiveEvent is frozen**: a logged event is never mutated.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional

# Type alias for event payloads; any structured, JSON-like value
EventPayload = Any

# Subscriber callback, invoked with the published payload
EventHandler = Callable[[EventPayload], Any]

# Returned by subscribe(); removes exactly one subscription, idempotent
Unsubscribe = Callable[[], None]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True, frozen=True)
class Subscription:
    """
    A registered subscriber.

    Attributes
    ----------
    id:
        Unique opaque token assigned at subscribe time.
    pattern:
        "*", "<prefix>.*" or an exact event name.
    handler:
        Callable receiving the payload.
    owner_id:
        Optional widget identifier, used for debugging and grouping.
    """

    id: str
    pattern: str
    handler: EventHandler
    owner_id: Optional[str] = None

    @classmethod
    def create(
        cls,
        pattern: str,
        handler: EventHandler,
        owner_id: Optional[str] = None,
    ) -> Subscription:
        return cls(
            id=str(uuid.uuid4()),
            pattern=pattern,
            handler=handler,
            owner_id=owner_id,
        )

    @property
    def handler_name(self) -> str:
        return getattr(
            self.handler, "__qualname__", getattr(self.handler, "__name__", repr(self.handler))
        )

    def info(self) -> SubscriptionInfo:
        return SubscriptionInfo(
            id=self.id,
            pattern=self.pattern,
            owner_id=self.owner_id,
            handler_name=self.handler_name,
        )


@dataclass(slots=True, frozen=True)
class SubscriptionInfo:
    """Read-only view of a subscription for debugging surfaces."""

    id: str
    pattern: str
    owner_id: Optional[str]
    handler_name: str


@dataclass(slots=True, frozen=True)
class LiveEvent:
    """
    One entry of the bus's bounded recent-event log.

    Recorded for every publish, delivered or not.
    """

    name: str
    payload: EventPayload
    source: Optional[str] = None
    timestamp: datetime = field(default_factory=_utc_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "name": self.name,
            "payload": self.payload,
            "source": self.source,
        }
