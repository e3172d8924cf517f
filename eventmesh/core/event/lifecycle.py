"""
Subscription lifetime helpers.

Purpose
-------
Tie a subscription's lifetime to the lifetime of whatever owns it (a widget
mounted on the dashboard): acquire on mount, release on unmount, even when
the owner fails in between.

Examples
--------
Single subscription for the duration of a block:

>>> with subscription(bus, "github.*", on_github, owner_id="jira-widget"):
...     run_widget()

A widget holding several subscriptions:

>>> scope = SubscriptionScope(bus, owner_id="jira-widget")
>>> scope.add("github.pr.selected", on_pr_selected)
>>> scope.add("provider.connected", on_provider)
>>> ...
>>> scope.close()  # on unmount
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional

from eventmesh.core.event.bus import EventBus
from eventmesh.core.event.types import EventHandler, Unsubscribe
from eventmesh.core.logging.logger import get_logger

logger = get_logger(__name__)


@contextmanager
def subscription(
    bus: EventBus,
    pattern: str,
    handler: EventHandler,
    owner_id: Optional[str] = None,
) -> Iterator[Unsubscribe]:
    """
    Subscribe for the duration of a ``with`` block.

    Yields the unsubscribe callable, so the block may also release early.
    """
    unsubscribe = bus.subscribe(pattern, handler, owner_id)
    try:
        yield unsubscribe
    finally:
        unsubscribe()


class SubscriptionScope:
    """
    Groups the subscriptions of one owner and releases them together.

    Closing is idempotent. Adding to a closed scope raises RuntimeError.
    """

    def __init__(self, bus: EventBus, owner_id: Optional[str] = None) -> None:
        self._bus = bus
        self._owner_id = owner_id
        self._unsubscribers: list[Unsubscribe] = []
        self._closed = False

    @property
    def owner_id(self) -> Optional[str]:
        return self._owner_id

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        return len(self._unsubscribers)

    def add(self, pattern: str, handler: EventHandler) -> Unsubscribe:
        if self._closed:
            raise RuntimeError(
                f"SubscriptionScope for owner '{self._owner_id}' is already closed"
            )

        unsubscribe = self._bus.subscribe(pattern, handler, self._owner_id)
        self._unsubscribers.append(unsubscribe)
        return unsubscribe

    def close(self) -> None:
        if self._closed:
            return

        self._closed = True
        count = len(self._unsubscribers)
        # Release newest first
        while self._unsubscribers:
            self._unsubscribers.pop()()

        logger.debug(
            "SubscriptionScope closed",
            extra={"owner_id": self._owner_id or "N/A", "released": count},
        )

    def __enter__(self) -> SubscriptionScope:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
