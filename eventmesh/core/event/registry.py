"""
SubscriptionRegistry: storage and lookup for EventBus subscriptions.

Purpose
-------
Holds the live subscriptions of one bus and answers "who receives this
event?" in registration order.

Responsibilities
----------------
- Store subscriptions in the order they were registered
- Remove a single subscription by id (idempotent)
- Return all subscriptions whose pattern matches an event name
- Provide introspection (counts, snapshots, grouping by owner)

Design Decisions
----------------
- **One ordered list**: exact and wildcard patterns live side by side so that
  delivery order is plain registration order across both kinds.
- **No de-duplication**: subscribing the same handler twice yields two
  subscriptions and two deliveries.
- **Snapshot lookups**: `matching()` returns a new list, so handlers that
  subscribe or unsubscribe during dispatch never disturb the current
  delivery pass.
- **No async/await**: all methods are synchronous.

Dependencies
------------
- eventmesh.core.event.types (Subscription, SubscriptionInfo)
- eventmesh.core.event.router (EventRouter)
"""

from __future__ import annotations

from typing import Optional

from eventmesh.core.event.router import EventRouter
from eventmesh.core.event.types import Subscription, SubscriptionInfo


class SubscriptionRegistry:
    """
    Registration-ordered store of subscriptions.

    Thread Safety
    -------------
    Not thread-safe. The bus is a single-threaded, synchronous component.

    Examples
    --------
    >>> registry = SubscriptionRegistry()
    >>> sub = Subscription.create("github.*", print, owner_id="jira-widget")
    >>> registry.add(sub)
    >>> [s.id for s in registry.matching("github.pr.selected")] == [sub.id]
    True
    """

    def __init__(self, router: Optional[EventRouter] = None) -> None:
        self._router = router or EventRouter()
        self._subscriptions: list[Subscription] = []

    # ------------------------------------------------------------------ #
    # Modification
    # ------------------------------------------------------------------ #

    def add(self, subscription: Subscription) -> None:
        self._subscriptions.append(subscription)

    def remove(self, subscription_id: str) -> bool:
        """
        Remove the subscription with ``subscription_id``.

        Returns
        -------
        bool:
            True if a subscription was removed, False if it was already gone.
        """
        for index, subscription in enumerate(self._subscriptions):
            if subscription.id == subscription_id:
                del self._subscriptions[index]
                return True
        return False

    def clear_all(self) -> int:
        """Remove every subscription and return how many there were."""
        total = len(self._subscriptions)
        self._subscriptions.clear()
        return total

    # ------------------------------------------------------------------ #
    # Lookup
    # ------------------------------------------------------------------ #

    def matching(self, event_name: str) -> list[Subscription]:
        """
        Collect subscriptions whose pattern covers ``event_name``.

        Parameters
        ----------
        event_name:
            The event being published.

        Returns
        -------
        list[Subscription]:
            Matching subscriptions in registration order. The list is a copy.
        """
        return [
            subscription
            for subscription in self._subscriptions
            if self._router.matches(event_name, subscription.pattern)
        ]

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #

    def count(self, event_name: Optional[str] = None) -> int:
        if event_name is None:
            return len(self._subscriptions)
        return len(self.matching(event_name))

    def snapshot(self) -> list[SubscriptionInfo]:
        return [subscription.info() for subscription in self._subscriptions]

    def by_owner(self) -> dict[Optional[str], list[SubscriptionInfo]]:
        """
        Group subscription snapshots by owner id.

        Subscriptions registered without an owner are grouped under ``None``.
        Owners appear in the order of their first subscription.
        """
        grouped: dict[Optional[str], list[SubscriptionInfo]] = {}
        for subscription in self._subscriptions:
            grouped.setdefault(subscription.owner_id, []).append(subscription.info())
        return grouped

    def patterns(self) -> list[str]:
        """Sorted, de-duplicated list of registered patterns."""
        return sorted({s.pattern for s in self._subscriptions})
