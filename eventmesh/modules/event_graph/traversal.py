"""
Graph traversal over `related_events` links.

Purpose
-------
Reconstruct a workflow from any one event in it: a depth-first walk from a
start event, following `context.related_events`, over a pool of events that
was fetched once up front.

Guarantees
----------
- Terminates on cyclic graphs (visited set).
- No event appears twice in the result.
- Result order is DFS pre-order from the start event.
- ``max_depth`` counts hops; 0 returns only the start event.
- Ids missing from the pool are skipped, not errors.

Design Decisions
----------------
- **Pool in, list out**: traversal never queries a store per hop.
- **Explicit stack**: no recursion, so deep chains cannot hit the
  interpreter's recursion limit.
"""

from __future__ import annotations

from typing import Iterable, Optional

from eventmesh.modules.event_graph.types import DocumentableEvent

DEFAULT_MAX_DEPTH = 5


def traverse(
    pool: Iterable[DocumentableEvent],
    start_id: str,
    max_depth: Optional[int] = None,
) -> list[DocumentableEvent]:
    """
    Walk the graph reachable from ``start_id`` within ``max_depth`` hops.

    Parameters
    ----------
    pool:
        Candidate events. When ids repeat, the first occurrence wins.
    start_id:
        Id of the event to start from. An id not in the pool yields [].
    max_depth:
        Maximum number of hops from the start event. Defaults to 5.

    Returns
    -------
    list[DocumentableEvent]:
        Reachable events in DFS pre-order.

    Examples
    --------
    >>> [e.id for e in traverse([a, b], "a", max_depth=5)]  # a -> b -> a
    ['a', 'b']
    """
    depth_limit = DEFAULT_MAX_DEPTH if max_depth is None else max_depth

    by_id: dict[str, DocumentableEvent] = {}
    for event in pool:
        by_id.setdefault(event.id, event)

    visited: set[str] = set()
    result: list[DocumentableEvent] = []

    # (event_id, depth); children pushed in reverse to pop in listed order
    stack: list[tuple[str, int]] = [(start_id, 0)]

    while stack:
        event_id, depth = stack.pop()

        if depth > depth_limit or event_id in visited:
            continue

        visited.add(event_id)
        event = by_id.get(event_id)
        if event is None:
            continue

        result.append(event)

        for related_id in reversed(event.related_events):
            if related_id not in visited:
                stack.append((related_id, depth + 1))

    return result
