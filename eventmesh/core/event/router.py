"""
EventRouter: subscription pattern matching for the eventmesh EventBus.

Purpose
-------
Decides whether an event name is covered by a subscription pattern.

Supported Patterns
------------------
- Global:  "*"                  → matches any event
- Prefix:  "github.*"           → matches "github.pr.selected", "github.commit"
                                  but not "github" and not "githubx.pr"
- Exact:   "github.pr.selected" → matches only "github.pr.selected"

Notes
-----
- Only a trailing ".*" is a wildcard. A "*" anywhere else is a literal
  character and the pattern falls back to exact matching.
- A bare prefix ("github") is an exact pattern; it never matches children.
- Matching is case-sensitive.

Dependencies
------------
None (pure Python stdlib)
"""

from __future__ import annotations

GLOBAL_WILDCARD = "*"
PREFIX_WILDCARD_SUFFIX = ".*"


def matches(event_name: str, pattern: str) -> bool:
    """
    Check whether ``event_name`` is covered by ``pattern``.

    Examples
    --------
    >>> matches("github.pr.selected", "github.*")
    True
    >>> matches("github", "github.*")
    False
    >>> matches("githubx.pr.selected", "github.*")
    False
    >>> matches("github.pr.selected", "github")
    False
    >>> matches("anything", "*")
    True
    """
    if pattern == GLOBAL_WILDCARD:
        return True

    if pattern.endswith(PREFIX_WILDCARD_SUFFIX):
        # Keep the dot: "github.*" → "github."
        prefix = pattern[:-1]
        return event_name.startswith(prefix)

    return event_name == pattern


def is_wildcard(pattern: str) -> bool:
    """True for "*" and "<prefix>.*" patterns."""
    return pattern == GLOBAL_WILDCARD or pattern.endswith(PREFIX_WILDCARD_SUFFIX)


class EventRouter:
    """
    Stateless wrapper around :func:`matches`.

    Kept as a class so the bus can take an injected router in tests.

    Examples
    --------
    >>> router = EventRouter()
    >>> router.matches("jira.ticket.opened", "jira.*")
    True
    """

    def matches(self, event_name: str, pattern: str) -> bool:
        return matches(event_name, pattern)
