"""
Event Graph Module
==================

Domain: durable record of documentable events and their narratives

Services:
- EventGraphStore: publish, query, traverse, outcome update, narratives
- EventValidator: input validation for drafts, queries and outcomes
- is_significant / SIGNIFICANT_EVENTS: auto-classifier vocabulary
"""

from .backends import EventStoreBackend, InMemoryBackend, RelationalBackend
from .classifier import SIGNIFICANT_EVENTS, is_significant, resolve_should_document
from .store import EventGraphStore
from .traversal import DEFAULT_MAX_DEPTH, traverse
from .types import (
    EVENT_CATEGORIES,
    EVENT_ENVIRONMENTS,
    CodeSnippet,
    DocumentableEvent,
    EventContext,
    EventDraft,
    EventHistoryQuery,
    EventMetadata,
    NarrativeContext,
    NarrativeFields,
    OutcomeUpdate,
    UserIntent,
)
from .validators import EventValidator

__all__ = [
    "EventGraphStore",
    "EventStoreBackend",
    "InMemoryBackend",
    "RelationalBackend",
    "EventValidator",
    "SIGNIFICANT_EVENTS",
    "is_significant",
    "resolve_should_document",
    "DEFAULT_MAX_DEPTH",
    "traverse",
    "EVENT_CATEGORIES",
    "EVENT_ENVIRONMENTS",
    "CodeSnippet",
    "DocumentableEvent",
    "EventContext",
    "EventDraft",
    "EventHistoryQuery",
    "EventMetadata",
    "NarrativeContext",
    "NarrativeFields",
    "OutcomeUpdate",
    "UserIntent",
]
