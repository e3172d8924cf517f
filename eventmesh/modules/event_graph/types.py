"""
Event Graph Types.

Purpose
-------
Immutable data structures for durable, documentable events and their
narrative annotations, plus converters between three shapes:

- Python objects (snake_case attributes)
- the wire form (`to_dict` / `from_dict`, camelCase keys)
- the row form (`to_record` / `from_record`, snake_case columns whose JSON
  values use the wire form)

Design Decisions
----------------
- **Frozen dataclasses**: a stored event is never mutated in place. The only
  change path (`update_event_outcome`) produces a new instance with
  `dataclasses.replace`.
- **Tuples for id lists**: `related_events`, `screenshots`, `ai_tags` and
  friends are tuples so the containing objects stay immutable.
- **Converters are lenient about missing keys** and strict about nothing;
  shape checks live in `validators.py`.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Mapping, Optional

# Values accepted for EventContext.category
EVENT_CATEGORIES = ("architecture", "bug-fix", "feature", "refactor")

# Values accepted for EventMetadata.environment
EVENT_ENVIRONMENTS = ("dev", "prod")


def now_ms() -> int:
    """Current wall-clock time as epoch milliseconds."""
    return int(time.time() * 1000)


def new_id() -> str:
    return str(uuid.uuid4())


def _tuple(values: Any) -> tuple:
    if values is None:
        return ()
    return tuple(values)


def _compact(data: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in data.items() if value is not None}


# ============================================================================
# Event components
# ============================================================================


@dataclass(slots=True, frozen=True)
class UserIntent:
    """
    Why the user took an action, not just what they did.

    Every field is optional so that an outcome update can attach an
    ``impact_metric`` to an event that was recorded without any intent.
    """

    problem_solved: Optional[str] = None
    pain_point: Optional[str] = None
    goal: Optional[str] = None
    expected_outcome: Optional[str] = None
    impact_metric: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            {
                "problemSolved": self.problem_solved,
                "painPoint": self.pain_point,
                "goal": self.goal,
                "expectedOutcome": self.expected_outcome,
                "impactMetric": self.impact_metric,
            }
        )

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> Optional[UserIntent]:
        if data is None:
            return None
        return cls(
            problem_solved=data.get("problemSolved"),
            pain_point=data.get("painPoint"),
            goal=data.get("goal"),
            expected_outcome=data.get("expectedOutcome"),
            impact_metric=data.get("impactMetric"),
        )


@dataclass(slots=True, frozen=True)
class EventContext:
    """
    Workflow context of an event.

    Attributes
    ----------
    related_events:
        Ids of other documentable events this one is linked to. Order is
        preserved; cycles are allowed.
    outcome:
        What actually happened. Filled in later by an outcome update.
    decision:
        Decision made at this point, e.g. "webhook over polling".
    category:
        One of EVENT_CATEGORIES.
    """

    related_events: tuple[str, ...] = ()
    outcome: Optional[str] = None
    decision: Optional[str] = None
    category: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"relatedEvents": list(self.related_events)}
        data.update(
            _compact(
                {
                    "outcome": self.outcome,
                    "decision": self.decision,
                    "category": self.category,
                }
            )
        )
        return data

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> Optional[EventContext]:
        if data is None:
            return None
        return cls(
            related_events=_tuple(data.get("relatedEvents")),
            outcome=data.get("outcome"),
            decision=data.get("decision"),
            category=data.get("category"),
        )


@dataclass(slots=True, frozen=True)
class EventMetadata:
    """
    Technical metadata for debugging and filtering.

    Keys other than userId/sessionId/environment are kept in ``extra`` and
    round-trip unchanged.
    """

    user_id: Optional[str] = None
    session_id: Optional[str] = None
    environment: Optional[str] = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    _KNOWN_KEYS = ("userId", "sessionId", "environment")

    def to_dict(self) -> dict[str, Any]:
        data = dict(self.extra)
        data.update(
            _compact(
                {
                    "userId": self.user_id,
                    "sessionId": self.session_id,
                    "environment": self.environment,
                }
            )
        )
        return data

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> Optional[EventMetadata]:
        if data is None:
            return None
        return cls(
            user_id=data.get("userId"),
            session_id=data.get("sessionId"),
            environment=data.get("environment"),
            extra={k: v for k, v in data.items() if k not in cls._KNOWN_KEYS},
        )


# ============================================================================
# Events
# ============================================================================


@dataclass(slots=True, frozen=True)
class EventDraft:
    """
    A documentable event before it is stored: no id yet, and
    ``should_document`` may be left to the auto-classifier (None).
    """

    event_name: str
    source: str
    timestamp: int = field(default_factory=now_ms)
    payload: Any = None
    should_document: Optional[bool] = None
    user_intent: Optional[UserIntent] = None
    context: Optional[EventContext] = None
    metadata: Optional[EventMetadata] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> EventDraft:
        """Build a draft from the camelCase wire form. A missing timestamp means now."""
        timestamp = data.get("timestamp")
        return cls(
            event_name=data.get("eventName", ""),
            source=data.get("source", ""),
            timestamp=now_ms() if timestamp is None else timestamp,
            payload=data.get("payload"),
            should_document=data.get("shouldDocument"),
            user_intent=UserIntent.from_dict(data.get("userIntent")),
            context=EventContext.from_dict(data.get("context")),
            metadata=EventMetadata.from_dict(data.get("metadata")),
        )


@dataclass(slots=True, frozen=True)
class DocumentableEvent:
    """
    A durably recorded event.

    Immutable except ``context.outcome`` and ``user_intent.impact_metric``,
    which only `EventGraphStore.update_event_outcome` changes (by replacing
    the whole object).
    """

    id: str
    event_name: str
    source: str
    timestamp: int
    payload: Any = None
    should_document: bool = False
    user_intent: Optional[UserIntent] = None
    context: Optional[EventContext] = None
    metadata: Optional[EventMetadata] = None

    @classmethod
    def from_draft(
        cls, draft: EventDraft, *, event_id: str, should_document: bool
    ) -> DocumentableEvent:
        return cls(
            id=event_id,
            event_name=draft.event_name,
            source=draft.source,
            timestamp=draft.timestamp,
            payload=draft.payload,
            should_document=should_document,
            user_intent=draft.user_intent,
            context=draft.context,
            metadata=draft.metadata,
        )

    @property
    def related_events(self) -> tuple[str, ...]:
        return self.context.related_events if self.context else ()

    @property
    def user_id(self) -> Optional[str]:
        return self.metadata.user_id if self.metadata else None

    @property
    def session_id(self) -> Optional[str]:
        return self.metadata.session_id if self.metadata else None

    @property
    def outcome(self) -> Optional[str]:
        return self.context.outcome if self.context else None

    def with_outcome(self, update: OutcomeUpdate) -> DocumentableEvent:
        """
        Return a copy with the outcome (and impact metric, if given) replaced.

        Every other field is carried over unchanged. An event recorded without
        intent gains a partial intent holding only the impact metric.
        """
        context = replace(self.context or EventContext(), outcome=update.outcome)
        user_intent = self.user_intent
        if update.impact_metric is not None:
            user_intent = replace(
                user_intent or UserIntent(), impact_metric=update.impact_metric
            )
        return replace(self, context=context, user_intent=user_intent)

    # ------------------------------------------------------------------ #
    # Wire form
    # ------------------------------------------------------------------ #

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "eventName": self.event_name,
            "source": self.source,
            "timestamp": self.timestamp,
            "payload": self.payload,
            "shouldDocument": self.should_document,
            "userIntent": self.user_intent.to_dict() if self.user_intent else None,
            "context": self.context.to_dict() if self.context else None,
            "metadata": self.metadata.to_dict() if self.metadata else None,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> DocumentableEvent:
        return cls(
            id=data["id"],
            event_name=data["eventName"],
            source=data.get("source", ""),
            timestamp=int(data["timestamp"]),
            payload=data.get("payload"),
            should_document=bool(data.get("shouldDocument", False)),
            user_intent=UserIntent.from_dict(data.get("userIntent")),
            context=EventContext.from_dict(data.get("context")),
            metadata=EventMetadata.from_dict(data.get("metadata")),
        )

    # ------------------------------------------------------------------ #
    # Row form
    # ------------------------------------------------------------------ #

    def to_record(self) -> dict[str, Any]:
        """Row of the `event_history` table."""
        return {
            "id": self.id,
            "event_name": self.event_name,
            "source": self.source,
            "timestamp": self.timestamp,
            "payload": self.payload,
            "should_document": self.should_document,
            "user_intent": self.user_intent.to_dict() if self.user_intent else None,
            "context": self.context.to_dict() if self.context else None,
            "metadata": self.metadata.to_dict() if self.metadata else None,
        }

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> DocumentableEvent:
        return cls(
            id=record["id"],
            event_name=record["event_name"],
            source=record.get("source") or "",
            timestamp=int(record["timestamp"]),
            payload=record.get("payload"),
            should_document=bool(record.get("should_document")),
            user_intent=UserIntent.from_dict(record.get("user_intent")),
            context=EventContext.from_dict(record.get("context")),
            metadata=EventMetadata.from_dict(record.get("metadata")),
        )


# ============================================================================
# Queries and updates
# ============================================================================


@dataclass(slots=True, frozen=True)
class EventHistoryQuery:
    """
    Filters for `query_event_history`. Every filter is optional and they
    combine with AND. ``start_time``/``end_time`` are inclusive epoch ms.

    ``event_id`` only has an effect together with ``include_related``: the
    result is then the graph reachable from that event within ``max_depth``
    hops (store default when None).
    """

    event_id: Optional[str] = None
    event_name: Optional[str] = None
    source: Optional[str] = None
    user_id: Optional[str] = None
    session_id: Optional[str] = None
    start_time: Optional[int] = None
    end_time: Optional[int] = None
    include_related: bool = False
    max_depth: Optional[int] = None

    @property
    def wants_traversal(self) -> bool:
        return self.include_related and self.event_id is not None

    def matches(self, event: DocumentableEvent) -> bool:
        """True if ``event`` passes every set filter."""
        if self.event_name is not None and event.event_name != self.event_name:
            return False
        if self.source is not None and event.source != self.source:
            return False
        if self.user_id is not None and event.user_id != self.user_id:
            return False
        if self.session_id is not None and event.session_id != self.session_id:
            return False
        if self.start_time is not None and event.timestamp < self.start_time:
            return False
        if self.end_time is not None and event.timestamp > self.end_time:
            return False
        return True


@dataclass(slots=True, frozen=True)
class OutcomeUpdate:
    """What actually happened after an event, and optionally its measured impact."""

    outcome: str
    impact_metric: Optional[str] = None


# ============================================================================
# Narratives
# ============================================================================


@dataclass(slots=True, frozen=True)
class CodeSnippet:
    language: str
    code: str

    def to_dict(self) -> dict[str, str]:
        return {"language": self.language, "code": self.code}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> CodeSnippet:
        return cls(language=data.get("language", ""), code=data.get("code", ""))


@dataclass(slots=True, frozen=True)
class NarrativeFields:
    """
    Caller-supplied content of a narrative. Saving replaces every field;
    a field left as None/empty clears what was stored before.
    """

    long_description: Optional[str] = None
    screenshots: tuple[str, ...] = ()
    code_snippets: tuple[CodeSnippet, ...] = ()
    related_docs: tuple[str, ...] = ()
    ai_narrative: Optional[str] = None
    ai_summary: Optional[str] = None
    ai_tags: tuple[str, ...] = ()

    def to_record(self) -> dict[str, Any]:
        return {
            "long_description": self.long_description,
            "screenshots": list(self.screenshots),
            "code_snippets": [snippet.to_dict() for snippet in self.code_snippets],
            "related_docs": list(self.related_docs),
            "ai_narrative": self.ai_narrative,
            "ai_summary": self.ai_summary,
            "ai_tags": list(self.ai_tags),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> NarrativeFields:
        return cls(
            long_description=data.get("longDescription"),
            screenshots=_tuple(data.get("screenshots")),
            code_snippets=tuple(
                CodeSnippet.from_dict(s) for s in data.get("codeSnippets") or ()
            ),
            related_docs=_tuple(data.get("relatedDocs")),
            ai_narrative=data.get("aiNarrative"),
            ai_summary=data.get("aiSummary"),
            ai_tags=_tuple(data.get("aiTags")),
        )

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> NarrativeFields:
        return cls(
            long_description=record.get("long_description"),
            screenshots=_tuple(record.get("screenshots")),
            code_snippets=tuple(
                CodeSnippet.from_dict(s) for s in record.get("code_snippets") or ()
            ),
            related_docs=_tuple(record.get("related_docs")),
            ai_narrative=record.get("ai_narrative"),
            ai_summary=record.get("ai_summary"),
            ai_tags=_tuple(record.get("ai_tags")),
        )


@dataclass(slots=True, frozen=True)
class NarrativeContext:
    """
    Rich documentation attached to exactly one event. At most one exists per
    event; saving again replaces the content but keeps ``id`` and
    ``created_at``.
    """

    id: str
    event_id: str
    fields: NarrativeFields
    created_at: datetime
    updated_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "eventId": self.event_id,
            "longDescription": self.fields.long_description,
            "screenshots": list(self.fields.screenshots),
            "codeSnippets": [s.to_dict() for s in self.fields.code_snippets],
            "relatedDocs": list(self.fields.related_docs),
            "aiNarrative": self.fields.ai_narrative,
            "aiSummary": self.fields.ai_summary,
            "aiTags": list(self.fields.ai_tags),
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }

    def to_record(self) -> dict[str, Any]:
        record = {"id": self.id, "event_id": self.event_id}
        record.update(self.fields.to_record())
        record["created_at"] = self.created_at
        record["updated_at"] = self.updated_at
        return record

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> NarrativeContext:
        return cls(
            id=record["id"],
            event_id=record["event_id"],
            fields=NarrativeFields.from_record(record),
            created_at=record["created_at"],
            updated_at=record["updated_at"],
        )
