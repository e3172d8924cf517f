"""
Event Graph Validation Layer

Purpose
-------
Reject malformed caller input before it reaches a store backend. A validation
failure is a caller bug: it raises synchronously, before any I/O, and is never
turned into a fallback write or an empty result.

Responsibilities
----------------
- Event drafts: name, source, timestamp, related ids, category, environment
- History queries: time range ordering, traversal depth
- Outcome updates: non-empty outcome text

Observability
-------------
Every failure is logged at debug level with field_name, raw_value (repr) and
reason before ValidationError is raised.

Dependencies
------------
- eventmesh.core.exceptions.ValidationError
- eventmesh.core.logging.logger.get_logger
"""

from __future__ import annotations

from typing import Any, NoReturn, Optional

from eventmesh.core.exceptions import ValidationError
from eventmesh.core.logging.logger import get_logger
from eventmesh.modules.event_graph.types import (
    EVENT_CATEGORIES,
    EVENT_ENVIRONMENTS,
    EventDraft,
    EventHistoryQuery,
    OutcomeUpdate,
)

logger = get_logger(__name__)

MAX_EVENT_NAME_LENGTH = 200


def _raise_validation_error(field_name: str, value: Any, message: str) -> NoReturn:
    """Log and raise a ValidationError."""
    logger.debug(
        "Event validation failed",
        extra={
            "field_name": field_name,
            "raw_value": repr(value),
            "reason": message,
        },
    )
    raise ValidationError(field_name, message)


class EventValidator:
    """
    Stateless validation for event graph inputs.

    Every method returns the validated value on success and raises
    ValidationError on failure.
    """

    # =========================================================================
    # SCALARS
    # =========================================================================

    @staticmethod
    def validate_event_name(value: Any, field_name: str = "event_name") -> str:
        if not isinstance(value, str):
            _raise_validation_error(field_name, value, "must be a string")
        if not value.strip():
            _raise_validation_error(field_name, value, "must not be empty")
        if len(value) > MAX_EVENT_NAME_LENGTH:
            _raise_validation_error(
                field_name,
                value,
                f"must be at most {MAX_EVENT_NAME_LENGTH} characters",
            )
        return value

    @staticmethod
    def validate_source(value: Any) -> str:
        if not isinstance(value, str):
            _raise_validation_error("source", value, "must be a string")
        return value

    @staticmethod
    def validate_timestamp(value: Any, field_name: str = "timestamp") -> int:
        """Epoch milliseconds: a non-negative int (bool is rejected)."""
        if isinstance(value, bool) or not isinstance(value, int):
            _raise_validation_error(field_name, value, "must be an integer (epoch ms)")
        if value < 0:
            _raise_validation_error(field_name, value, "must be non-negative")
        return value

    @staticmethod
    def validate_max_depth(value: Any) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            _raise_validation_error("max_depth", value, "must be an integer")
        if value < 0:
            _raise_validation_error("max_depth", value, "must be non-negative")
        return value

    @staticmethod
    def validate_event_id(value: Any, field_name: str = "event_id") -> str:
        if not isinstance(value, str) or not value:
            _raise_validation_error(field_name, value, "must be a non-empty string")
        return value

    # =========================================================================
    # COMPOSITES
    # =========================================================================

    @staticmethod
    def validate_draft(draft: EventDraft) -> EventDraft:
        """
        Validate a draft before it is stored.

        Payload, intent text and metadata values are opaque and not checked.
        """
        EventValidator.validate_event_name(draft.event_name)
        EventValidator.validate_source(draft.source)
        EventValidator.validate_timestamp(draft.timestamp)

        if draft.should_document is not None and not isinstance(
            draft.should_document, bool
        ):
            _raise_validation_error(
                "should_document", draft.should_document, "must be a boolean or None"
            )

        if draft.context is not None:
            for related_id in draft.context.related_events:
                if not isinstance(related_id, str):
                    _raise_validation_error(
                        "context.related_events",
                        related_id,
                        "related event ids must be strings",
                    )
            category = draft.context.category
            if category is not None and category not in EVENT_CATEGORIES:
                _raise_validation_error(
                    "context.category",
                    category,
                    f"must be one of {', '.join(EVENT_CATEGORIES)}",
                )

        if draft.metadata is not None:
            environment = draft.metadata.environment
            if environment is not None and environment not in EVENT_ENVIRONMENTS:
                _raise_validation_error(
                    "metadata.environment",
                    environment,
                    f"must be one of {', '.join(EVENT_ENVIRONMENTS)}",
                )

        return draft

    @staticmethod
    def validate_query(query: EventHistoryQuery) -> EventHistoryQuery:
        if query.start_time is not None:
            EventValidator.validate_timestamp(query.start_time, "start_time")
        if query.end_time is not None:
            EventValidator.validate_timestamp(query.end_time, "end_time")
        if (
            query.start_time is not None
            and query.end_time is not None
            and query.start_time > query.end_time
        ):
            _raise_validation_error(
                "start_time",
                query.start_time,
                "must not be later than end_time",
            )
        if query.max_depth is not None:
            EventValidator.validate_max_depth(query.max_depth)
        return query

    @staticmethod
    def validate_outcome(update: OutcomeUpdate) -> OutcomeUpdate:
        if not isinstance(update.outcome, str) or not update.outcome.strip():
            _raise_validation_error("outcome", update.outcome, "must be non-empty text")
        if update.impact_metric is not None and not isinstance(
            update.impact_metric, str
        ):
            _raise_validation_error(
                "impact_metric", update.impact_metric, "must be text or None"
            )
        return update

    @staticmethod
    def validate_optional_depth(value: Optional[int], default: int) -> int:
        """Resolve an optional depth against ``default`` and validate it."""
        return EventValidator.validate_max_depth(default if value is None else value)
