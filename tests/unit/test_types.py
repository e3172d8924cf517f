"""
Unit tests for event graph types and input validation.

Tests the camelCase wire form, the snake_case row form, outcome replacement
and the checks EventValidator applies before any I/O.
"""

from datetime import datetime, timezone

import pytest

from eventmesh.core.exceptions import ValidationError
from eventmesh.modules.event_graph.types import (
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
from eventmesh.modules.event_graph.validators import EventValidator

WIRE_DRAFT = {
    "eventName": "provider.connected",
    "source": "settings-widget",
    "timestamp": 1_700_000_000_000,
    "payload": {"provider": "github"},
    "userIntent": {
        "problemSolved": "manual PR lookup",
        "goal": "link PRs to tickets",
    },
    "context": {
        "relatedEvents": ["evt-1", "evt-2"],
        "decision": "webhook over polling",
        "category": "feature",
    },
    "metadata": {
        "userId": "u-1",
        "sessionId": "s-1",
        "environment": "dev",
        "browser": "firefox",
    },
}


class TestDraftFromDict:
    def test_parses_every_section(self):
        draft = EventDraft.from_dict(WIRE_DRAFT)

        assert draft.event_name == "provider.connected"
        assert draft.should_document is None
        assert draft.user_intent.problem_solved == "manual PR lookup"
        assert draft.context.related_events == ("evt-1", "evt-2")
        assert draft.context.category == "feature"
        assert draft.metadata.user_id == "u-1"
        assert draft.metadata.extra == {"browser": "firefox"}

    def test_missing_timestamp_defaults_to_now(self):
        draft = EventDraft.from_dict({"eventName": "a", "source": "b"})

        now_ms = int(datetime.now(timezone.utc).timestamp() * 1000)
        assert abs(draft.timestamp - now_ms) < 60_000


class TestDocumentableEventSerialization:
    def make_event(self) -> DocumentableEvent:
        return DocumentableEvent.from_draft(
            EventDraft.from_dict(WIRE_DRAFT), event_id="evt-9", should_document=True
        )

    def test_to_dict_is_camel_case(self):
        data = self.make_event().to_dict()

        assert data["id"] == "evt-9"
        assert data["eventName"] == "provider.connected"
        assert data["shouldDocument"] is True
        assert data["userIntent"] == {
            "problemSolved": "manual PR lookup",
            "goal": "link PRs to tickets",
        }
        assert data["context"]["relatedEvents"] == ["evt-1", "evt-2"]
        assert data["metadata"]["browser"] == "firefox"

    def test_from_dict_restores_event(self):
        event = self.make_event()

        assert DocumentableEvent.from_dict(event.to_dict()) == event

    def test_record_uses_column_names(self):
        record = self.make_event().to_record()

        assert record["event_name"] == "provider.connected"
        assert record["should_document"] is True
        assert record["metadata"]["userId"] == "u-1"
        assert DocumentableEvent.from_record(record) == self.make_event()

    def test_convenience_properties(self):
        event = self.make_event()

        assert event.related_events == ("evt-1", "evt-2")
        assert event.user_id == "u-1"
        assert event.session_id == "s-1"
        assert event.outcome is None

    def test_event_without_optional_sections(self):
        event = DocumentableEvent(id="x", event_name="a", source="b", timestamp=1)

        assert event.related_events == ()
        assert event.user_id is None
        assert event.to_dict()["context"] is None


class TestWithOutcome:
    def test_replaces_outcome_and_keeps_everything_else(self):
        event = DocumentableEvent.from_draft(
            EventDraft.from_dict(WIRE_DRAFT), event_id="e", should_document=True
        )

        updated = event.with_outcome(OutcomeUpdate("PRs linked", "saved 2h/week"))

        assert updated.outcome == "PRs linked"
        assert updated.user_intent.impact_metric == "saved 2h/week"
        assert updated.user_intent.goal == "link PRs to tickets"
        assert updated.related_events == event.related_events
        assert updated.context.decision == "webhook over polling"
        assert updated.payload == event.payload
        assert event.outcome is None

    def test_without_impact_metric_keeps_intent(self):
        event = DocumentableEvent(
            id="e",
            event_name="a",
            source="b",
            timestamp=1,
            user_intent=UserIntent(goal="g", impact_metric="old"),
        )

        updated = event.with_outcome(OutcomeUpdate("done"))

        assert updated.user_intent.impact_metric == "old"

    def test_creates_partial_intent_and_context(self):
        event = DocumentableEvent(id="e", event_name="a", source="b", timestamp=1)

        updated = event.with_outcome(OutcomeUpdate("done", "10%"))

        assert updated.context == EventContext(outcome="done")
        assert updated.user_intent == UserIntent(impact_metric="10%")


class TestHistoryQuery:
    def make_event(self, **overrides) -> DocumentableEvent:
        values = dict(
            id="e",
            event_name="widget.created",
            source="kanban",
            timestamp=100,
            metadata=EventMetadata(user_id="u", session_id="s"),
        )
        values.update(overrides)
        return DocumentableEvent(**values)

    def test_empty_query_matches_everything(self):
        assert EventHistoryQuery().matches(self.make_event()) is True

    def test_filters_combine_with_and(self):
        query = EventHistoryQuery(event_name="widget.created", source="other")

        assert query.matches(self.make_event()) is False

    def test_time_bounds_are_inclusive(self):
        event = self.make_event()

        assert EventHistoryQuery(start_time=100, end_time=100).matches(event) is True
        assert EventHistoryQuery(start_time=101).matches(event) is False
        assert EventHistoryQuery(end_time=99).matches(event) is False

    def test_user_and_session_filters(self):
        event = self.make_event()

        assert EventHistoryQuery(user_id="u", session_id="s").matches(event) is True
        assert EventHistoryQuery(user_id="other").matches(event) is False

    def test_wants_traversal_needs_both_flags(self):
        assert EventHistoryQuery(event_id="e").wants_traversal is False
        assert EventHistoryQuery(include_related=True).wants_traversal is False
        assert EventHistoryQuery(event_id="e", include_related=True).wants_traversal


class TestNarrativeTypes:
    def test_fields_from_camel_case(self):
        fields = NarrativeFields.from_dict(
            {
                "longDescription": "Why we linked PRs",
                "codeSnippets": [{"language": "python", "code": "print(1)"}],
                "aiTags": ["integration"],
            }
        )

        assert fields.long_description == "Why we linked PRs"
        assert fields.code_snippets == (CodeSnippet("python", "print(1)"),)
        assert fields.ai_tags == ("integration",)
        assert fields.screenshots == ()

    def test_context_record_round_trip(self):
        now = datetime(2025, 1, 1, tzinfo=timezone.utc)
        narrative = NarrativeContext(
            id="n",
            event_id="e",
            fields=NarrativeFields(long_description="text", ai_tags=("a",)),
            created_at=now,
            updated_at=now,
        )

        assert NarrativeContext.from_record(narrative.to_record()) == narrative
        assert narrative.to_dict()["eventId"] == "e"


class TestEventValidator:
    @pytest.mark.parametrize("name", ["", "   ", None, 5, "x" * 201])
    def test_bad_event_names(self, name):
        with pytest.raises(ValidationError):
            EventValidator.validate_event_name(name)

    @pytest.mark.parametrize("timestamp", [-1, 1.5, "100", True])
    def test_bad_timestamps(self, timestamp):
        with pytest.raises(ValidationError):
            EventValidator.validate_timestamp(timestamp)

    def test_draft_with_non_string_related_id(self):
        draft = EventDraft(
            event_name="a",
            source="b",
            timestamp=1,
            context=EventContext(related_events=("ok", 7)),
        )

        with pytest.raises(ValidationError) as exc_info:
            EventValidator.validate_draft(draft)

        assert exc_info.value.field_name == "context.related_events"

    def test_draft_with_unknown_category(self):
        draft = EventDraft(
            event_name="a",
            source="b",
            timestamp=1,
            context=EventContext(category="chore"),
        )

        with pytest.raises(ValidationError):
            EventValidator.validate_draft(draft)

    def test_draft_with_unknown_environment(self):
        draft = EventDraft(
            event_name="a",
            source="b",
            timestamp=1,
            metadata=EventMetadata(environment="staging"),
        )

        with pytest.raises(ValidationError):
            EventValidator.validate_draft(draft)

    def test_valid_draft_passes(self):
        draft = EventDraft.from_dict(WIRE_DRAFT)

        assert EventValidator.validate_draft(draft) is draft

    def test_query_time_window_order(self):
        with pytest.raises(ValidationError):
            EventValidator.validate_query(EventHistoryQuery(start_time=10, end_time=5))

    def test_query_negative_depth(self):
        with pytest.raises(ValidationError):
            EventValidator.validate_query(
                EventHistoryQuery(event_id="e", include_related=True, max_depth=-1)
            )

    @pytest.mark.parametrize("outcome", ["", "  ", None])
    def test_empty_outcome(self, outcome):
        with pytest.raises(ValidationError):
            EventValidator.validate_outcome(OutcomeUpdate(outcome))

    def test_non_text_impact_metric(self):
        with pytest.raises(ValidationError):
            EventValidator.validate_outcome(OutcomeUpdate("done", 42))
