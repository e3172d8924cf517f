"""
Unit tests for EventGraphStore on the in-memory backend.

Tests id generation and auto-classification on publish, filtered history
queries, graph queries, outcome updates and narrative upserts.
"""

import logging

import pytest

from eventmesh.core.exceptions import ValidationError
from eventmesh.modules.event_graph.types import (
    DocumentableEvent,
    EventContext,
    EventHistoryQuery,
    NarrativeFields,
    OutcomeUpdate,
)


@pytest.mark.asyncio
class TestPublishDocumentable:
    async def test_generates_unique_ids(self, memory_store, make_draft):
        first = await memory_store.publish_documentable(make_draft())
        second = await memory_store.publish_documentable(make_draft())

        assert first.id and second.id
        assert first.id != second.id

    async def test_significant_event_is_documented_by_default(
        self, memory_store, make_draft
    ):
        event = await memory_store.publish_documentable(make_draft("widget.created"))

        assert event.should_document is True

    async def test_noisy_event_is_not_documented_by_default(
        self, memory_store, make_draft
    ):
        event = await memory_store.publish_documentable(make_draft("mouse.moved"))

        assert event.should_document is False

    async def test_explicit_choice_wins(self, memory_store, make_draft):
        forced = await memory_store.publish_documentable(
            make_draft("mouse.moved", should_document=True)
        )
        suppressed = await memory_store.publish_documentable(
            make_draft("widget.created", should_document=False)
        )

        assert forced.should_document is True
        assert suppressed.should_document is False

    async def test_accepts_wire_form(self, memory_store):
        event = await memory_store.publish_documentable(
            {
                "eventName": "automation.triggered",
                "source": "rules-widget",
                "timestamp": 5,
                "context": {"relatedEvents": []},
            }
        )

        assert event.event_name == "automation.triggered"
        assert event.should_document is True
        assert await memory_store.get_event(event.id) == event

    async def test_malformed_draft_raises_before_write(
        self, memory_store, memory_backend, make_draft
    ):
        with pytest.raises(ValidationError):
            await memory_store.publish_documentable(make_draft(""))

        assert len(memory_backend) == 0

    async def test_stored_event_is_returned(self, memory_store, make_draft):
        event = await memory_store.publish_documentable(
            make_draft(payload={"k": "v"}, user_id="u-1")
        )

        stored = await memory_store.get_event(event.id)

        assert stored == event
        assert stored.payload == {"k": "v"}


@pytest.mark.asyncio
class TestQueryEventHistory:
    async def seed(self, store, make_draft):
        return [
            await store.publish_documentable(
                make_draft("widget.created", source="kanban", timestamp=300, user_id="u1")
            ),
            await store.publish_documentable(
                make_draft("provider.connected", source="settings", timestamp=100, user_id="u2")
            ),
            await store.publish_documentable(
                make_draft("widget.created", source="github", timestamp=200, session_id="s1")
            ),
        ]

    async def test_no_filters_returns_all_ordered_by_timestamp(
        self, memory_store, make_draft
    ):
        await self.seed(memory_store, make_draft)

        events = await memory_store.query_event_history()

        assert [e.timestamp for e in events] == [100, 200, 300]

    async def test_event_name_filter(self, memory_store, make_draft):
        await self.seed(memory_store, make_draft)

        events = await memory_store.query_event_history(event_name="widget.created")

        assert [e.source for e in events] == ["github", "kanban"]

    async def test_filters_combine(self, memory_store, make_draft):
        await self.seed(memory_store, make_draft)

        events = await memory_store.query_event_history(
            event_name="widget.created", source="kanban"
        )

        assert len(events) == 1
        assert events[0].user_id == "u1"

    async def test_user_and_session_filters(self, memory_store, make_draft):
        await self.seed(memory_store, make_draft)

        by_user = await memory_store.query_event_history(user_id="u2")
        by_session = await memory_store.query_event_history(session_id="s1")

        assert [e.event_name for e in by_user] == ["provider.connected"]
        assert [e.source for e in by_session] == ["github"]

    async def test_inclusive_time_window(self, memory_store, make_draft):
        await self.seed(memory_store, make_draft)

        events = await memory_store.query_event_history(start_time=100, end_time=200)

        assert [e.timestamp for e in events] == [100, 200]

    async def test_query_object_and_keywords(self, memory_store, make_draft):
        await self.seed(memory_store, make_draft)

        events = await memory_store.query_event_history(
            EventHistoryQuery(event_name="widget.created"), source="github"
        )

        assert [e.source for e in events] == ["github"]

    async def test_event_id_without_include_related_is_ignored(
        self, memory_store, make_draft
    ):
        seeded = await self.seed(memory_store, make_draft)

        events = await memory_store.query_event_history(event_id=seeded[0].id)

        assert len(events) == 3

    async def test_inverted_window_raises(self, memory_store):
        with pytest.raises(ValidationError):
            await memory_store.query_event_history(start_time=10, end_time=1)


@pytest.mark.asyncio
class TestGraphQueries:
    async def build_workflow(self, store, make_draft):
        """
        started -> connected -> completed
                -> failed
        """
        completed = await store.publish_documentable(
            make_draft("workflow.completed", timestamp=3)
        )
        failed = await store.publish_documentable(
            make_draft("error.occurred", timestamp=4)
        )
        connected = await store.publish_documentable(
            make_draft("provider.connected", timestamp=2, related=[completed.id])
        )
        started = await store.publish_documentable(
            make_draft(
                "automation.triggered", timestamp=1, related=[connected.id, failed.id]
            )
        )
        return started, connected, completed, failed

    async def test_include_related_returns_reachable_graph(
        self, memory_store, make_draft
    ):
        started, connected, completed, failed = await self.build_workflow(
            memory_store, make_draft
        )
        await memory_store.publish_documentable(make_draft("unrelated.event"))

        events = await memory_store.query_event_history(
            event_id=started.id, include_related=True
        )

        assert [e.id for e in events] == [started.id, connected.id, completed.id, failed.id]

    async def test_max_depth_limits_graph(self, memory_store, make_draft):
        started, connected, _completed, failed = await self.build_workflow(
            memory_store, make_draft
        )

        events = await memory_store.query_event_history(
            event_id=started.id, include_related=True, max_depth=1
        )

        assert [e.id for e in events] == [started.id, connected.id, failed.id]

    async def test_max_depth_zero_returns_start_only(self, memory_store, make_draft):
        started, *_ = await self.build_workflow(memory_store, make_draft)

        events = await memory_store.query_event_history(
            event_id=started.id, include_related=True, max_depth=0
        )

        assert [e.id for e in events] == [started.id]

    async def test_cycle_terminates(self, memory_store, memory_backend):
        for event_id, related in (("a", "b"), ("b", "c"), ("c", "a")):
            await memory_backend.insert_event(
                DocumentableEvent(
                    id=event_id,
                    event_name="workflow.step",
                    source="test",
                    timestamp=1,
                    context=EventContext(related_events=(related,)),
                )
            )

        events = await memory_store.query_event_history(
            event_id="b", include_related=True, max_depth=10
        )

        assert [e.id for e in events] == ["b", "c", "a"]

    async def test_unknown_start_returns_empty(self, memory_store, make_draft):
        await self.build_workflow(memory_store, make_draft)

        events = await memory_store.query_event_history(
            event_id="does-not-exist", include_related=True
        )

        assert events == []

    async def test_filters_restrict_the_pool(self, memory_store, make_draft):
        started, connected, completed, failed = await self.build_workflow(
            memory_store, make_draft
        )

        events = await memory_store.query_event_history(
            event_id=started.id, include_related=True, end_time=2
        )

        assert [e.id for e in events] == [started.id, connected.id]

    async def test_pool_limit_keeps_most_recent(self, memory_backend, make_draft):
        from eventmesh.modules.event_graph.store import EventGraphStore

        store = EventGraphStore(memory_backend, pool_limit=2)
        old = await store.publish_documentable(make_draft(timestamp=1))
        middle = await store.publish_documentable(
            make_draft(timestamp=2, related=[old.id])
        )
        newest = await store.publish_documentable(
            make_draft(timestamp=3, related=[middle.id])
        )

        events = await store.query_event_history(
            event_id=newest.id, include_related=True
        )

        assert [e.id for e in events] == [newest.id, middle.id]


@pytest.mark.asyncio
class TestUpdateEventOutcome:
    async def test_updates_outcome_and_impact(self, memory_store, make_draft):
        event = await memory_store.publish_documentable(make_draft())

        await memory_store.update_event_outcome(
            event.id, {"outcome": "PRs linked", "impactMetric": "saved 2h/week"}
        )

        stored = await memory_store.get_event(event.id)
        assert stored.outcome == "PRs linked"
        assert stored.user_intent.impact_metric == "saved 2h/week"
        assert stored.timestamp == event.timestamp
        assert stored.related_events == event.related_events

    async def test_last_write_wins(self, memory_store, make_draft):
        event = await memory_store.publish_documentable(make_draft())

        await memory_store.update_event_outcome(event.id, OutcomeUpdate("first"))
        await memory_store.update_event_outcome(event.id, OutcomeUpdate("second"))

        assert (await memory_store.get_event(event.id)).outcome == "second"

    async def test_unknown_event_is_a_logged_no_op(
        self, memory_store, memory_backend, caplog
    ):
        with caplog.at_level(logging.INFO):
            result = await memory_store.update_event_outcome(
                "missing", OutcomeUpdate("done")
            )

        assert result is None
        assert len(memory_backend) == 0
        assert any(
            r.getMessage() == "Outcome update for unknown event ignored"
            for r in caplog.records
        )

    async def test_empty_outcome_raises(self, memory_store, make_draft):
        event = await memory_store.publish_documentable(make_draft())

        with pytest.raises(ValidationError):
            await memory_store.update_event_outcome(event.id, {"outcome": ""})


@pytest.mark.asyncio
class TestNarrativeContext:
    async def test_save_and_get(self, memory_store, make_draft):
        event = await memory_store.publish_documentable(make_draft())

        await memory_store.save_narrative_context(
            event.id, {"longDescription": "Why", "aiTags": ["integration"]}
        )

        narrative = await memory_store.get_narrative_context(event.id)
        assert narrative.event_id == event.id
        assert narrative.fields.long_description == "Why"
        assert narrative.fields.ai_tags == ("integration",)
        assert narrative.created_at == narrative.updated_at

    async def test_saving_twice_keeps_one_narrative_with_latest_content(
        self, memory_store, memory_backend, make_draft
    ):
        event = await memory_store.publish_documentable(make_draft())

        await memory_store.save_narrative_context(
            event.id, NarrativeFields(long_description="draft", ai_tags=("a",))
        )
        first = await memory_store.get_narrative_context(event.id)
        await memory_store.save_narrative_context(
            event.id, NarrativeFields(long_description="final")
        )
        second = await memory_store.get_narrative_context(event.id)

        assert second.id == first.id
        assert second.created_at == first.created_at
        assert second.updated_at >= first.updated_at
        assert second.fields.long_description == "final"
        assert second.fields.ai_tags == ()
        assert len(memory_backend._narratives) == 1

    async def test_missing_narrative(self, memory_store):
        assert await memory_store.get_narrative_context("nope") is None


@pytest.mark.asyncio
class TestStoreLifecycle:
    async def test_memory_backend_has_no_fallback(self, memory_store):
        assert memory_store.fallback is None
        assert await memory_store.health_check() is True

    async def test_stats(self, memory_store, make_draft):
        await memory_store.publish_documentable(make_draft())

        stats = memory_store.get_stats()

        assert stats == {
            "backend": "memory",
            "durable": False,
            "fallback_writes": 0,
            "fallback_events": 0,
        }


@pytest.mark.asyncio
class TestStoredEventsAreDetached:
    async def test_caller_payload_changes_do_not_reach_store(self, memory_store, make_draft):
        payload = {"jiraTicket": "SCRUM-5"}
        event = await memory_store.publish_documentable(make_draft(payload=payload))

        payload["jiraTicket"] = "MUTATED"

        assert (await memory_store.get_event(event.id)).payload == {"jiraTicket": "SCRUM-5"}

    async def test_returned_events_do_not_share_state(self, memory_store):
        event = await memory_store.publish_documentable(
            {
                "eventName": "widget.created",
                "source": "kanban",
                "payload": {"a": 1},
                "metadata": {"browser": {"name": "firefox"}},
            }
        )

        fetched = await memory_store.get_event(event.id)
        fetched.payload["a"] = 2
        fetched.metadata.extra["browser"]["name"] = "chrome"
        (await memory_store.query_event_history())[0].payload["a"] = 3

        stored = await memory_store.get_event(event.id)
        assert stored.payload == {"a": 1}
        assert stored.metadata.extra == {"browser": {"name": "firefox"}}
