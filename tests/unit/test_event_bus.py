"""
Unit tests for EventBus.

Tests subscription and delivery order, subscriber isolation, the bounded
event log, the safe-mode delivery switch, introspection, and metrics.
"""

import logging

import pytest

from eventmesh.core.event.bus import EventBus
from eventmesh.core.event.types import LiveEvent


class TestDelivery:
    """Publish reaches every matching subscription, in registration order."""

    def test_wildcard_subscriber_receives_payload(self, bus):
        received = []
        bus.subscribe("github.*", received.append, owner_id="jira-widget")

        bus.publish("github.pr.selected", {"jiraTicket": "SCRUM-5"}, source="github")

        assert len(received) == 1
        assert received[0]["jiraTicket"] == "SCRUM-5"

    def test_payload_is_passed_unchanged(self, bus):
        received = []
        payload = {"prNumber": 42, "nested": {"labels": ["bug"]}}
        bus.subscribe("github.pr.selected", received.append)

        bus.publish("github.pr.selected", payload)

        assert received[0] is payload

    def test_delivery_in_registration_order(self, bus):
        calls = []
        bus.subscribe("*", lambda _: calls.append("global"))
        bus.subscribe("github.*", lambda _: calls.append("prefix"))
        bus.subscribe("github.pr.selected", lambda _: calls.append("exact"))

        bus.publish("github.pr.selected")

        assert calls == ["global", "prefix", "exact"]

    def test_non_matching_subscriber_not_called(self, bus):
        received = []
        bus.subscribe("jira.*", received.append)

        bus.publish("github.pr.selected", {"x": 1})

        assert received == []

    def test_bare_prefix_subscriber_not_called_for_descendant(self, bus):
        received = []
        bus.subscribe("github", received.append)

        bus.publish("github.pr.selected", {"x": 1})

        assert received == []

    def test_same_handler_twice_is_called_twice(self, bus):
        received = []
        bus.subscribe("a.*", received.append)
        bus.subscribe("a.*", received.append)

        bus.publish("a.b", 1)

        assert received == [1, 1]

    def test_publish_without_subscribers_does_nothing(self, bus):
        bus.publish("nobody.listens", {"x": 1})

        assert len(bus.get_log()) == 1


class TestSubscriberIsolation:
    """A raising handler never blocks the others and never reaches the publisher."""

    def test_failing_handler_does_not_block_others(self, bus):
        received = []

        def broken(_payload):
            raise RuntimeError("widget crashed")

        bus.subscribe("github.*", broken, owner_id="broken-widget")
        bus.subscribe("github.*", received.append)

        bus.publish("github.pr.selected", {"jiraTicket": "SCRUM-5"})

        assert received == [{"jiraTicket": "SCRUM-5"}]

    def test_failure_is_logged_with_subscription_details(self, bus, caplog):
        def broken(_payload):
            raise ValueError("bad payload")

        bus.subscribe("github.*", broken, owner_id="broken-widget")

        with caplog.at_level(logging.ERROR):
            bus.publish("github.pr.selected", {})

        records = [r for r in caplog.records if r.getMessage() == "EventBus subscriber error"]
        assert len(records) == 1
        assert records[0].owner_id == "broken-widget"
        assert records[0].error_type == "ValueError"

    def test_failure_counts_as_error_not_delivery(self, bus):
        bus.subscribe("x", lambda _: 1 / 0)
        bus.subscribe("x", lambda _: None)

        bus.publish("x")

        summary = bus.get_metrics_summary()
        assert summary["total_errors"] == 1
        assert summary["total_deliveries"] == 1


class TestUnsubscribe:
    """The callable returned by subscribe removes exactly that subscription."""

    def test_unsubscribe_stops_delivery(self, bus):
        received = []
        unsubscribe = bus.subscribe("github.*", received.append)

        unsubscribe()
        bus.publish("github.pr.selected", 1)

        assert received == []

    def test_unsubscribe_is_idempotent(self, bus):
        unsubscribe = bus.subscribe("github.*", lambda _: None)

        unsubscribe()
        unsubscribe()

        assert bus.get_subscription_count() == 0

    def test_unsubscribe_only_removes_its_own_subscription(self, bus):
        received = []
        first = bus.subscribe("a.*", received.append)
        bus.subscribe("a.*", received.append)

        first()
        bus.publish("a.b", "payload")

        assert received == ["payload"]
        assert bus.get_subscription_count() == 1

    def test_handler_unsubscribing_during_dispatch_keeps_current_delivery(self, bus):
        calls = []
        holder = {}

        def first(_payload):
            calls.append("first")
            holder["second"]()

        bus.subscribe("x", first)
        holder["second"] = bus.subscribe("x", lambda _: calls.append("second"))

        bus.publish("x")
        bus.publish("x")

        assert calls == ["first", "second", "first"]

    def test_clear_subscriptions(self, bus):
        bus.subscribe("a", lambda _: None)
        bus.subscribe("b", lambda _: None)

        bus.clear_subscriptions()

        assert bus.get_subscription_count() == 0
        assert bus.get_metrics().total_subscriptions == 0


class TestEventLog:
    """Every publish is logged; the log keeps the most recent 100 entries."""

    def test_publish_is_logged(self, bus):
        bus.publish("github.pr.selected", {"prNumber": 1}, source="github")

        log = bus.get_log()

        assert len(log) == 1
        assert isinstance(log[0], LiveEvent)
        assert log[0].name == "github.pr.selected"
        assert log[0].payload == {"prNumber": 1}
        assert log[0].source == "github"
        assert log[0].timestamp.tzinfo is not None

    def test_log_keeps_most_recent_100(self, bus):
        for i in range(150):
            bus.publish(f"tick.{i}", i)

        log = bus.get_log()

        assert len(log) == 100
        assert log[0].payload == 50
        assert log[-1].payload == 149

    def test_log_is_a_copy(self, bus):
        bus.publish("a")

        bus.get_log().clear()

        assert len(bus.get_log()) == 1

    def test_clear_log(self, bus):
        bus.publish("a")
        bus.publish("b")

        bus.clear_log()

        assert bus.get_log() == []

    def test_custom_capacity(self):
        small = EventBus(log_capacity=3)

        for i in range(5):
            small.publish("e", i)

        assert [e.payload for e in small.get_log()] == [2, 3, 4]
        assert small.log_capacity == 3

    def test_invalid_capacity_rejected(self):
        with pytest.raises(ValueError):
            EventBus(log_capacity=0)

    def test_live_event_to_dict(self, bus):
        bus.publish("a.b", {"k": "v"}, source="w")

        data = bus.get_log()[0].to_dict()

        assert data["name"] == "a.b"
        assert data["payload"] == {"k": "v"}
        assert data["source"] == "w"
        assert isinstance(data["timestamp"], str)


class TestSafeMode:
    """Disabled delivery still logs, and never replays on re-enable."""

    def test_disabled_bus_logs_but_does_not_deliver(self, bus):
        received = []
        bus.subscribe("*", received.append)

        bus.set_enabled(False)
        bus.publish("github.pr.selected", {"x": 1})

        assert received == []
        assert [e.name for e in bus.get_log()] == ["github.pr.selected"]

    def test_reenabling_does_not_replay(self, bus):
        received = []
        bus.subscribe("*", received.append)

        bus.set_enabled(False)
        bus.publish("missed", 1)
        bus.set_enabled(True)
        bus.publish("seen", 2)

        assert received == [2]

    def test_toggle_returns_new_state(self, bus):
        assert bus.is_enabled is True

        assert bus.toggle() is False
        assert bus.safe_mode is True
        assert bus.toggle() is True
        assert bus.safe_mode is False

    def test_starting_in_safe_mode(self):
        received = []
        quiet = EventBus(log_capacity=10, enabled=False)
        quiet.subscribe("*", received.append)

        quiet.publish("a", 1)

        assert received == []
        assert quiet.get_metrics_summary()["total_suppressed"] == 1

    def test_state_change_logs_warning(self, bus, caplog):
        with caplog.at_level(logging.WARNING):
            bus.set_enabled(False)
            bus.set_enabled(False)

        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 1


class TestIntrospection:
    def test_subscription_snapshots_hide_handlers(self, bus):
        def on_pr(_payload):
            pass

        bus.subscribe("github.*", on_pr, owner_id="jira-widget")

        (info,) = bus.get_subscriptions()

        assert info.pattern == "github.*"
        assert info.owner_id == "jira-widget"
        assert info.handler_name.endswith("on_pr")
        assert not hasattr(info, "handler")

    def test_subscriptions_by_owner(self, bus):
        bus.subscribe("a", lambda _: None, owner_id="w1")
        bus.subscribe("b", lambda _: None, owner_id="w2")
        bus.subscribe("c", lambda _: None, owner_id="w1")
        bus.subscribe("d", lambda _: None)

        grouped = bus.get_subscriptions_by_owner()

        assert [s.pattern for s in grouped["w1"]] == ["a", "c"]
        assert [s.pattern for s in grouped["w2"]] == ["b"]
        assert [s.pattern for s in grouped[None]] == ["d"]

    def test_matching_subscriptions_and_count(self, bus):
        bus.subscribe("github.*", lambda _: None)
        bus.subscribe("*", lambda _: None)
        bus.subscribe("jira.*", lambda _: None)

        matching = bus.get_matching_subscriptions("github.pr.selected")

        assert [s.pattern for s in matching] == ["github.*", "*"]
        assert bus.get_subscription_count("github.pr.selected") == 2
        assert bus.get_subscription_count() == 3

    def test_all_patterns_sorted_unique(self, bus):
        bus.subscribe("jira.*", lambda _: None)
        bus.subscribe("github.*", lambda _: None)
        bus.subscribe("github.*", lambda _: None)

        assert bus.get_all_patterns() == ["github.*", "jira.*"]


class TestMetrics:
    def test_publish_and_delivery_counts(self, bus):
        bus.subscribe("a.*", lambda _: None)

        bus.publish("a.one")
        bus.publish("a.one")
        bus.publish("b.two")

        metrics = bus.get_metrics()

        assert metrics.events_published == {"a.one": 2, "b.two": 1}
        assert metrics.deliveries == {"a.one": 2}
        assert metrics.total_subscriptions == 1

    def test_disabled_metrics(self, bus):
        bus.disable_metrics()
        bus.publish("a")

        assert bus.get_metrics() is None
        assert bus.get_metrics_summary() == {}

        bus.enable_metrics()
        assert bus.get_metrics() is not None
