"""
Unit tests for the event name pattern matcher.

Covers the three pattern forms ("*", "<prefix>.*", exact) and the boundary
cases around the dot after a prefix.
"""

import pytest

from eventmesh.core.event.router import EventRouter, is_wildcard, matches


class TestGlobalWildcard:
    """"*" matches every event name."""

    @pytest.mark.parametrize(
        "event_name", ["github.pr.selected", "a", "", "provider.connected"]
    )
    def test_star_matches_anything(self, event_name):
        assert matches(event_name, "*") is True


class TestPrefixWildcard:
    """"<prefix>.*" matches dotted descendants of the prefix only."""

    def test_matches_descendant(self):
        assert matches("github.pr.selected", "github.*") is True

    def test_matches_direct_child(self):
        assert matches("github.refresh", "github.*") is True

    def test_does_not_match_bare_prefix(self):
        assert matches("github", "github.*") is False

    def test_does_not_match_longer_word_with_same_start(self):
        assert matches("githubx.pr.selected", "github.*") is False

    def test_multi_segment_prefix(self):
        assert matches("github.pr.selected", "github.pr.*") is True
        assert matches("github.issue.opened", "github.pr.*") is False

    def test_case_sensitive(self):
        assert matches("GitHub.pr.selected", "github.*") is False


class TestExactPattern:
    """Patterns without a wildcard require equality."""

    def test_exact_match(self):
        assert matches("jira.ticket.updated", "jira.ticket.updated") is True

    def test_bare_prefix_does_not_match_descendants(self):
        assert matches("github.pr.selected", "github") is False

    def test_different_name(self):
        assert matches("jira.ticket.created", "jira.ticket.updated") is False


class TestHelpers:
    def test_is_wildcard(self):
        assert is_wildcard("*") is True
        assert is_wildcard("github.*") is True
        assert is_wildcard("github.pr.selected") is False

    def test_router_delegates_to_matches(self):
        router = EventRouter()

        assert router.matches("github.pr.selected", "github.*") is True
        assert router.matches("github", "github.*") is False
