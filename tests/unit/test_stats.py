"""
Unit tests for scheduler statistics.
"""

from datetime import timedelta

import pytest

from recall import CardState, Outcome, SchedulerConfig


class TestStats:
    """Test aggregate counts."""

    def test_empty(self, scheduler):
        stats = scheduler.stats([])

        assert stats.total == 0
        assert stats.due == 0
        assert stats.average_ease == 2.5

    def test_all_new_cards_are_due(self, scheduler):
        stats = scheduler.stats(["a", "b", "c"])

        assert stats.total == 3
        assert stats.new == 3
        assert stats.learning == 0
        assert stats.review == 0
        assert stats.due == 3

    def test_counts_by_state(self, scheduler, make_review_card):
        scheduler.review("learning", Outcome.GOOD)
        make_review_card("review", ease_factor=2.0, due=False)
        make_review_card("lapsed")
        scheduler.review("lapsed", Outcome.AGAIN)

        stats = scheduler.stats(["new", "learning", "review", "lapsed"])

        assert stats.total == 4
        assert stats.new == 1
        assert stats.learning == 2
        assert stats.review == 1
        # Only the New card is due right now
        assert stats.due == 1

    def test_average_ease_over_review_cards_only(self, scheduler, make_review_card):
        make_review_card("r1", ease_factor=2.0)
        make_review_card("r2", ease_factor=3.0)
        scheduler.get_or_create("learning").state = CardState.LEARNING
        scheduler.get_or_create("learning").ease_factor = 1.3

        stats = scheduler.stats(["r1", "r2", "learning", "new"])

        assert stats.average_ease == pytest.approx(2.5)

    def test_buried_cards_excluded_from_due_and_ease(self, scheduler, make_review_card):
        make_review_card("r1", ease_factor=2.0)
        buried = make_review_card("r2", ease_factor=1.3)
        buried.buried = True

        stats = scheduler.stats(["r1", "r2"])

        assert stats.total == 2
        assert stats.review == 2
        assert stats.buried == 1
        assert stats.due == 1
        assert stats.average_ease == pytest.approx(2.0)

    def test_default_ease_without_review_cards(self, scheduler):
        scheduler.config = SchedulerConfig(starting_ease=2.7)

        assert scheduler.stats(["n1"]).average_ease == 2.7

    def test_due_ignores_state(self, scheduler, clock):
        scheduler.review("c1", Outcome.AGAIN)
        clock.advance(minutes=5)

        assert scheduler.stats(["c1"]).due == 1

    def test_to_dict(self, scheduler):
        data = scheduler.stats(["a"]).to_dict()

        assert set(data) == {"total", "new", "learning", "review", "due", "average_ease", "buried"}
        assert data["new"] == 1
