"""
Unit tests for concurrent access to a shared scheduler.
"""

import threading

from recall import Outcome


class TestConcurrentReviews:
    """Reviews from several threads never lose updates."""

    def test_review_is_atomic(self, scheduler):
        per_thread = 250
        outcomes = [Outcome.GOOD, Outcome.AGAIN, Outcome.HARD, Outcome.EASY]

        def worker(outcome):
            for _ in range(per_thread):
                scheduler.review("shared", outcome)

        threads = [threading.Thread(target=worker, args=(o,)) for o in outcomes]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert scheduler.get_or_create("shared").total_reviews == per_thread * len(outcomes)

    def test_queries_alongside_reviews(self, scheduler):
        ids = [f"c{i}" for i in range(50)]
        errors = []

        def reviewer():
            for card_id in ids:
                scheduler.review(card_id, Outcome.GOOD)

        def reader():
            try:
                for _ in range(20):
                    scheduler.sorted_by_priority(ids)
                    scheduler.stats(ids)
            except Exception as e:  # pragma: no cover - surfaced by the assert
                errors.append(e)

        threads = [threading.Thread(target=reviewer), threading.Thread(target=reader)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert scheduler.stats(ids).learning == 50
