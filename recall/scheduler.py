"""
Anki-style Spaced Repetition Scheduler.

Implements:
- Four-state card lifecycle (New -> Learning -> Review <-> Relearning)
- Ease factor arithmetic with a configurable floor
- Lapse counting and leech burial
- Due / new / study selection under daily caps
- Priority ordering for a study queue

Outcome scale:
Again - Failed to recall
Hard  - Recalled with serious difficulty
Good  - Recalled after some hesitation
Easy  - Recalled instantly
"""

from __future__ import annotations

import math
import threading
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime, timedelta
from typing import Any

from loguru import logger

from .config import SchedulerConfig
from .errors import CorruptSnapshotRecord
from .models import CardState, Outcome, ScheduleRecord, StudyStats

Clock = Callable[[], datetime]

EASE_PENALTY_AGAIN = 0.20
EASE_PENALTY_HARD = 0.15
EASE_BONUS_EASY = 0.15


# =============================================================================
# Outcome Adapters
# =============================================================================


def outcome_from_quality(quality: int) -> Outcome:
    """
    Convert an SM-2 quality score (0-5) to an outcome.

    0-2 map to Again, 3 to Hard, 4 to Good and 5 to Easy. Scores outside
    0-5 are clamped first.
    """
    quality = max(0, min(5, int(quality)))
    if quality < 3:
        return Outcome.AGAIN
    if quality == 3:
        return Outcome.HARD
    if quality == 4:
        return Outcome.GOOD
    return Outcome.EASY


def outcome_from_response(
    is_correct: bool,
    response_ms: int,
    expected_ms: int = 10000,
) -> Outcome:
    """
    Convert a graded response to an outcome.

    Args:
        is_correct: Whether the answer was correct
        response_ms: Time taken to respond
        expected_ms: Expected response time

    Returns:
        Again for wrong answers, otherwise Easy / Good / Hard by speed
    """
    if not is_correct:
        return Outcome.AGAIN

    if response_ms < expected_ms * 0.5:
        return Outcome.EASY  # Quick and correct = perfect recall
    elif response_ms < expected_ms:
        return Outcome.GOOD
    else:
        return Outcome.HARD  # Correct but struggled


# =============================================================================
# Scheduler
# =============================================================================


class Scheduler:
    """
    Owns the schedule map and applies review outcomes to it.

    Each card has:
    - State: New, Learning, Review or Relearning
    - Ease factor: multiplier for Review intervals (floored at minimum_ease)
    - Interval: days until the next Review
    - Lapses: times the card was forgotten from Review

    All public operations take a single lock and read the clock exactly once,
    so a card is never judged due by one check and not due by another within
    the same call.
    """

    def __init__(
        self,
        config: SchedulerConfig | None = None,
        clock: Clock | None = None,
        snapshot: Mapping[str, Any] | None = None,
    ):
        """
        Initialize the scheduler.

        Args:
            config: Policy knobs (uses defaults if None)
            clock: Current-time source (defaults to datetime.now)
            snapshot: Prior export for a warm start
        """
        self.config = config or SchedulerConfig()
        self._clock = clock or datetime.now
        self._records: dict[str, ScheduleRecord] = {}
        self._lock = threading.RLock()

        if snapshot:
            self.import_snapshot(snapshot)

    def now(self) -> datetime:
        return self._clock()

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, card_id: object) -> bool:
        return card_id in self._records

    # =========================================================================
    # Records
    # =========================================================================

    def get_or_create(self, card_id: str) -> ScheduleRecord:
        """
        Get the schedule record for a card, creating a New one if unseen.

        Args:
            card_id: The card identifier

        Returns:
            The live ScheduleRecord held by the scheduler
        """
        with self._lock:
            return self._get_or_create(card_id, self.now())

    def _get_or_create(self, card_id: str, now: datetime) -> ScheduleRecord:
        record = self._records.get(card_id)
        if record is None:
            record = self._new_record(card_id, now)
            self._records[card_id] = record
        return record

    def _new_record(self, card_id: str, now: datetime) -> ScheduleRecord:
        return ScheduleRecord(
            card_id=card_id,
            ease_factor=self.config.starting_ease,
            next_review_at=now,
        )

    def unbury(self, card_id: str) -> ScheduleRecord:
        """
        Clear the leech flag on a card.

        The lapse counter is reset as well; otherwise the next review would
        bury the card again straight away.
        """
        with self._lock:
            record = self._get_or_create(card_id, self.now())
            if record.buried:
                logger.info(f"Unburied {card_id} after {record.lapses} lapses")
            record.buried = False
            record.lapses = 0
            return record

    # =========================================================================
    # Review
    # =========================================================================

    def review(self, card_id: str, outcome: Outcome | str) -> ScheduleRecord:
        """
        Apply a review outcome to a card.

        Args:
            card_id: The reviewed card
            outcome: Again, Hard, Good or Easy

        Returns:
            The updated ScheduleRecord
        """
        outcome = Outcome.parse(outcome)

        with self._lock:
            now = self.now()
            record = self._get_or_create(card_id, now)
            previous = record.state
            # The floor may have been raised since the card was last answered
            record.ease_factor = self._floor_ease(record.ease_factor)

            if record.state == CardState.NEW:
                self._answer_new(record, outcome, now)
            elif record.state == CardState.LEARNING:
                self._answer_learning(record, outcome, now)
            elif record.state == CardState.REVIEW:
                self._answer_review(record, outcome, now)
            else:
                self._answer_relearning(record, outcome, now)

            record.total_reviews += 1
            record.last_reviewed_at = now

            if record.lapses >= self.config.leech_threshold and not record.buried:
                record.buried = True
                logger.info(f"Card {card_id} buried as a leech after {record.lapses} lapses")

            logger.debug(
                f"Reviewed {card_id}: {outcome.value}, {previous.value} -> {record.state.value}, "
                f"interval={record.interval_days}d, ease={record.ease_factor:.2f}, "
                f"next_review={record.next_review_at}"
            )
            return record

    def _answer_new(self, record: ScheduleRecord, outcome: Outcome, now: datetime) -> None:
        if outcome == Outcome.EASY:
            self._graduate(record, self.config.easy_interval, now)
            return

        record.state = CardState.LEARNING
        record.current_step = 0
        if outcome == Outcome.AGAIN:
            record.correct_streak = 0
        self._reschedule_step(record, self.config.learning_steps, now)

    def _answer_learning(self, record: ScheduleRecord, outcome: Outcome, now: datetime) -> None:
        steps = self.config.learning_steps

        if outcome == Outcome.AGAIN:
            record.current_step = 0
            record.correct_streak = 0
        elif outcome == Outcome.HARD:
            record.current_step = max(0, record.current_step - 1)
        elif outcome == Outcome.GOOD:
            if self._advance_step(record, steps):
                self._graduate(record, self.config.graduating_interval, now)
                return
        else:
            self._graduate(record, self.config.easy_interval, now)
            return

        self._reschedule_step(record, steps, now)

    def _answer_review(self, record: ScheduleRecord, outcome: Outcome, now: datetime) -> None:
        config = self.config
        old_interval = record.interval_days

        if outcome == Outcome.AGAIN:
            record.lapses += 1
            record.repetitions = 0
            record.correct_streak = 0
            record.ease_factor = self._floor_ease(record.ease_factor - EASE_PENALTY_AGAIN)
            record.interval_days = config.clamp_interval(
                max(1, math.floor(old_interval * config.new_interval))
            )
            record.state = CardState.RELEARNING
            record.current_step = 0
            self._reschedule_step(record, config.relearning_steps, now)
            return

        if outcome == Outcome.HARD:
            interval = max(
                old_interval + 1,
                math.floor(old_interval * config.hard_interval * config.interval_modifier),
            )
            record.ease_factor = self._floor_ease(record.ease_factor - EASE_PENALTY_HARD)
        elif outcome == Outcome.GOOD:
            interval = math.floor(old_interval * record.ease_factor * config.interval_modifier)
            record.repetitions += 1
            record.correct_streak += 1
        else:
            interval = math.floor(
                old_interval * record.ease_factor * config.easy_bonus * config.interval_modifier
            )
            record.ease_factor += EASE_BONUS_EASY
            record.repetitions += 1
            record.correct_streak += 1

        record.interval_days = config.clamp_interval(interval)
        record.next_review_at = now + timedelta(days=record.interval_days)

    def _answer_relearning(self, record: ScheduleRecord, outcome: Outcome, now: datetime) -> None:
        steps = self.config.relearning_steps

        if outcome == Outcome.AGAIN:
            record.current_step = 0
            record.correct_streak = 0
        elif outcome == Outcome.HARD:
            record.current_step = max(0, record.current_step - 1)
        elif outcome == Outcome.GOOD:
            if self._advance_step(record, steps):
                self._return_to_review(record, record.interval_days, now)
                return
        else:
            self._return_to_review(
                record, math.floor(record.interval_days * self.config.easy_bonus), now
            )
            return

        self._reschedule_step(record, steps, now)

    # =========================================================================
    # Transition Helpers
    # =========================================================================

    @staticmethod
    def _advance_step(record: ScheduleRecord, steps: tuple[float, ...]) -> bool:
        """Move to the next step; True when that step completes the list."""
        record.current_step += 1
        return record.current_step >= len(steps) - 1

    @staticmethod
    def _reschedule_step(record: ScheduleRecord, steps: tuple[float, ...], now: datetime) -> None:
        index = min(record.current_step, len(steps) - 1)
        record.current_step = index
        record.next_review_at = now + timedelta(minutes=steps[index])

    def _graduate(self, record: ScheduleRecord, days: int, now: datetime) -> None:
        record.state = CardState.REVIEW
        record.current_step = 0
        record.interval_days = self.config.clamp_interval(days)
        record.repetitions = 1
        record.correct_streak = 1
        record.next_review_at = now + timedelta(days=record.interval_days)

    def _return_to_review(self, record: ScheduleRecord, days: int, now: datetime) -> None:
        record.state = CardState.REVIEW
        record.current_step = 0
        record.interval_days = self.config.clamp_interval(days)
        record.next_review_at = now + timedelta(days=record.interval_days)

    def _floor_ease(self, ease: float) -> float:
        return max(self.config.minimum_ease, ease)

    # =========================================================================
    # Selection
    # =========================================================================

    def due_cards(self, candidate_ids: Iterable[str]) -> list[str]:
        """
        Get cards that are due for review.

        Learning and Relearning cards whose step wait has elapsed and Review
        cards past their date are returned in input order, along with New
        cards (due from the moment they are first seen). Capped at
        max_reviews_per_day when that is non-zero. Buried cards are excluded.
        """
        with self._lock:
            now = self.now()
            due = self._due_ids(candidate_ids, now)

        limit = self.config.max_reviews_per_day
        if limit:
            due = due[:limit]
        logger.debug(f"Found {len(due)} due cards")
        return due

    def _due_ids(self, candidate_ids: Iterable[str], now: datetime) -> list[str]:
        due: list[str] = []
        for card_id in _unique(candidate_ids):
            record = self._get_or_create(card_id, now)
            if not record.buried and record.is_due(now):
                due.append(card_id)
        return due

    def new_cards(self, candidate_ids: Iterable[str]) -> list[str]:
        """Get unseen cards, capped at new_cards_per_day."""
        with self._lock:
            now = self.now()
            new = self._new_ids(candidate_ids, now)

        new = new[: self.config.new_cards_per_day]
        logger.debug(f"Selected {len(new)} new cards")
        return new

    def _new_ids(self, candidate_ids: Iterable[str], now: datetime) -> list[str]:
        new: list[str] = []
        for card_id in _unique(candidate_ids):
            record = self._get_or_create(card_id, now)
            if record.state == CardState.NEW and not record.buried:
                new.append(card_id)
        return new

    def study_cards(self, candidate_ids: Iterable[str]) -> list[str]:
        """
        Get today's study set: due cards first, then new cards.

        New cards are held to new_cards_per_day even though they also count
        as due, and only fill whatever remains of max_reviews_per_day after
        the due cards (when that cap is set).
        """
        candidates = list(candidate_ids)

        with self._lock:
            now = self.now()
            due = [
                card_id
                for card_id in self._due_ids(candidates, now)
                if self._records[card_id].state != CardState.NEW
            ]
            new = self._new_ids(candidates, now)[: self.config.new_cards_per_day]

        seen = set(due)
        study = due + [card_id for card_id in new if card_id not in seen]

        limit = self.config.max_reviews_per_day
        if limit:
            study = study[:limit]

        logger.debug(f"Study set: {len(study)} cards from {len(due)} due and {len(new)} new")
        return study

    # =========================================================================
    # Ordering
    # =========================================================================

    def sorted_by_priority(self, candidate_ids: Iterable[str]) -> list[str]:
        """
        Sort cards from most to least urgent.

        Order:
        1. Buried cards always last
        2. Learning / Relearning first, soonest step wait first
        3. Review cards, due before not due, most overdue first
        4. New cards after all Review cards
        5. Lower ease factor first as the final tie-break

        The sort is stable, so remaining ties keep their input order.
        """
        candidates = list(candidate_ids)

        with self._lock:
            now = self.now()
            keys = {
                card_id: self._priority_key(self._get_or_create(card_id, now), now)
                for card_id in candidates
            }

        return sorted(candidates, key=keys.__getitem__)

    @staticmethod
    def _priority_key(record: ScheduleRecord, now: datetime) -> tuple[int, int, int, float, float]:
        due_at = record.next_review_at.timestamp() if record.next_review_at else 0.0

        if record.state.in_steps:
            bucket, due_rank, when = 0, 0, due_at
        elif record.state == CardState.REVIEW:
            if record.is_due(now):
                bucket, due_rank, when = 1, 0, due_at
            else:
                bucket, due_rank, when = 1, 1, 0.0
        else:
            bucket, due_rank, when = 2, 0, 0.0

        return (int(record.buried), bucket, due_rank, when, record.ease_factor)

    # =========================================================================
    # Stats
    # =========================================================================

    def stats(self, candidate_ids: Iterable[str]) -> StudyStats:
        """
        Get study statistics for a set of cards.

        average_ease covers non-buried Review cards only and falls back to
        the starting ease when there are none; due counts every non-buried
        card whose time has come, whatever its state.
        """
        result = StudyStats()
        review_ease: list[float] = []

        with self._lock:
            now = self.now()
            for card_id in candidate_ids:
                record = self._get_or_create(card_id, now)
                result.total += 1

                if record.state == CardState.NEW:
                    result.new += 1
                elif record.state.in_steps:
                    result.learning += 1
                else:
                    result.review += 1

                if record.buried:
                    result.buried += 1
                    continue

                if record.is_due(now):
                    result.due += 1
                if record.state == CardState.REVIEW:
                    review_ease.append(record.ease_factor)

        if review_ease:
            result.average_ease = sum(review_ease) / len(review_ease)
        else:
            result.average_ease = self.config.starting_ease
        return result

    # =========================================================================
    # Snapshot
    # =========================================================================

    def export_snapshot(self) -> dict[str, ScheduleRecord]:
        """Get a copy of every schedule record, keyed by card id."""
        with self._lock:
            return {card_id: record.copy() for card_id, record in self._records.items()}

    def import_snapshot(self, snapshot: Mapping[str, Any]) -> int:
        """
        Load schedule records from a prior export.

        Entries may be ScheduleRecords or plain dicts (as read back from a
        JSON document). Partially populated dicts take the defaults of a
        fresh New card for missing fields. A record that cannot be
        interpreted is logged and dropped; the card is treated as unseen.

        Args:
            snapshot: Mapping of card id -> record

        Returns:
            Number of records imported
        """
        imported = 0

        with self._lock:
            now = self.now()
            for card_id, entry in snapshot.items():
                try:
                    if isinstance(entry, ScheduleRecord):
                        record = entry.copy()
                        record.card_id = card_id
                    else:
                        record = ScheduleRecord.from_dict(
                            card_id, entry, defaults=self._new_record(card_id, now)
                        )
                except CorruptSnapshotRecord as e:
                    logger.warning(f"Dropping snapshot record: {e}")
                    self._records.pop(card_id, None)
                    continue

                self._normalize(record, now)
                self._records[card_id] = record
                imported += 1

        logger.info(f"Imported {imported} of {len(snapshot)} schedule records")
        return imported

    def _normalize(self, record: ScheduleRecord, now: datetime) -> None:
        """Bring an imported record within the configured bounds."""
        record.normalize_counters()
        record.ease_factor = self._floor_ease(record.ease_factor)
        record.interval_days = max(0, min(self.config.maximum_interval, record.interval_days))
        record.next_review_at = _align_timestamp(record.next_review_at, now)
        record.last_reviewed_at = _align_timestamp(record.last_reviewed_at, now)


def _unique(card_ids: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    result: list[str] = []
    for card_id in card_ids:
        if card_id not in seen:
            seen.add(card_id)
            result.append(card_id)
    return result


def _align_timestamp(value: datetime | None, now: datetime) -> datetime | None:
    """Match a timestamp's timezone awareness to the clock's."""
    if value is None:
        return None
    if now.tzinfo is None and value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    if now.tzinfo is not None and value.tzinfo is None:
        return value.astimezone()
    return value
