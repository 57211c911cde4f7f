"""
Schedule records and review outcomes.

Provides the data shapes shared by the scheduler and its callers:
- CardState: the four scheduling states a card moves between
- Outcome: the four answer buttons
- ScheduleRecord: per-card scheduling state, with snapshot (de)serialization
- StudyStats: aggregate counts over a set of cards
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from .errors import CorruptSnapshotRecord

# =============================================================================
# Enums
# =============================================================================


class CardState(str, Enum):
    """Scheduling state of a card."""

    NEW = "new"
    LEARNING = "learning"
    REVIEW = "review"
    RELEARNING = "relearning"

    @property
    def in_steps(self) -> bool:
        """True while the card is walking a learning or relearning step list."""
        return self in (CardState.LEARNING, CardState.RELEARNING)


class Outcome(str, Enum):
    """Answer given for a card during review."""

    AGAIN = "again"
    HARD = "hard"
    GOOD = "good"
    EASY = "easy"

    @classmethod
    def parse(cls, value: Outcome | str) -> Outcome:
        """Accept an Outcome, its value ("good") or its name ("GOOD")."""
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower()
        for outcome in cls:
            if outcome.value == key:
                return outcome
        raise ValueError(f"Unknown review outcome: {value!r}")


# =============================================================================
# Schedule Record
# =============================================================================

# camelCase names written by the plugin's earlier storage format
_LEGACY_FIELDS = {
    "cardId": "card_id",
    "easeFactor": "ease_factor",
    "interval": "interval_days",
    "nextReview": "next_review_at",
    "lastReviewed": "last_reviewed_at",
    "totalReviews": "total_reviews",
    "correctStreak": "correct_streak",
    "difficulty": "state",
}


@dataclass
class ScheduleRecord:
    """Scheduling state for a single card."""

    card_id: str
    state: CardState = CardState.NEW
    ease_factor: float = 2.5
    interval_days: int = 0
    repetitions: int = 0  # Consecutive passing Review answers since last lapse
    lapses: int = 0
    current_step: int = 0  # Only meaningful in LEARNING / RELEARNING
    next_review_at: datetime | None = None
    last_reviewed_at: datetime | None = None  # None = never reviewed
    total_reviews: int = 0
    correct_streak: int = 0
    buried: bool = False

    def is_due(self, now: datetime) -> bool:
        """Check whether the card's scheduled time has passed."""
        if self.next_review_at is None:
            return True
        return now >= self.next_review_at

    def copy(self) -> ScheduleRecord:
        return ScheduleRecord(**asdict(self))

    # =========================================================================
    # Serialization
    # =========================================================================

    def to_dict(self) -> dict[str, Any]:
        """
        Convert to a JSON-compatible dictionary.

        Timestamps are ISO-8601 strings, the state is its string value and
        a never-reviewed card has ``last_reviewed_at = None``.
        """
        data = asdict(self)
        data["state"] = self.state.value
        data["next_review_at"] = _format_timestamp(self.next_review_at)
        data["last_reviewed_at"] = _format_timestamp(self.last_reviewed_at)
        return data

    @classmethod
    def from_dict(
        cls,
        card_id: str,
        data: dict[str, Any],
        defaults: ScheduleRecord | None = None,
    ) -> ScheduleRecord:
        """
        Build a record from a snapshot entry.

        Missing fields fall back to ``defaults`` (a fresh New record when not
        given). Legacy camelCase keys are accepted.

        Raises:
            CorruptSnapshotRecord: if a timestamp, enum or numeric field
                cannot be interpreted.
        """
        if not isinstance(data, dict):
            raise CorruptSnapshotRecord(card_id, f"expected a mapping, got {type(data).__name__}")

        fields = {_LEGACY_FIELDS.get(key, key): value for key, value in data.items()}
        legacy = any(key in _LEGACY_FIELDS for key in data)
        base = defaults.copy() if defaults is not None else cls(card_id=card_id)
        base.card_id = card_id

        try:
            if "state" in fields:
                base.state = CardState(str(fields["state"]).lower())
            for name in (
                "interval_days",
                "repetitions",
                "lapses",
                "current_step",
                "total_reviews",
                "correct_streak",
            ):
                if fields.get(name) is not None:
                    setattr(base, name, int(fields[name]))
            if fields.get("ease_factor") is not None:
                base.ease_factor = float(fields["ease_factor"])
            if fields.get("buried") is not None:
                base.buried = _parse_bool(fields["buried"])
        except (TypeError, ValueError) as e:
            raise CorruptSnapshotRecord(card_id, str(e)) from e

        if "next_review_at" in fields:
            base.next_review_at = _parse_timestamp(card_id, "next_review_at", fields["next_review_at"])
        if "last_reviewed_at" in fields:
            base.last_reviewed_at = _parse_timestamp(
                card_id, "last_reviewed_at", fields["last_reviewed_at"]
            )

        if legacy and base.total_reviews == 0:
            # Old format stamped unreviewed cards with the epoch
            base.last_reviewed_at = None

        base.normalize_counters()
        return base

    def normalize_counters(self) -> None:
        """Clamp negative counters to 0 and clear the schedule of New cards."""
        for name in (
            "interval_days",
            "repetitions",
            "lapses",
            "current_step",
            "total_reviews",
            "correct_streak",
        ):
            setattr(self, name, max(0, getattr(self, name)))

        if self.state == CardState.NEW:
            self.repetitions = 0
            self.interval_days = 0
            self.current_step = 0


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise ValueError(f"bad buried flag {value!r}")


def _format_timestamp(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_timestamp(card_id: str, field_name: str, value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(text)
        except ValueError as e:
            raise CorruptSnapshotRecord(card_id, f"bad {field_name} {value!r}") from e
    raise CorruptSnapshotRecord(card_id, f"bad {field_name} type {type(value).__name__}")


# =============================================================================
# Stats
# =============================================================================


@dataclass
class StudyStats:
    """Aggregate counts over a set of cards."""

    total: int = 0
    new: int = 0
    learning: int = 0  # Includes relearning cards
    review: int = 0
    due: int = 0
    average_ease: float = 2.5
    buried: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
