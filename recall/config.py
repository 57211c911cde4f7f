"""
Configuration for the recall scheduler.

Two layers:
- SchedulerSettings: user-tunable preferences loaded with Pydantic Settings
  from environment variables (prefix ``RECALL_``) and an optional .env file.
- SchedulerConfig: the immutable policy record the scheduler runs against.
  Out-of-range values are clamped to the nearest valid bound when it is
  built, and every clamp is logged and recorded in ``adjustments``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from functools import lru_cache

from loguru import logger
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_LEARNING_STEPS: tuple[float, ...] = (1.0, 10.0)
DEFAULT_RELEARNING_STEPS: tuple[float, ...] = (10.0,)


# =============================================================================
# Scheduler Config
# =============================================================================


@dataclass(frozen=True)
class ConfigAdjustment:
    """A configuration value that was clamped at load time."""

    field: str
    given: object
    applied: object


@dataclass(frozen=True)
class SchedulerConfig:
    """Policy knobs for one scheduling pass."""

    learning_steps: tuple[float, ...] = DEFAULT_LEARNING_STEPS  # Minutes
    relearning_steps: tuple[float, ...] = DEFAULT_RELEARNING_STEPS  # Minutes
    graduating_interval: int = 1  # Days
    easy_interval: int = 4  # Days
    starting_ease: float = 2.5
    minimum_ease: float = 1.3
    easy_bonus: float = 1.3
    interval_modifier: float = 1.0
    hard_interval: float = 1.2
    new_interval: float = 0.0  # Fraction of the old interval kept after a lapse
    minimum_interval: int = 1
    maximum_interval: int = 36500
    leech_threshold: int = 8
    new_cards_per_day: int = 20
    max_reviews_per_day: int = 200  # 0 = unlimited
    adjustments: tuple[ConfigAdjustment, ...] = field(default=(), compare=False, repr=False)

    def __post_init__(self) -> None:
        adjustments: list[ConfigAdjustment] = []

        def _set(name: str, applied: object) -> None:
            given = getattr(self, name)
            if given != applied:
                object.__setattr__(self, name, applied)
                adjustments.append(ConfigAdjustment(name, given, applied))

        def _clamp(name: str, low: float | None = None, high: float | None = None) -> None:
            value = getattr(self, name)
            if low is not None and value < low:
                value = low
            if high is not None and value > high:
                value = high
            _set(name, value)

        for name, default in (
            ("learning_steps", DEFAULT_LEARNING_STEPS),
            ("relearning_steps", DEFAULT_RELEARNING_STEPS),
        ):
            given = tuple(float(step) for step in getattr(self, name))
            object.__setattr__(self, name, given)
            _set(name, _clean_steps(given, default))

        # Order matters: dependent bounds come after the values they depend on
        _clamp("minimum_ease", low=1.0)
        _clamp("starting_ease", low=self.minimum_ease)
        _clamp("easy_bonus", low=1.0)
        _clamp("interval_modifier", low=0.1)
        _clamp("hard_interval", low=0.0)
        _clamp("new_interval", low=0.0, high=1.0)
        _clamp("minimum_interval", low=1)
        _clamp("maximum_interval", low=self.minimum_interval)
        _clamp("graduating_interval", low=1)
        _clamp("easy_interval", low=1)
        _clamp("leech_threshold", low=1)
        _clamp("new_cards_per_day", low=0)
        _clamp("max_reviews_per_day", low=0)

        for adj in adjustments:
            logger.warning(
                f"Config value {adj.field}={adj.given!r} out of range, clamped to {adj.applied!r}"
            )
        object.__setattr__(self, "adjustments", tuple(adjustments))

    def clamp_interval(self, days: int) -> int:
        """Clamp a Review-state interval to [minimum_interval, maximum_interval]."""
        return max(self.minimum_interval, min(self.maximum_interval, days))

    def to_dict(self) -> dict[str, object]:
        """Get the policy knobs as a plain dictionary."""
        return {
            "learning_steps": list(self.learning_steps),
            "relearning_steps": list(self.relearning_steps),
            "graduating_interval": self.graduating_interval,
            "easy_interval": self.easy_interval,
            "starting_ease": self.starting_ease,
            "minimum_ease": self.minimum_ease,
            "easy_bonus": self.easy_bonus,
            "interval_modifier": self.interval_modifier,
            "hard_interval": self.hard_interval,
            "new_interval": self.new_interval,
            "minimum_interval": self.minimum_interval,
            "maximum_interval": self.maximum_interval,
            "leech_threshold": self.leech_threshold,
            "new_cards_per_day": self.new_cards_per_day,
            "max_reviews_per_day": self.max_reviews_per_day,
        }


def _clean_steps(steps: tuple[float, ...], default: tuple[float, ...]) -> tuple[float, ...]:
    cleaned = tuple(max(0.0, step) for step in steps)
    return cleaned or default


# =============================================================================
# Settings
# =============================================================================


class SchedulerSettings(BaseSettings):
    """Scheduler preferences loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="RECALL_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Learning
    # ========================================
    learning_steps: str = Field(
        default="1 10",
        description="Learning step durations in minutes, space or comma separated",
    )
    relearning_steps: str = Field(
        default="10",
        description="Relearning step durations in minutes, space or comma separated",
    )
    graduating_interval: int = Field(
        default=1,
        description="Days until first review after the last learning step",
    )
    easy_interval: int = Field(
        default=4,
        description="Days until first review when a learning card is answered Easy",
    )

    # ========================================
    # Ease & Intervals
    # ========================================
    starting_ease: float = Field(default=2.5, description="Ease factor for new cards")
    minimum_ease: float = Field(default=1.3, description="Floor for the ease factor")
    easy_bonus: float = Field(default=1.3, description="Extra multiplier for Easy answers")
    interval_modifier: float = Field(
        default=1.0,
        description="Global multiplier applied to every Review interval",
    )
    hard_interval: float = Field(default=1.2, description="Multiplier for Hard answers")
    new_interval: float = Field(
        default=0.0,
        description="Fraction of the old interval kept after a lapse",
    )
    minimum_interval: int = Field(default=1, description="Smallest Review interval in days")
    maximum_interval: int = Field(default=36500, description="Largest Review interval in days")

    # ========================================
    # Leeches & Daily Limits
    # ========================================
    leech_threshold: int = Field(
        default=8,
        description="Lapse count at which a card is buried as a leech",
    )
    new_cards_per_day: int = Field(default=20, description="New cards introduced per day")
    max_reviews_per_day: int = Field(
        default=200,
        description="Cap on due cards per day (0 = unlimited)",
    )

    # ========================================
    # Logging
    # ========================================
    debug: bool = Field(default=False, description="Enable debug logging")
    log_level: str = Field(default="WARNING", description="Log level when debug is off")

    def to_config(self) -> SchedulerConfig:
        """Build the clamped SchedulerConfig from these settings."""
        return SchedulerConfig(
            learning_steps=parse_steps(self.learning_steps, DEFAULT_LEARNING_STEPS),
            relearning_steps=parse_steps(self.relearning_steps, DEFAULT_RELEARNING_STEPS),
            graduating_interval=self.graduating_interval,
            easy_interval=self.easy_interval,
            starting_ease=self.starting_ease,
            minimum_ease=self.minimum_ease,
            easy_bonus=self.easy_bonus,
            interval_modifier=self.interval_modifier,
            hard_interval=self.hard_interval,
            new_interval=self.new_interval,
            minimum_interval=self.minimum_interval,
            maximum_interval=self.maximum_interval,
            leech_threshold=self.leech_threshold,
            new_cards_per_day=self.new_cards_per_day,
            max_reviews_per_day=self.max_reviews_per_day,
        )

    @property
    def effective_log_level(self) -> str:
        return "DEBUG" if self.debug else self.log_level.upper()


def parse_steps(text: str, default: tuple[float, ...]) -> tuple[float, ...]:
    """
    Parse a step list such as "1 10" or "1, 10, 60" into minutes.

    Tokens that are not numbers are skipped with a warning; an empty result
    falls back to ``default``.
    """
    steps: list[float] = []
    for token in re.split(r"[,\s]+", text.strip().strip("[]")):
        if not token:
            continue
        try:
            steps.append(float(token))
        except ValueError:
            logger.warning(f"Ignoring non-numeric step {token!r} in {text!r}")
    return tuple(steps) or default


@lru_cache(maxsize=1)
def get_settings() -> SchedulerSettings:
    """Get cached settings instance."""
    return SchedulerSettings()
