"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from recall import CardState, Scheduler, SchedulerConfig  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


class FakeClock:
    """Clock frozen at a fixed moment until advanced."""

    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def clock():
    """Provide a clock frozen at 2024-01-01 09:00."""
    return FakeClock(datetime(2024, 1, 1, 9, 0, 0))


@pytest.fixture
def config():
    """Provide the default scheduler configuration."""
    return SchedulerConfig()


@pytest.fixture
def scheduler(config, clock):
    """Provide a scheduler with default config and the frozen clock."""
    return Scheduler(config=config, clock=clock)


@pytest.fixture
def make_review_card(scheduler, clock):
    """Factory for a Review-state card with a given interval and ease."""

    def _make(card_id="review-card", interval_days=10, ease_factor=2.5, due=True):
        record = scheduler.get_or_create(card_id)
        record.state = CardState.REVIEW
        record.interval_days = interval_days
        record.ease_factor = ease_factor
        record.repetitions = 3
        record.correct_streak = 3
        offset = timedelta(days=1)
        record.next_review_at = clock() - offset if due else clock() + offset
        return record

    return _make
