"""
Recall: spaced repetition scheduling core.

An in-memory, Anki-style scheduler for reviewable cards identified by
opaque strings.

Components:
- Scheduler: review transitions, due/new/study selection, priority ordering
- SchedulerConfig / SchedulerSettings: policy knobs and their env loading
- ScheduleRecord: per-card schedule state and snapshot serialization
- derive_card_id: stable identifiers from title, author and highlight text
"""

from .card_id import derive_card_id
from .config import ConfigAdjustment, SchedulerConfig, SchedulerSettings, get_settings
from .errors import CorruptSnapshotRecord, InvalidIdentifierInput, RecallError
from .models import CardState, Outcome, ScheduleRecord, StudyStats
from .scheduler import Scheduler, outcome_from_quality, outcome_from_response

__version__ = "1.0.0"

__all__ = [
    # Scheduling
    "Scheduler",
    "outcome_from_quality",
    "outcome_from_response",
    # Records
    "CardState",
    "Outcome",
    "ScheduleRecord",
    "StudyStats",
    # Configuration
    "SchedulerConfig",
    "SchedulerSettings",
    "ConfigAdjustment",
    "get_settings",
    # Identity
    "derive_card_id",
    # Errors
    "RecallError",
    "InvalidIdentifierInput",
    "CorruptSnapshotRecord",
]
