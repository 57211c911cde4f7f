"""
Exceptions raised by the recall scheduling core.
"""

from __future__ import annotations


class RecallError(Exception):
    """Base class for all recall errors."""

    pass


class InvalidIdentifierInput(RecallError, ValueError):
    """Raised when a card identifier cannot be derived from its source text."""

    def __init__(self, field_name: str):
        self.field_name = field_name
        super().__init__(f"Cannot derive card id: '{field_name}' is empty")


class CorruptSnapshotRecord(RecallError, ValueError):
    """Raised when a snapshot record has fields that cannot be interpreted."""

    def __init__(self, card_id: str, reason: str):
        self.card_id = card_id
        self.reason = reason
        super().__init__(f"Corrupt snapshot record {card_id!r}: {reason}")
