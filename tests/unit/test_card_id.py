"""
Unit tests for card identifier derivation.
"""

import re

import pytest

from recall import InvalidIdentifierInput, derive_card_id

TITLE = "Atomic Habits"
AUTHOR = "James Clear"
CONTENT = (
    "Every action you take is a vote for the type of person you wish to become. "
    "No single instance will transform your beliefs, but as the votes build up, "
    "so does the evidence of your new identity."
)


class TestDeriveCardId:
    """Test stable identifier derivation."""

    def test_deterministic(self):
        assert derive_card_id(TITLE, AUTHOR, CONTENT) == derive_card_id(TITLE, AUTHOR, CONTENT)

    def test_fixed_width_hex(self):
        card_id = derive_card_id(TITLE, AUTHOR, CONTENT)

        assert re.fullmatch(r"[0-9a-f]{8}", card_id)

    def test_known_value(self):
        """'a|b|c' hashes to 93373742 = 0x590c52e."""
        assert derive_card_id("a", "b", "c") == "0590c52e"

    def test_content_past_100_chars_ignored(self):
        assert len(CONTENT) > 100
        edited = CONTENT[:100] + " (edited later)"

        assert derive_card_id(TITLE, AUTHOR, edited) == derive_card_id(TITLE, AUTHOR, CONTENT)

    def test_content_within_100_chars_matters(self):
        edited = "Each" + CONTENT[5:]

        assert derive_card_id(TITLE, AUTHOR, edited) != derive_card_id(TITLE, AUTHOR, CONTENT)

    def test_whitespace_trimmed(self):
        assert derive_card_id(f"  {TITLE}\n", f"\t{AUTHOR} ", f" {CONTENT}") == derive_card_id(
            TITLE, AUTHOR, CONTENT
        )

    def test_fields_are_not_interchangeable(self):
        assert derive_card_id("x", "y", "z") != derive_card_id("y", "x", "z")

    def test_unicode_content(self):
        card_id = derive_card_id("Норвежский лес", "村上春樹", "Ничто не вечно 🌲")

        assert re.fullmatch(r"[0-9a-f]{8}", card_id)

    @pytest.mark.parametrize(
        "title, author, content, field",
        [
            ("", AUTHOR, CONTENT, "title"),
            (TITLE, "", CONTENT, "author"),
            (TITLE, "   ", CONTENT, "author"),
            (TITLE, AUTHOR, "\n\t", "content"),
        ],
    )
    def test_empty_field_rejected(self, title, author, content, field):
        with pytest.raises(InvalidIdentifierInput) as exc_info:
            derive_card_id(title, author, content)

        assert exc_info.value.field_name == field

    def test_error_is_value_error(self):
        with pytest.raises(ValueError):
            derive_card_id(TITLE, "", CONTENT)
