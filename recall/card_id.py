"""
Stable card identifiers derived from highlight text.

The identifier is a 32-bit rolling hash (31-multiplier, as used by
``String.hashCode`` style hashes) over the UTF-16 code units of
``title|author|content[:100]``, rendered as 8 zero-padded hex digits.
Only the first 100 characters of the content take part, so edits further
into a long highlight keep the card's identity and schedule.
"""

from __future__ import annotations

from .errors import InvalidIdentifierInput

CONTENT_PREFIX_LENGTH = 100
FIELD_DELIMITER = "|"
ID_WIDTH = 8


def derive_card_id(title: str, author: str, content: str) -> str:
    """
    Derive a deterministic card id from its source fields.

    Args:
        title: Book or source title
        author: Author name
        content: Highlighted text

    Returns:
        8-character lowercase hex string

    Raises:
        InvalidIdentifierInput: if any field is empty after trimming
    """
    fields = {"title": title, "author": author, "content": content}
    cleaned = {}
    for name, value in fields.items():
        text = (value or "").strip()
        if not text:
            raise InvalidIdentifierInput(name)
        cleaned[name] = text

    combined = FIELD_DELIMITER.join(
        [cleaned["title"], cleaned["author"], cleaned["content"][:CONTENT_PREFIX_LENGTH]]
    )
    return format(abs(_rolling_hash(combined)), f"0{ID_WIDTH}x")


def _rolling_hash(text: str) -> int:
    """Signed 32-bit ``h = h * 31 + unit`` over UTF-16 code units."""
    data = text.encode("utf-16-le", "surrogatepass")
    value = 0
    for i in range(0, len(data), 2):
        unit = data[i] | (data[i + 1] << 8)
        value = (value * 31 + unit) & 0xFFFFFFFF
    if value >= 0x80000000:
        value -= 0x100000000
    return value
