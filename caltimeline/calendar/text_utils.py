"""RFC 5545 TEXT value escaping helpers."""

from __future__ import annotations

from typing import Optional

_LITERAL_ESCAPES = {",", ";", "\\"}
_NEWLINE_ESCAPES = {"n", "N"}


def unescape_text(value: Optional[str]) -> str:
    """Decode an escaped iCalendar TEXT value.

    Handles ``\\,`` ``\\;`` ``\\\\`` and ``\\n``/``\\N``. Any other escape, and a
    trailing lone backslash, keeps the backslash and leaves the following
    character to be read on its own.

    Args:
        value: Raw property value, or None

    Returns:
        Decoded string (empty for None)

    Examples:
        >>> unescape_text("Meeting\\\\, with Bob\\\\nfollow-up")
        'Meeting, with Bob\\nfollow-up'
    """
    if not value:
        return ""

    out: list[str] = []
    i = 0
    length = len(value)
    while i < length:
        ch = value[i]
        if ch == "\\" and i + 1 < length:
            nxt = value[i + 1]
            if nxt in _LITERAL_ESCAPES:
                out.append(nxt)
                i += 2
                continue
            if nxt in _NEWLINE_ESCAPES:
                out.append("\n")
                i += 2
                continue
        out.append(ch)
        i += 1
    return "".join(out)


def escape_text(value: str) -> str:
    """Encode text so that ``unescape_text`` restores it."""
    return (
        value.replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\n", "\\n")
    )
