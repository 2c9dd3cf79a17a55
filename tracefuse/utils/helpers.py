"""General helper utility functions."""

import re
from typing import Iterable, Optional

from tracefuse.constants import ZERO_DURATION

_DURATION_PATTERN = re.compile(r"^(\d+(?:\.\d+)?)\s*(ms|s|m|h)$")

_UNIT_TO_MS = {"ms": 1.0, "s": 1000.0, "m": 60_000.0, "h": 3_600_000.0}


def format_milliseconds(value: float) -> str:
    """Render a millisecond value the way durations are stored, e.g. ``129ms``."""
    return f"{int(round(value))}ms"


def parse_duration_ms(duration: Optional[str]) -> float:
    """
    Convert a stored duration string to milliseconds.

    Args:
        duration: Duration such as ``"128ms"``, ``"1.5s"`` or ``"2m"``

    Returns:
        Milliseconds, or 0.0 when the value is missing or unrecognised
    """
    if not duration:
        return 0.0
    match = _DURATION_PATTERN.match(duration.strip())
    if not match:
        return 0.0
    return float(match.group(1)) * _UNIT_TO_MS[match.group(2)]


def format_duration(duration: Optional[str]) -> str:
    """
    Format a stored duration string for display.

    Args:
        duration: Duration such as ``"1534ms"``

    Returns:
        Human readable form, e.g. ``"1.5s"``; unrecognised input is returned as is
    """
    if not duration:
        return ZERO_DURATION

    match = _DURATION_PATTERN.match(duration.strip())
    if not match:
        return duration

    value = float(match.group(1))
    unit = match.group(2)

    if unit == "ms":
        return f"{round(value)}ms" if value < 1000 else f"{value / 1000:.1f}s"
    if unit == "s":
        return f"{value:g}s" if value < 60 else f"{int(value // 60)}m {round(value % 60)}s"
    if unit == "m":
        return f"{int(value)}m {round((value % 1) * 60)}s"
    return f"{int(value)}h {int((value % 1) * 60)}m"


def sum_durations(durations: Iterable[Optional[str]]) -> str:
    """Add up stored duration strings and format the total."""
    total = sum(parse_duration_ms(duration) for duration in durations)
    return format_duration(format_milliseconds(total))


def truncate_string(text: str, max_length: int = 100, suffix: str = "...") -> str:
    """
    Truncate a string to a maximum length.

    Args:
        text: Text to truncate
        max_length: Maximum length
        suffix: Suffix to add if truncated

    Returns:
        Truncated string
    """
    if len(text) <= max_length:
        return text

    return text[:max_length - len(suffix)] + suffix


def truncate_at_line(text: str, max_length: int, suffix: str = "...") -> str:
    """
    Truncate multi-line text at the last line boundary that fits.

    A first line that is longer than ``max_length`` on its own is cut hard.

    Args:
        text: Text to truncate
        max_length: Maximum length before the suffix
        suffix: Marker appended when anything was dropped

    Returns:
        Truncated text
    """
    text = text.strip()
    if len(text) <= max_length:
        return text

    kept = []
    length = 0
    for line in text.splitlines():
        added = len(line) + (1 if kept else 0)
        if length + added > max_length:
            break
        kept.append(line)
        length += added

    if not kept:
        return truncate_string(text, max_length + len(suffix), suffix)

    return "\n".join(kept).rstrip() + suffix
