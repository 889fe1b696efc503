"""
Utility functions for Harmony Bot
"""
from datetime import timedelta
from typing import Optional, Union


def duration_formatter(duration: Union[int, float, timedelta]) -> str:
    """Spell out a duration as "H hours, M minutes, S seconds".

    Components are whole numbers and only the nonzero ones are listed, so
    3661 seconds gives "1 hours, 1 minutes, 1 seconds" and 120 seconds gives
    "2 minutes". A zero duration gives an empty string.
    """
    if isinstance(duration, timedelta):
        seconds = int(duration.total_seconds())
    else:
        seconds = int(duration)
    formatted = []

    if seconds // 3600 >= 1:
        formatted.append(f"{seconds // 3600} hours")
        seconds %= 3600

    if seconds // 60 >= 1:
        formatted.append(f"{seconds // 60} minutes")
        seconds %= 60

    if seconds >= 1:
        formatted.append(f"{seconds} seconds")

    return ", ".join(formatted)


def num_prefix(num: int) -> str:
    """Return num with its English ordinal suffix (1st, 2nd, 3rd, 4th, 11th)."""
    if num % 100 in (11, 12, 13):
        return f"{num}th"
    last = num % 10
    if last == 1:
        return f"{num}st"
    if last == 2:
        return f"{num}nd"
    if last == 3:
        return f"{num}rd"
    return f"{num}th"


def format_duration(sec: Optional[float]) -> str:
    """Format duration in seconds as a clock string (m:ss or h:mm:ss)."""
    if sec is None:
        return "??:??"
    h, rem = divmod(int(sec), 3600)
    m, s = divmod(rem, 60)
    if h:
        return f"{h:d}:{m:02d}:{s:02d}"
    return f"{m:d}:{s:02d}"


def truncate(text: Optional[str], n: int = 60) -> str:
    """Truncate text to specified length with ellipsis."""
    if not text:
        return ""
    return text if len(text) <= n else text[: n - 1].rstrip() + "…"
