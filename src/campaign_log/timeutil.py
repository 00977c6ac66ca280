"""Time helpers for log timestamps (integer milliseconds since epoch).

Supports human-friendly references for filters:
- ISO format: "2025-01-15", "2025-01-15T14:30:00"
- Relative: "7 days ago", "2 weeks ago", "1 month ago"
- Named: "today", "yesterday", "last week", "last month"
"""

import re
from datetime import datetime, timezone

from dateutil import parser as dateparser
from dateutil.relativedelta import relativedelta

HUMAN_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S UTC"


def now_ms() -> int:
    """Current wall-clock time in milliseconds. The default log clock."""
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def to_ms(dt: datetime) -> int:
    """Convert a datetime (naive means UTC) to epoch milliseconds."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


def from_ms(ms: int) -> datetime:
    """Convert epoch milliseconds to a timezone-aware UTC datetime."""
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


def format_timestamp(ms: int) -> str:
    """Render a timestamp for the human-readable parts of the log."""
    return from_ms(ms).strftime(HUMAN_TIMESTAMP_FORMAT)


_AGO_PATTERN = re.compile(r"(\d+)\s*(second|minute|hour|day|week|month|year)s?\s+ago")

# Named references, relative to the anchor time
_NAMED_OFFSETS = {
    "now": relativedelta(),
    "last week": relativedelta(weeks=1),
    "last month": relativedelta(months=1),
    "last year": relativedelta(years=1),
}
_NAMED_DAYS = {"today": 0, "yesterday": 1}


def parse_time_reference(ref: str, now: datetime | None = None) -> datetime:
    """Resolve a CLI time filter such as "2025-01-15" or "3 days ago".

    ``today`` and ``yesterday`` mean midnight UTC of that day. Anything not
    named or relative goes to dateutil; naive results are taken as UTC.

    Raises:
        ValueError: If the reference cannot be parsed
    """
    anchor = now or datetime.now(timezone.utc)
    key = " ".join(ref.lower().split())

    if key in _NAMED_OFFSETS:
        return anchor - _NAMED_OFFSETS[key]
    if key in _NAMED_DAYS:
        midnight = anchor.replace(hour=0, minute=0, second=0, microsecond=0)
        return midnight - relativedelta(days=_NAMED_DAYS[key])

    match = _AGO_PATTERN.fullmatch(key)
    if match:
        amount, unit = int(match.group(1)), match.group(2)
        return anchor - relativedelta(**{f"{unit}s": amount})

    try:
        parsed = dateparser.parse(key)
    except (OverflowError, dateparser.ParserError) as e:
        raise ValueError(f"Cannot parse time reference: {ref}") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_relative_time(dt: datetime, now: datetime | None = None) -> str:
    """Format a datetime as a human-readable relative string ("3 weeks ago")."""
    from .constants import (
        SECONDS_PER_MINUTE,
        SECONDS_PER_HOUR,
        SECONDS_PER_DAY,
        SECONDS_PER_WEEK,
        SECONDS_PER_MONTH,
        SECONDS_PER_YEAR,
    )

    if now is None:
        now = datetime.now(timezone.utc)

    seconds = int((now - dt).total_seconds())
    if seconds < 0:
        return "in the future"
    if seconds < SECONDS_PER_MINUTE:
        return f"{seconds} seconds ago"

    # Largest unit first
    units = [
        ("year", SECONDS_PER_YEAR),
        ("month", SECONDS_PER_MONTH),
        ("week", SECONDS_PER_WEEK),
        ("day", SECONDS_PER_DAY),
        ("hour", SECONDS_PER_HOUR),
        ("minute", SECONDS_PER_MINUTE),
    ]
    for name, size in units:
        if seconds >= size:
            count = seconds // size
            return f"{count} {name}{'s' if count != 1 else ''} ago"
    return f"{seconds} seconds ago"
