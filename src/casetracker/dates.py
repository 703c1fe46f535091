from __future__ import annotations

import logging
import re
from datetime import date, datetime, time, timezone
from typing import Union

logger = logging.getLogger(__name__)

DateLike = Union[datetime, date, str, None]

_TIME_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})(?::\d{2}(?:\.\d+)?)?\s*([AaPp][Mm])?$")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def local_now() -> datetime:
    """Current wall-clock time in the machine's local zone, timezone-aware."""

    return datetime.now().astimezone()


def _wall_clock(value: DateLike) -> datetime | None:
    """Parse without shifting zones: aware values keep their offset, naive values stay naive."""

    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    if not isinstance(value, str):
        logger.debug("Unsupported date value %r", value)
        return None

    text = value.strip()
    if not text:
        return None
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        logger.debug("Unable to parse datetime value %s", value)
        return None


def parse_timestamp(value: DateLike) -> datetime | None:
    """
    Coerce a date-ish value into the canonical timestamp form (aware UTC datetime).

    Date-only values (``date`` objects or ``YYYY-MM-DD`` strings) land on midnight UTC. Naive
    datetimes are treated as UTC. Anything unparseable yields ``None`` so callers can treat it as
    "no date set".
    """

    parsed = _wall_clock(value)
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def to_iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    return parse_timestamp(value).isoformat()


def calendar_day(value: DateLike) -> date | None:
    """The date as written on the value, read in its own offset rather than converted to UTC."""

    parsed = _wall_clock(value)
    return parsed.date() if parsed else None


def today(now: DateLike = None) -> date | None:
    """Calendar day of `now`; the local date when `now` is omitted."""

    if now is None:
        return local_now().date()
    return calendar_day(now)


def reference_time(now: DateLike = None) -> datetime | None:
    """Aware instant for `now`; omitted or naive values are read as local time."""

    if now is None:
        return local_now()
    parsed = _wall_clock(now)
    if parsed is None:
        return None
    return parsed if parsed.tzinfo else parsed.astimezone()


def normalize_time(value: str | None) -> str | None:
    """
    Canonicalize a time of day to 24-hour ``HH:MM``.

    Accepts ``H:MM``, ``HH:MM:SS`` and 12-hour forms such as ``9:30 AM``. Empty or unreadable
    values become ``None``.
    """

    if not value:
        return None
    text = str(value).strip()
    if not text:
        return None
    match = _TIME_PATTERN.match(text)
    if match is None:
        logger.debug("Unable to parse time value %s", value)
        return None

    hour, minute, meridiem = int(match.group(1)), int(match.group(2)), match.group(3)
    if meridiem:
        if not 1 <= hour <= 12:
            return None
        hour = hour % 12 + (12 if meridiem.lower() == "pm" else 0)
    if hour > 23 or minute > 59:
        return None
    return f"{hour:02d}:{minute:02d}"


def format_date(value: DateLike) -> str:
    """Indian ``DD/MM/YYYY`` rendering; empty string for missing or bad dates."""

    day = calendar_day(value)
    if day is None:
        return ""
    return day.strftime("%d/%m/%Y")


def format_date_time(value: DateLike, time_of_day: str | None) -> str:
    rendered = format_date(value)
    formatted_time = normalize_time(time_of_day)
    if not formatted_time:
        return rendered
    return f"{rendered} at {formatted_time}"


def input_date(value: DateLike) -> str:
    day = calendar_day(value)
    return day.isoformat() if day else ""
