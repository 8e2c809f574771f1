"""Broadcast date/time helpers.

Episodes carry either a legacy ISO timestamp in ``broadcast_date`` or the
newer split form (``broadcast_date`` = YYYY-MM-DD plus ``broadcast_time`` =
HH:MM). Both are accepted everywhere.
"""

import logging
import math
import re
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta

from config import LONDON_TZ

logger = logging.getLogger(__name__)

UK_WEEK_DAYS: list[str] = [
    "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday",
]

_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})")


@dataclass(frozen=True)
class UkWeek:
    """The Monday-start week in UK local time."""

    week_start: date
    day_dates: dict[str, str]


def get_current_uk_week(now: datetime | None = None) -> UkWeek:
    """Return the Monday..Sunday dates of the UK week containing now."""
    now = now or datetime.now(UTC)
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    today = now.astimezone(LONDON_TZ).date()
    week_start = today - timedelta(days=today.weekday())
    day_dates = {
        day: (week_start + timedelta(days=i)).isoformat()
        for i, day in enumerate(UK_WEEK_DAYS)
    }
    return UkWeek(week_start=week_start, day_dates=day_dates)


def weekday_name(date_str: str) -> str | None:
    """Weekday name for a YYYY-MM-DD date, or None if unparseable."""
    try:
        return UK_WEEK_DAYS[date.fromisoformat(date_str).weekday()]
    except ValueError:
        return None


def parse_iso(value: str) -> datetime | None:
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.error("Error parsing date: %s", value)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def parse_broadcast_datetime(broadcast_date: str | None,
                             broadcast_time: str | None = None,
                             broadcast_date_old: str | None = None) -> datetime | None:
    """Combine broadcast date and time into an aware UTC datetime.

    Args:
        broadcast_date: "2025-09-04T07:00:00+00:00" (old) or "2025-09-04" (new).
        broadcast_time: "HH:MM", used with the new date format only.
        broadcast_date_old: Fallback while records are mid-migration.

    Returns:
        The datetime, or None when no usable date is present.
    """
    date_to_use = broadcast_date or broadcast_date_old
    if not date_to_use:
        return None

    if "T" in date_to_use:
        return parse_iso(date_to_use)

    time_part = normalize_time(broadcast_time or "00:00") or "00:00"
    return parse_iso(f"{date_to_use}T{time_part}:00+00:00")


def broadcast_to_iso(broadcast_date: str | None,
                     broadcast_time: str | None = None,
                     broadcast_date_old: str | None = None) -> str | None:
    """ISO string for the RadioCult API, from either date format."""
    parsed = parse_broadcast_datetime(broadcast_date, broadcast_time, broadcast_date_old)
    return parsed.isoformat() if parsed else None


def extract_date_part(value: str | None) -> str | None:
    """YYYY-MM-DD part of any supported date string."""
    if not value:
        return None
    if _DATE_ONLY.match(value):
        return value
    parsed = parse_iso(value)
    return parsed.astimezone(UTC).date().isoformat() if parsed else None


def extract_time_part(value: str | None) -> str | None:
    """HH:MM (UTC) part of an ISO timestamp; None for date-only values."""
    if not value or "T" not in value:
        return None
    parsed = parse_iso(value)
    return parsed.astimezone(UTC).strftime("%H:%M") if parsed else None


def normalize_time(value: str | None) -> str | None:
    """Normalize "9:00", "09:00" or "09:00:00" to "HH:MM"."""
    if not value:
        return None
    match = _TIME_RE.match(value.strip())
    if not match:
        return None
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        return None
    return f"{hours:02d}:{minutes:02d}"


def time_to_minutes(value: str) -> int:
    """Minutes since midnight for an HH:MM string (0 when invalid)."""
    normalized = normalize_time(value)
    if not normalized:
        return 0
    hours, minutes = normalized.split(":")
    return int(hours) * 60 + int(minutes)


def parse_duration_to_seconds(duration: str | int | float | None) -> int:
    """Parse a free-form duration into seconds.

    Numeric values without a colon are hours when <= 24 ("4", "1.5"),
    otherwise minutes ("90"). "HH:MM" is hours and minutes, "HH:MM:SS"
    adds seconds. Anything else is 0.
    """
    if duration is None or duration == "":
        return 0
    trimmed = str(duration).strip()

    if ":" not in trimmed:
        try:
            n = float(trimmed)
        except ValueError:
            return 0
        if not math.isfinite(n):
            return 0
        if n <= 24:
            return round(n * 3600)
        return round(n * 60)

    try:
        parts = [int(p) for p in trimmed.split(":")]
    except ValueError:
        return 0
    if len(parts) == 2:
        return parts[0] * 3600 + parts[1] * 60
    if len(parts) == 3:
        return parts[0] * 3600 + parts[1] * 60 + parts[2]
    return 0


def to_london(value: str) -> datetime | None:
    """Convert an ISO timestamp to UK local time."""
    parsed = parse_iso(value) if value else None
    return parsed.astimezone(LONDON_TZ) if parsed else None
