from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Optional


def utcnow() -> datetime:
    """UTC wall clock without tzinfo; all stored timestamps use this form."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _is_date_only(text: str) -> bool:
    return len(text) == 10 and text[4] == "-" and text[7] == "-"


def parse_iso_datetime(value: Optional[str], *, end_of_day: bool = False) -> Optional[datetime]:
    """
    Parse a filter bound such as ?start_date= / ?end_date= into UTC-naive.

    - None / "" -> None
    - "YYYY-MM-DD" is midnight UTC, or the last microsecond of that day when
      end_of_day is set, so an end_date covers the whole day
    - naive datetimes are taken as UTC
    - "...Z" / "...+07:00" are shifted to UTC

    Raises:
        ValueError: If the text is not ISO-8601
    """
    if value is None:
        return None
    text = value.strip()
    if not text:
        return None

    if _is_date_only(text):
        day = date.fromisoformat(text)
        return datetime.combine(day, time.max if end_of_day else time.min)

    if text.endswith("Z"):
        text = text[:-1] + "+00:00"

    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Whole-second ISO-8601 with a trailing 'Z'; naive input is UTC."""
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.replace(microsecond=0).isoformat() + "Z"
