"""Date helpers shared by the event panels."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone


def today_utc() -> date:
    return datetime.now(timezone.utc).date()


def to_date_string(value: date) -> str:
    return value.isoformat()


def normalize_date_string(value: str | None) -> str | None:
    """Return ``YYYY-MM-DD`` for a parseable date string, else None."""
    if not value:
        return None
    try:
        return date.fromisoformat(str(value).strip()[:10]).isoformat()
    except ValueError:
        return None


def add_days(date_string: str, days: int) -> str | None:
    try:
        start = date.fromisoformat(date_string)
    except ValueError:
        return None
    return (start + timedelta(days=days)).isoformat()


def split_local_datetime(value: str | None) -> tuple[str, str]:
    """
    Split ``2025-05-01T19:30:00`` into ("2025-05-01", "19:30").

    A value without a time part yields an empty time.
    """
    if not value:
        return "", ""
    date_part, _, time_part = str(value).partition("T")
    return date_part, time_part[:5]


def _medium_date(value: date) -> str:
    return f"{value.strftime('%b')} {value.day}, {value.year}"


def _short_time(value: datetime) -> str:
    hour = value.hour % 12 or 12
    suffix = "AM" if value.hour < 12 else "PM"
    return f"{hour}:{value.minute:02d} {suffix}"


def format_event_date(local_date: str | None, local_time: str | None = None) -> str:
    """
    Medium date with optional short time, e.g. "May 1, 2025, 7:30 PM".

    Unparseable input is echoed back as "date time".
    """
    if not local_date:
        return ""
    fallback = f"{local_date} {local_time}" if local_time else local_date
    try:
        if local_time:
            parsed = datetime.fromisoformat(f"{local_date}T{local_time}")
            return f"{_medium_date(parsed.date())}, {_short_time(parsed)}"
        return _medium_date(date.fromisoformat(local_date))
    except ValueError:
        return fallback


def format_timestamp(value: str | None) -> str:
    """Format an ISO timestamp (``start.local`` / ``start.utc``) for display."""
    if not value:
        return "Date to be announced"
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return str(value)
    return f"{_medium_date(parsed.date())}, {_short_time(parsed)}"
