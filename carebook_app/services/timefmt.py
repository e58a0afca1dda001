"""Date and time parsing shared by the scheduling services."""

from __future__ import annotations

from datetime import date, datetime, time

from carebook_app.services.errors import InvalidRequest


ISO_FMT = "%Y-%m-%dT%H:%M:%S"
DAY_FMT = "%Y-%m-%d"
CLOCK_FMT = "%H:%M"


def parse_day(value: str | date | None) -> date:
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value or "").strip(), DAY_FMT).date()
    except ValueError as exc:
        raise InvalidRequest(f"invalid_date:{value}") from exc


def parse_clock(value: str | time | None) -> time:
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    try:
        return datetime.strptime(str(value or "").strip(), CLOCK_FMT).time()
    except ValueError as exc:
        raise InvalidRequest(f"invalid_time:{value}") from exc


def parse_timestamp(value: str | datetime | None) -> datetime:
    """Accept ``YYYY-MM-DDTHH:MM[:SS]`` (a space separator works too)."""
    if isinstance(value, datetime):
        return value.replace(second=0, microsecond=0, tzinfo=None)
    raw = str(value or "").strip().replace(" ", "T")
    for fmt in (ISO_FMT, "%Y-%m-%dT%H:%M"):
        try:
            return datetime.strptime(raw, fmt)
        except ValueError:
            continue
    raise InvalidRequest(f"invalid_timestamp:{value}")


def combine(day: date, clock: time) -> datetime:
    return datetime.combine(day, clock)


def serialize(dt: datetime) -> str:
    return dt.replace(second=0, microsecond=0).strftime(ISO_FMT)


def clock_str(value: time | datetime) -> str:
    return value.strftime(CLOCK_FMT)


def day_of_week(day: date) -> int:
    """0 = Sunday … 6 = Saturday."""
    return (day.weekday() + 1) % 7


def format_clock_label(dt: datetime | time) -> str:
    hour = dt.hour % 12 or 12
    minute = dt.strftime("%M")
    ampm = "PM" if dt.hour >= 12 else "AM"
    return f"{hour}:{minute} {ampm}"
