"""Per-doctor working hours and slot-period configuration."""

from __future__ import annotations

import sqlite3
from datetime import date, time
from typing import Any, Iterable, Mapping

from flask import current_app

from carebook_app.services.database import db
from carebook_app.services.errors import InvalidConfiguration, InvalidRequest
from carebook_app.services.timefmt import clock_str, day_of_week, parse_clock


DEFAULT_ALLOWED_SLOT_MINUTES = (10, 15, 20, 30, 60)


def allowed_periods() -> tuple[int, ...]:
    return tuple(current_app.config.get("ALLOWED_SLOT_MINUTES", DEFAULT_ALLOWED_SLOT_MINUTES))


def default_period() -> int:
    return int(current_app.config.get("DEFAULT_SLOT_MINUTES", 15))


def capacity_per_hour(period_minutes: int) -> int:
    return max(1, 60 // period_minutes)


def validate_period(minutes: Any) -> int:
    try:
        value = int(minutes)
    except (TypeError, ValueError) as exc:
        raise InvalidConfiguration(f"invalid_slot_period:{minutes}") from exc
    if isinstance(minutes, bool) or value not in allowed_periods():
        allowed = ", ".join(str(p) for p in allowed_periods())
        raise InvalidConfiguration(f"invalid_slot_period:{minutes} (allowed: {allowed})")
    return value


def _parse_bound(value: Any) -> time | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        return parse_clock(value)
    except InvalidRequest as exc:
        raise InvalidConfiguration(exc.message) from exc


def validate_hours(hours: Iterable[Mapping[str, Any]]) -> list[tuple[int, time | None, time | None]]:
    """Check every entry before anything is written.

    An entry with neither bound set closes that day.
    """
    cleaned: list[tuple[int, time | None, time | None]] = []
    seen: set[int] = set()
    for entry in hours:
        day = entry.get("day_of_week")
        if isinstance(day, bool) or not isinstance(day, int) or not 0 <= day <= 6:
            raise InvalidConfiguration(f"invalid_day_of_week:{day}")
        if day in seen:
            raise InvalidConfiguration(f"duplicate_day_of_week:{day}")
        seen.add(day)
        start = _parse_bound(entry.get("start_time"))
        end = _parse_bound(entry.get("end_time"))
        if (start is None) != (end is None):
            raise InvalidConfiguration(f"incomplete_hours:{day}")
        if start is not None and end is not None and start >= end:
            raise InvalidConfiguration(f"start_not_before_end:{day}")
        cleaned.append((day, start, end))
    return cleaned


def write_working_hours(
    conn: sqlite3.Connection, doctor_id: str, entries: list[tuple[int, time | None, time | None]]
) -> None:
    for day, start, end in entries:
        if start is None or end is None:
            conn.execute(
                "DELETE FROM doctor_working_hours WHERE doctor_id=? AND day_of_week=?",
                (doctor_id, day),
            )
            continue
        conn.execute(
            """
            INSERT INTO doctor_working_hours(doctor_id, day_of_week, start_time, end_time, updated_at)
            VALUES (?, ?, ?, ?, datetime('now'))
            ON CONFLICT(doctor_id, day_of_week) DO UPDATE
            SET start_time=excluded.start_time, end_time=excluded.end_time, updated_at=datetime('now')
            """,
            (doctor_id, day, clock_str(start), clock_str(end)),
        )


def get_working_hours(doctor_id: str) -> list[dict[str, Any]]:
    conn = db()
    try:
        rows = conn.execute(
            """
            SELECT day_of_week, start_time, end_time
            FROM doctor_working_hours
            WHERE doctor_id = ?
            ORDER BY day_of_week
            """,
            (doctor_id,),
        ).fetchall()
        return [
            {"day_of_week": row["day_of_week"], "start_time": row["start_time"], "end_time": row["end_time"]}
            for row in rows
        ]
    finally:
        conn.close()


def hours_for_day(conn: sqlite3.Connection, doctor_id: str, day: date) -> tuple[time, time] | None:
    row = conn.execute(
        "SELECT start_time, end_time FROM doctor_working_hours WHERE doctor_id=? AND day_of_week=?",
        (doctor_id, day_of_week(day)),
    ).fetchone()
    if not row or not row["start_time"] or not row["end_time"]:
        return None
    start = parse_clock(row["start_time"])
    end = parse_clock(row["end_time"])
    if start >= end:
        current_app.logger.warning(f"Ignoring inverted working hours for {doctor_id} on day {day_of_week(day)}")
        return None
    return start, end


def slot_period(conn: sqlite3.Connection, doctor_id: str) -> int:
    row = conn.execute(
        "SELECT period_minutes FROM doctor_slot_periods WHERE doctor_id=?", (doctor_id,)
    ).fetchone()
    if not row or not row["period_minutes"]:
        return default_period()
    return int(row["period_minutes"])


def get_slot_period(doctor_id: str) -> int:
    conn = db()
    try:
        return slot_period(conn, doctor_id)
    finally:
        conn.close()


def write_slot_period(conn: sqlite3.Connection, doctor_id: str, minutes: int) -> None:
    conn.execute(
        """
        INSERT INTO doctor_slot_periods(doctor_id, period_minutes, updated_at)
        VALUES (?, ?, datetime('now'))
        ON CONFLICT(doctor_id) DO UPDATE
        SET period_minutes=excluded.period_minutes, updated_at=datetime('now')
        """,
        (doctor_id, minutes),
    )
