"""Doctor time-off (blackout) registry.

Windows are absolute ``[start, end)`` timestamps and are independent of the
booking ledger: declaring time-off never touches existing appointments.
"""

from __future__ import annotations

import sqlite3
import uuid
from datetime import date, datetime, timedelta
from typing import Any

from carebook_app.services.database import db
from carebook_app.services.errors import InvalidConfiguration, InvalidRequest
from carebook_app.services.timefmt import ISO_FMT, parse_timestamp, serialize


def validate_window(start: Any, end: Any) -> tuple[datetime, datetime]:
    try:
        start_dt = parse_timestamp(start)
        end_dt = parse_timestamp(end)
    except InvalidRequest as exc:
        raise InvalidConfiguration(exc.message) from exc
    if start_dt >= end_dt:
        raise InvalidConfiguration("time_off_start_not_before_end")
    return start_dt, end_dt


def _row_to_dict(row: sqlite3.Row) -> dict[str, Any]:
    return {
        "id": row["id"],
        "doctor_id": row["doctor_id"],
        "start": row["starts_at"],
        "end": row["ends_at"],
        "reason": row["reason"],
        "created_at": row["created_at"],
        "updated_at": row["updated_at"],
    }


def list_time_off(doctor_id: str, start: datetime | None = None, end: datetime | None = None) -> list[dict[str, Any]]:
    params: list[str] = [doctor_id]
    sql = "SELECT * FROM doctor_time_off WHERE doctor_id = ?"
    if end is not None:
        sql += " AND starts_at < ?"
        params.append(serialize(end))
    if start is not None:
        sql += " AND ends_at > ?"
        params.append(serialize(start))
    sql += " ORDER BY starts_at ASC"
    conn = db()
    try:
        return [_row_to_dict(row) for row in conn.execute(sql, params).fetchall()]
    finally:
        conn.close()


def fetch_time_off(conn: sqlite3.Connection, time_off_id: str) -> dict[str, Any] | None:
    row = conn.execute("SELECT * FROM doctor_time_off WHERE id=?", (time_off_id,)).fetchone()
    return _row_to_dict(row) if row else None


def time_off_for_day(conn: sqlite3.Connection, doctor_id: str, day: date) -> list[tuple[datetime, datetime]]:
    day_start = datetime.combine(day, datetime.min.time())
    day_end = day_start + timedelta(days=1)
    rows = conn.execute(
        """
        SELECT starts_at, ends_at
        FROM doctor_time_off
        WHERE doctor_id = ?
          AND starts_at < ?
          AND ends_at > ?
        ORDER BY starts_at ASC
        """,
        (doctor_id, serialize(day_end), serialize(day_start)),
    ).fetchall()
    return [
        (datetime.strptime(row["starts_at"], ISO_FMT), datetime.strptime(row["ends_at"], ISO_FMT))
        for row in rows
    ]


def insert_time_off(
    conn: sqlite3.Connection, doctor_id: str, start: datetime, end: datetime, reason: str | None
) -> str:
    time_off_id = str(uuid.uuid4())
    conn.execute(
        """
        INSERT INTO doctor_time_off(id, doctor_id, starts_at, ends_at, reason, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, datetime('now'), datetime('now'))
        """,
        (time_off_id, doctor_id, serialize(start), serialize(end), reason),
    )
    return time_off_id


def update_time_off_row(
    conn: sqlite3.Connection, time_off_id: str, start: datetime, end: datetime, reason: str | None
) -> None:
    conn.execute(
        """
        UPDATE doctor_time_off
        SET starts_at=?, ends_at=?, reason=?, updated_at=datetime('now')
        WHERE id=?
        """,
        (serialize(start), serialize(end), reason, time_off_id),
    )


def delete_time_off_row(conn: sqlite3.Connection, time_off_id: str) -> None:
    conn.execute("DELETE FROM doctor_time_off WHERE id=?", (time_off_id,))
