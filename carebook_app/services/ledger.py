"""Booking ledger: the authoritative appointment rows and their queries.

Writes here are only ever called from ``services.admission`` inside a write
transaction; everything else in this module is read-only.
"""

from __future__ import annotations

import sqlite3
import uuid
from datetime import date, datetime, timedelta
from typing import Any, Mapping

from carebook_app.services.database import db
from carebook_app.services.timefmt import ISO_FMT, serialize


PENDING = "PENDING"
EMERGENCY = "EMERGENCY"
CONFIRMED = "CONFIRMED"
COMPLETED = "COMPLETED"
CANCELLED = "CANCELLED"

STATUSES = (PENDING, EMERGENCY, CONFIRMED, COMPLETED, CANCELLED)


def is_expired_pending(appointment: Mapping[str, Any], now: datetime) -> bool:
    """A PENDING appointment whose slot time has passed; derived, never stored."""
    if appointment["status"] != PENDING:
        return False
    starts_at = appointment["starts_at"]
    if isinstance(starts_at, str):
        starts_at = datetime.strptime(starts_at, ISO_FMT)
    return starts_at < now


def serialize_appointment(row: Mapping[str, Any], now: datetime | None = None) -> dict[str, Any]:
    now = now or datetime.now()
    starts_at = row["starts_at"]
    return {
        "id": row["id"],
        "doctor_id": row["doctor_id"],
        "patient_id": row["patient_id"],
        "date": starts_at[:10],
        "time": starts_at[11:16],
        "starts_at": starts_at,
        "status": row["status"],
        "reason": row["reason"],
        "cancel_reason": row["cancel_reason"],
        "expired": is_expired_pending(row, now),
        "created_at": row["created_at"],
        "updated_at": row["updated_at"],
    }


def fetch_appointment(conn: sqlite3.Connection, appt_id: str) -> sqlite3.Row | None:
    return conn.execute("SELECT * FROM appointments WHERE id=?", (appt_id,)).fetchone()


def get_appointment(appt_id: str, *, now: datetime | None = None) -> dict[str, Any] | None:
    conn = db()
    try:
        row = fetch_appointment(conn, appt_id)
        return serialize_appointment(row, now) if row else None
    finally:
        conn.close()


def booked_starts_for_day(
    conn: sqlite3.Connection,
    doctor_id: str,
    day: date,
    period_minutes: int,
    *,
    exclude_id: str | None = None,
) -> list[datetime]:
    """Start times of non-cancelled appointments whose interval can touch ``day``."""
    day_start = datetime.combine(day, datetime.min.time())
    day_end = day_start + timedelta(days=1)
    params: list[str] = [
        doctor_id,
        CANCELLED,
        serialize(day_start - timedelta(minutes=period_minutes)),
        serialize(day_end),
    ]
    sql = """
        SELECT starts_at
        FROM appointments
        WHERE doctor_id = ?
          AND status != ?
          AND starts_at > ?
          AND starts_at < ?
    """
    if exclude_id:
        sql += " AND id != ?"
        params.append(exclude_id)
    rows = conn.execute(sql + " ORDER BY starts_at ASC", params).fetchall()
    return [datetime.strptime(row["starts_at"], ISO_FMT) for row in rows]


def insert_appointment(
    conn: sqlite3.Connection,
    doctor_id: str,
    patient_id: str,
    start: datetime,
    status: str,
    reason: str | None,
) -> str:
    appt_id = str(uuid.uuid4())
    conn.execute(
        """
        INSERT INTO appointments(
            id, doctor_id, patient_id, starts_at, status, reason, created_at, updated_at
        ) VALUES (?, ?, ?, ?, ?, ?, datetime('now'), datetime('now'))
        """,
        (appt_id, doctor_id, patient_id, serialize(start), status, reason),
    )
    return appt_id


def move_appointment_row(conn: sqlite3.Connection, appt_id: str, start: datetime, status: str) -> None:
    conn.execute(
        "UPDATE appointments SET starts_at=?, status=?, updated_at=datetime('now') WHERE id=?",
        (serialize(start), status, appt_id),
    )


def set_status_row(
    conn: sqlite3.Connection, appt_id: str, status: str, *, cancel_reason: str | None = None
) -> None:
    if status == CANCELLED:
        conn.execute(
            """
            UPDATE appointments
            SET status=?, cancel_reason=COALESCE(?, cancel_reason), updated_at=datetime('now')
            WHERE id=?
            """,
            (status, cancel_reason, appt_id),
        )
    else:
        conn.execute(
            "UPDATE appointments SET status=?, cancel_reason=NULL, updated_at=datetime('now') WHERE id=?",
            (status, appt_id),
        )


def list_for_doctor(
    doctor_id: str,
    *,
    day: date | None = None,
    end_day: date | None = None,
    status: str | None = None,
    now: datetime | None = None,
) -> list[dict[str, Any]]:
    params: list[str] = [doctor_id]
    sql = "SELECT * FROM appointments WHERE doctor_id = ?"
    if day is not None:
        sql += " AND starts_at >= ?"
        params.append(f"{day.isoformat()}T00:00:00")
        sql += " AND starts_at <= ?"
        params.append(f"{(end_day or day).isoformat()}T23:59:59")
    if status:
        sql += " AND status = ?"
        params.append(status)
    sql += " ORDER BY starts_at ASC"
    conn = db()
    try:
        return [serialize_appointment(row, now) for row in conn.execute(sql, params).fetchall()]
    finally:
        conn.close()


def list_for_patient(patient_id: str, *, now: datetime | None = None) -> list[dict[str, Any]]:
    conn = db()
    try:
        rows = conn.execute(
            "SELECT * FROM appointments WHERE patient_id = ? ORDER BY starts_at DESC",
            (patient_id,),
        ).fetchall()
        return [serialize_appointment(row, now) for row in rows]
    finally:
        conn.close()


def list_expired_pending(doctor_id: str | None = None, *, now: datetime | None = None) -> list[dict[str, Any]]:
    """PENDING appointments whose slot has passed, oldest first, for staff re-allotment."""
    now = now or datetime.now()
    params: list[str] = [PENDING, now.strftime(ISO_FMT)]
    sql = "SELECT * FROM appointments WHERE status = ? AND starts_at < ?"
    if doctor_id:
        sql += " AND doctor_id = ?"
        params.append(doctor_id)
    sql += " ORDER BY starts_at ASC"
    conn = db()
    try:
        return [serialize_appointment(row, now) for row in conn.execute(sql, params).fetchall()]
    finally:
        conn.close()
