"""Booking admission: every write to the ledger, time-off registry and calendar rules.

Each operation holds SQLite's write lock (``BEGIN IMMEDIATE``) while it
re-validates against current state, so a check and the write that depends on
it cannot interleave with another admission. The partial unique index on
``appointments(doctor_id, starts_at)`` backs the check at the storage level.
Once the transaction commits, the doctor's availability cache is invalidated
and a notification signal is sent; both happen before the caller sees success.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime, timedelta
from typing import Any, Iterable, Mapping

from flask import current_app

from carebook_app.extensions import availability_cache
from carebook_app.services import notifications
from carebook_app.services.availability import (
    BLACKOUT,
    BOOKED,
    OUTSIDE_HOURS,
    classify_start,
    occupied_interval,
)
from carebook_app.services.calendar_rules import (
    get_working_hours,
    hours_for_day,
    slot_period,
    validate_hours,
    validate_period,
    write_slot_period,
    write_working_hours,
)
from carebook_app.services.database import write_transaction
from carebook_app.services.doctors import doctor_exists
from carebook_app.services.errors import (
    AppointmentNotFound,
    DoctorNotFound,
    InvalidRequest,
    OutsideWorkingHours,
    SchedulingError,
    SlotBlackedOut,
    SlotInPast,
    SlotTaken,
    TimeOffNotFound,
)
from carebook_app.services.ledger import (
    CANCELLED,
    EMERGENCY,
    PENDING,
    STATUSES,
    booked_starts_for_day,
    fetch_appointment,
    insert_appointment,
    move_appointment_row,
    serialize_appointment,
    set_status_row,
)
from carebook_app.services.time_off import (
    delete_time_off_row,
    fetch_time_off,
    insert_time_off,
    time_off_for_day,
    update_time_off_row,
    validate_window,
)
from carebook_app.services.timefmt import ISO_FMT, combine, parse_clock, parse_day, serialize

_UNSET: Any = object()


def _require_doctor(conn: sqlite3.Connection, doctor_id: str) -> None:
    if not doctor_exists(conn, doctor_id):
        raise DoctorNotFound(f"doctor_not_found:{doctor_id}")


def _normalize_status(status: Any) -> str:
    value = (status or "").strip().upper() if isinstance(status, str) else ""
    if value not in STATUSES:
        raise InvalidRequest(f"invalid_status:{status}")
    return value


def _slot_start(day: Any, clock: Any) -> datetime:
    return combine(parse_day(day), parse_clock(clock))


def _ensure_admissible(
    conn: sqlite3.Connection, doctor_id: str, start: datetime, *, exclude_id: str | None = None
) -> None:
    """Refuse ``start`` for the same reasons the availability view would show."""
    day = start.date()
    hours = hours_for_day(conn, doctor_id, day)
    period = slot_period(conn, doctor_id)
    booked = booked_starts_for_day(conn, doctor_id, day, period, exclude_id=exclude_id)
    windows = time_off_for_day(conn, doctor_id, day)
    reason = classify_start(start, hours, period, booked, windows)
    if reason is None:
        return
    label = f"{doctor_id}@{serialize(start)}"
    if reason == OUTSIDE_HOURS:
        raise OutsideWorkingHours(f"outside_working_hours:{label}")
    if reason == BLACKOUT:
        raise SlotBlackedOut(f"blacked_out:{label}")
    if reason == BOOKED:
        raise SlotTaken(f"slot_taken:{label}")


def _ensure_unoccupied(conn: sqlite3.Connection, doctor_id: str, start: datetime, exclude_id: str) -> None:
    period = slot_period(conn, doctor_id)
    own_start, own_end = occupied_interval(start, period)
    for other in booked_starts_for_day(conn, doctor_id, start.date(), period, exclude_id=exclude_id):
        other_start, other_end = occupied_interval(other, period)
        if own_start < other_end and other_start < own_end:
            raise SlotTaken(f"slot_taken:{doctor_id}@{serialize(start)}")


def _after_commit(doctor_id: str, signal, **payload: Any) -> None:
    availability_cache.invalidate(doctor_id)
    notifications.notify(signal, doctor_id, **payload)


def request_appointment(
    doctor_id: str,
    patient_id: str,
    day: Any,
    time: Any,
    reason: str | None = None,
    emergency: bool = False,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Admit a new appointment or raise the conflict that prevents it."""
    start = _slot_start(day, time)
    patient_id = (patient_id or "").strip()
    if not patient_id:
        raise InvalidRequest("patient_id_required")
    now = now or datetime.now()
    status = EMERGENCY if emergency else PENDING
    try:
        with write_transaction() as conn:
            _require_doctor(conn, doctor_id)
            if not emergency and start < now:
                raise SlotInPast(f"slot_in_past:{serialize(start)}")
            _ensure_admissible(conn, doctor_id, start)
            try:
                appt_id = insert_appointment(conn, doctor_id, patient_id, start, status, reason)
            except sqlite3.IntegrityError as exc:
                raise SlotTaken(f"slot_taken:{doctor_id}@{serialize(start)}") from exc
            row = fetch_appointment(conn, appt_id)
    except SchedulingError as exc:
        current_app.logger.warning(f"Booking refused for {doctor_id} at {serialize(start)}: {exc.kind}")
        raise
    appointment = serialize_appointment(row, now)
    _after_commit(doctor_id, notifications.appointment_booked, appointment=appointment)
    current_app.logger.info(f"Booked {appointment['id']} for {doctor_id} at {appointment['starts_at']} ({status})")
    return appointment


def update_status(appointment_id: str, status: Any, actor: Any = None) -> dict[str, Any]:
    """Move an appointment to ``status``; re-activating a cancelled one re-checks its slot."""
    new_status = _normalize_status(status)
    with write_transaction() as conn:
        row = fetch_appointment(conn, appointment_id)
        if row is None:
            raise AppointmentNotFound(f"appointment_not_found:{appointment_id}")
        changed = row["status"] != new_status
        if changed:
            if row["status"] == CANCELLED:
                start = datetime.strptime(row["starts_at"], ISO_FMT)
                _ensure_unoccupied(conn, row["doctor_id"], start, appointment_id)
            try:
                set_status_row(conn, appointment_id, new_status)
            except sqlite3.IntegrityError as exc:
                raise SlotTaken(f"slot_taken:{row['doctor_id']}@{row['starts_at']}") from exc
            row = fetch_appointment(conn, appointment_id)
    appointment = serialize_appointment(row)
    if changed:
        signal = notifications.appointment_cancelled if new_status == CANCELLED else notifications.appointment_updated
        _after_commit(appointment["doctor_id"], signal, appointment=appointment)
        who = getattr(actor, "id", None) or "system"
        current_app.logger.info(f"Appointment {appointment_id} set to {new_status} by {who}")
    return appointment


def reallocate(
    appointment_id: str,
    day: Any,
    time: Any,
    status: Any = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Move an appointment onto a new slot, checked exactly like a new booking."""
    start = _slot_start(day, time)
    new_status = _normalize_status(status) if status else None
    now = now or datetime.now()
    with write_transaction() as conn:
        row = fetch_appointment(conn, appointment_id)
        if row is None:
            raise AppointmentNotFound(f"appointment_not_found:{appointment_id}")
        target_status = new_status or row["status"]
        if target_status == CANCELLED:
            raise InvalidRequest("cannot_reallocate_cancelled")
        if target_status != EMERGENCY and start < now:
            raise SlotInPast(f"slot_in_past:{serialize(start)}")
        doctor_id = row["doctor_id"]
        _ensure_admissible(conn, doctor_id, start, exclude_id=appointment_id)
        try:
            move_appointment_row(conn, appointment_id, start, target_status)
        except sqlite3.IntegrityError as exc:
            raise SlotTaken(f"slot_taken:{doctor_id}@{serialize(start)}") from exc
        previous = row["starts_at"]
        row = fetch_appointment(conn, appointment_id)
    appointment = serialize_appointment(row, now)
    _after_commit(doctor_id, notifications.appointment_updated, appointment=appointment, previous_start=previous)
    current_app.logger.info(f"Reallocated {appointment_id} from {previous} to {appointment['starts_at']}")
    return appointment


def cancel_appointment(appointment_id: str, reason: str | None = None) -> dict[str, Any]:
    """Cancel an appointment; cancelling twice leaves the same state and is not an error."""
    with write_transaction() as conn:
        row = fetch_appointment(conn, appointment_id)
        if row is None:
            raise AppointmentNotFound(f"appointment_not_found:{appointment_id}")
        changed = row["status"] != CANCELLED
        if changed:
            set_status_row(conn, appointment_id, CANCELLED, cancel_reason=reason)
            row = fetch_appointment(conn, appointment_id)
    appointment = serialize_appointment(row)
    if changed:
        _after_commit(appointment["doctor_id"], notifications.appointment_cancelled, appointment=appointment)
        current_app.logger.info(f"Cancelled {appointment_id}")
    return appointment


def _active_in_window(conn: sqlite3.Connection, doctor_id: str, start: datetime, end: datetime) -> list[str]:
    """Ids of bookings a time-off window now overlays; surfaced, never cancelled."""
    period = slot_period(conn, doctor_id)
    ids = []
    rows = conn.execute(
        """
        SELECT id, starts_at FROM appointments
        WHERE doctor_id = ? AND status != ? AND starts_at > ? AND starts_at < ?
        ORDER BY starts_at ASC
        """,
        (doctor_id, CANCELLED, serialize(start - timedelta(minutes=period)), serialize(end)),
    ).fetchall()
    for row in rows:
        appt_start, appt_end = occupied_interval(datetime.strptime(row["starts_at"], ISO_FMT), period)
        if appt_start < end and start < appt_end:
            ids.append(row["id"])
    return ids


def create_time_off(doctor_id: str, start: Any, end: Any, reason: str | None = None) -> dict[str, Any]:
    start_dt, end_dt = validate_window(start, end)
    with write_transaction() as conn:
        _require_doctor(conn, doctor_id)
        time_off_id = insert_time_off(conn, doctor_id, start_dt, end_dt, reason)
        entry = fetch_time_off(conn, time_off_id)
        entry["conflicting_appointments"] = _active_in_window(conn, doctor_id, start_dt, end_dt)
    _after_commit(doctor_id, notifications.schedule_changed, change="time_off_created", time_off=entry)
    if entry["conflicting_appointments"]:
        current_app.logger.warning(
            f"Time-off {time_off_id} for {doctor_id} overlays {len(entry['conflicting_appointments'])} booking(s)"
        )
    return entry


def update_time_off(
    doctor_id: str, time_off_id: str, start: Any = None, end: Any = None, reason: Any = _UNSET
) -> dict[str, Any]:
    """Edit a window in place; fields left out keep their stored value."""
    with write_transaction() as conn:
        current = fetch_time_off(conn, time_off_id)
        if current is None or current["doctor_id"] != doctor_id:
            raise TimeOffNotFound(f"time_off_not_found:{time_off_id}")
        start_dt, end_dt = validate_window(start or current["start"], end or current["end"])
        new_reason = current["reason"] if reason is _UNSET else reason
        update_time_off_row(conn, time_off_id, start_dt, end_dt, new_reason)
        entry = fetch_time_off(conn, time_off_id)
        entry["conflicting_appointments"] = _active_in_window(conn, doctor_id, start_dt, end_dt)
    _after_commit(doctor_id, notifications.schedule_changed, change="time_off_updated", time_off=entry)
    return entry


def delete_time_off(doctor_id: str, time_off_id: str) -> None:
    with write_transaction() as conn:
        current = fetch_time_off(conn, time_off_id)
        if current is None or current["doctor_id"] != doctor_id:
            raise TimeOffNotFound(f"time_off_not_found:{time_off_id}")
        delete_time_off_row(conn, time_off_id)
    _after_commit(doctor_id, notifications.schedule_changed, change="time_off_deleted", time_off=current)


def save_working_hours(doctor_id: str, hours: Iterable[Mapping[str, Any]]) -> list[dict[str, Any]]:
    entries = validate_hours(hours)
    with write_transaction() as conn:
        _require_doctor(conn, doctor_id)
        write_working_hours(conn, doctor_id, entries)
    _after_commit(doctor_id, notifications.schedule_changed, change="working_hours")
    current_app.logger.info(f"Working hours updated for {doctor_id} ({len(entries)} day(s))")
    return get_working_hours(doctor_id)


def save_slot_period(doctor_id: str, minutes: Any) -> int:
    period = validate_period(minutes)
    with write_transaction() as conn:
        _require_doctor(conn, doctor_id)
        write_slot_period(conn, doctor_id, period)
    _after_commit(doctor_id, notifications.schedule_changed, change="slot_period", period_minutes=period)
    current_app.logger.info(f"Slot period for {doctor_id} set to {period} minutes")
    return period
