"""Availability resolver: working hours + slot period + ledger + time-off → slots."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any, Iterable, Sequence

from flask import current_app

from carebook_app.extensions import availability_cache
from carebook_app.services.calendar_rules import hours_for_day, slot_period
from carebook_app.services.database import db
from carebook_app.services.ledger import booked_starts_for_day
from carebook_app.services.time_off import time_off_for_day
from carebook_app.services.timefmt import clock_str, format_clock_label, parse_day


BOOKED = "BOOKED"
BLACKOUT = "BLACKOUT"
OUTSIDE_HOURS = "OUTSIDE_HOURS"


@dataclass(frozen=True)
class Slot:
    day: date
    time: time
    duration_minutes: int
    available: bool = True
    reason: str | None = None

    @property
    def start(self) -> datetime:
        return datetime.combine(self.day, self.time)

    @property
    def end(self) -> datetime:
        return self.start + timedelta(minutes=self.duration_minutes)

    def as_dict(self) -> dict[str, Any]:
        return {
            "date": self.day.isoformat(),
            "time": clock_str(self.time),
            "duration_minutes": self.duration_minutes,
            "available": self.available,
            "reason": self.reason,
        }


def occupied_interval(start: datetime, period_minutes: int) -> tuple[datetime, datetime]:
    """The interval an appointment starting at ``start`` occupies.

    Both the resolver and the admission checks use this definition, with the
    doctor's current slot period.
    """
    return start, start + timedelta(minutes=period_minutes)


def _overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    return a_start < b_end and b_start < a_end


def partition(day: date, hours: tuple[time, time], period_minutes: int) -> list[datetime]:
    """Candidate slot starts; a trailing remainder shorter than a period is dropped."""
    start = datetime.combine(day, hours[0])
    end = datetime.combine(day, hours[1])
    step = timedelta(minutes=period_minutes)
    starts = []
    cursor = start
    while cursor + step <= end:
        starts.append(cursor)
        cursor += step
    return starts


def resolve_slots(
    day: date,
    hours: tuple[time, time] | None,
    period_minutes: int,
    booked_starts: Iterable[datetime],
    time_off: Iterable[tuple[datetime, datetime]],
) -> list[Slot]:
    """Pure slot computation; does not look at the current time."""
    if hours is None:
        return []
    booked = [occupied_interval(start, period_minutes) for start in booked_starts]
    windows = list(time_off)
    slots: list[Slot] = []
    for slot_start in partition(day, hours, period_minutes):
        slot_end = slot_start + timedelta(minutes=period_minutes)
        reason = None
        if any(_overlaps(slot_start, slot_end, w_start, w_end) for w_start, w_end in windows):
            reason = BLACKOUT
        elif any(_overlaps(slot_start, slot_end, b_start, b_end) for b_start, b_end in booked):
            reason = BOOKED
        slots.append(Slot(day, slot_start.time(), period_minutes, reason is None, reason))
    return slots


def classify_start(
    start: datetime,
    hours: tuple[time, time] | None,
    period_minutes: int,
    booked_starts: Iterable[datetime],
    time_off: Iterable[tuple[datetime, datetime]],
) -> str | None:
    """Reason a booking at ``start`` would be refused, or ``None`` if it is free.

    Runs the same resolution the availability view shows, so admission can
    never disagree with what a caller was just offered.
    """
    for slot in resolve_slots(start.date(), hours, period_minutes, booked_starts, time_off):
        if slot.start == start:
            return slot.reason
    return OUTSIDE_HOURS


def compute_slots(doctor_id: str, day: date) -> list[Slot]:
    conn = db()
    try:
        # One read transaction so rules, ledger and time-off come from the same snapshot.
        conn.execute("BEGIN")
        hours = hours_for_day(conn, doctor_id, day)
        if hours is None:
            return []
        period = slot_period(conn, doctor_id)
        booked = booked_starts_for_day(conn, doctor_id, day, period)
        windows = time_off_for_day(conn, doctor_id, day)
    finally:
        conn.rollback()
        conn.close()
    return resolve_slots(day, hours, period, booked, windows)


def availability(doctor_id: str, day: str | date, *, only_open: bool = False) -> list[dict[str, Any]]:
    """Slots for ``doctor_id`` on ``day``, served through the availability cache."""
    day = parse_day(day)
    key = day.isoformat()
    slots = availability_cache.get(doctor_id, key)
    if slots is None:
        generation = availability_cache.generation(doctor_id)
        slots = [slot.as_dict() for slot in compute_slots(doctor_id, day)]
        availability_cache.set(doctor_id, key, slots, generation)
    if only_open:
        return [slot for slot in slots if slot["available"]]
    return slots


def hourly_summary(slots: Sequence[dict[str, Any]]) -> list[dict[str, Any]]:
    """Group slots by hour for dashboard capacity views."""
    hours: dict[str, dict[str, Any]] = {}
    for slot in slots:
        hour = slot["time"][:2]
        bucket = hours.get(hour)
        if bucket is None:
            start = time(int(hour))
            end = (datetime.combine(date.min, start) + timedelta(hours=1)).time()
            bucket = hours[hour] = {
                "hour": hour,
                "label_from": format_clock_label(start),
                "label_to": format_clock_label(end),
                "capacity": 0,
                "booked_count": 0,
                "blocked_count": 0,
                "is_full": False,
            }
        bucket["capacity"] += 1
        if slot["reason"] == BOOKED:
            bucket["booked_count"] += 1
        elif slot["reason"] == BLACKOUT:
            bucket["blocked_count"] += 1
    for bucket in hours.values():
        bucket["is_full"] = bucket["booked_count"] + bucket["blocked_count"] >= bucket["capacity"]
    return [hours[key] for key in sorted(hours)]


def batch_availability(doctor_ids: Sequence[str], day: str | date) -> list[dict[str, Any]]:
    """Availability for several doctors; a storage failure is reported per doctor."""
    day = parse_day(day)
    results = []
    for doctor_id in doctor_ids:
        try:
            results.append({"doctor_id": doctor_id, "slots": availability(doctor_id, day)})
        except sqlite3.Error as exc:
            current_app.logger.error(f"Availability lookup failed for {doctor_id} on {day}: {exc}")
            results.append({"doctor_id": doctor_id, "slots": [], "error": "failed_to_load"})
    return results
