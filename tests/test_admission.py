from datetime import datetime, time

import pytest

from carebook_app.services.admission import (
    cancel_appointment,
    create_time_off,
    delete_time_off,
    reallocate,
    request_appointment,
    update_status,
    update_time_off,
)
from carebook_app.services.availability import availability
from carebook_app.services.errors import (
    AppointmentNotFound,
    DoctorNotFound,
    InvalidRequest,
    OutsideWorkingHours,
    SlotBlackedOut,
    SlotInPast,
    SlotTaken,
    TimeOffNotFound,
)
from carebook_app.services.ledger import list_expired_pending


def _stamp(day, hh, mm=0):
    return datetime.combine(day, time(hh, mm)).strftime("%Y-%m-%dT%H:%M")


def test_basic_booking_scenario(clinic_day):
    slots = availability("dr-lina", clinic_day)
    assert [slot["time"] for slot in slots] == ["09:00", "09:30", "10:00", "10:30", "11:00", "11:30"]
    assert all(slot["available"] for slot in slots)

    appt = request_appointment("dr-lina", "patient-1", clinic_day.isoformat(), "10:00")
    assert appt["status"] == "PENDING"
    assert appt["starts_at"] == f"{clinic_day.isoformat()}T10:00:00"

    with pytest.raises(SlotTaken) as excinfo:
        request_appointment("dr-lina", "patient-2", clinic_day.isoformat(), "10:00")
    assert excinfo.value.kind == "SLOT_TAKEN"
    assert excinfo.value.http_status == 409


def test_booking_outside_working_hours_is_refused(clinic_day):
    for clock in ("08:30", "12:00", "09:15"):
        with pytest.raises(OutsideWorkingHours):
            request_appointment("dr-lina", "patient-1", clinic_day, clock)
    # Dr. Omar has no working hours at all.
    with pytest.raises(OutsideWorkingHours):
        request_appointment("dr-omar", "patient-1", clinic_day, "10:00")


def test_unknown_doctor_is_not_found(clinic_day):
    with pytest.raises(DoctorNotFound) as excinfo:
        request_appointment("dr-nobody", "patient-1", clinic_day, "10:00")
    assert excinfo.value.kind == "NOT_FOUND"


def test_past_slot_needs_emergency(clinic_day):
    now = datetime.combine(clinic_day, time(11, 0))
    with pytest.raises(SlotInPast):
        request_appointment("dr-lina", "patient-1", clinic_day, "09:30", now=now)

    appt = request_appointment("dr-lina", "patient-1", clinic_day, "09:30", emergency=True, now=now)
    assert appt["status"] == "EMERGENCY"

    with pytest.raises(SlotTaken):
        request_appointment("dr-lina", "patient-2", clinic_day, "09:30", emergency=True, now=now)


def test_time_off_blocks_booking_but_keeps_existing(clinic_day):
    kept = request_appointment("dr-lina", "patient-1", clinic_day, "10:00")
    entry = create_time_off("dr-lina", _stamp(clinic_day, 10), _stamp(clinic_day, 11), "Training")
    assert entry["conflicting_appointments"] == [kept["id"]]

    with pytest.raises(SlotBlackedOut):
        request_appointment("dr-lina", "patient-2", clinic_day, "10:30")

    by_time = {slot["time"]: slot for slot in availability("dr-lina", clinic_day)}
    assert by_time["10:00"]["reason"] == "BLACKOUT"
    assert by_time["10:30"]["reason"] == "BLACKOUT"
    assert by_time["11:00"]["available"]

    # The booking under the blackout is not touched.
    assert cancel_appointment(kept["id"])["status"] == "CANCELLED"


def test_time_off_edit_and_delete(clinic_day):
    entry = create_time_off("dr-lina", _stamp(clinic_day, 9), _stamp(clinic_day, 10))
    moved = update_time_off("dr-lina", entry["id"], start=_stamp(clinic_day, 11), end=_stamp(clinic_day, 12))
    assert moved["reason"] is None
    assert moved["start"].endswith("T11:00:00")

    request_appointment("dr-lina", "patient-1", clinic_day, "09:00")
    with pytest.raises(SlotBlackedOut):
        request_appointment("dr-lina", "patient-1", clinic_day, "11:30")

    delete_time_off("dr-lina", entry["id"])
    assert request_appointment("dr-lina", "patient-1", clinic_day, "11:30")["status"] == "PENDING"

    with pytest.raises(TimeOffNotFound):
        delete_time_off("dr-lina", entry["id"])


def test_cancel_is_idempotent_and_frees_the_slot(clinic_day):
    appt = request_appointment("dr-lina", "patient-1", clinic_day, "11:00")
    first = cancel_appointment(appt["id"], reason="patient request")
    second = cancel_appointment(appt["id"])
    assert first["status"] == second["status"] == "CANCELLED"
    assert second["cancel_reason"] == "patient request"

    again = request_appointment("dr-lina", "patient-2", clinic_day, "11:00")
    assert again["status"] == "PENDING"


def test_reactivating_cancelled_appointment_rechecks_the_slot(clinic_day):
    first = request_appointment("dr-lina", "patient-1", clinic_day, "09:00")
    cancel_appointment(first["id"])
    request_appointment("dr-lina", "patient-2", clinic_day, "09:00")

    with pytest.raises(SlotTaken):
        update_status(first["id"], "CONFIRMED")


def test_status_updates(clinic_day):
    appt = request_appointment("dr-lina", "patient-1", clinic_day, "09:30")
    assert update_status(appt["id"], "confirmed")["status"] == "CONFIRMED"
    assert update_status(appt["id"], "COMPLETED")["status"] == "COMPLETED"
    with pytest.raises(InvalidRequest):
        update_status(appt["id"], "LOST")
    with pytest.raises(AppointmentNotFound):
        update_status("missing", "CONFIRMED")


def test_reallocation_of_expired_pending(clinic_day):
    before = datetime.combine(clinic_day, time(8, 0))
    later = datetime.combine(clinic_day, time(10, 15))
    appt = request_appointment("dr-lina", "patient-1", clinic_day, "09:00", now=before)

    expired = list_expired_pending("dr-lina", now=later)
    assert [row["id"] for row in expired] == [appt["id"]]
    assert expired[0]["expired"] is True

    moved = reallocate(appt["id"], clinic_day, "11:00", status="CONFIRMED", now=later)
    assert moved["status"] == "CONFIRMED"
    assert moved["time"] == "11:00"
    assert list_expired_pending("dr-lina", now=later) == []

    by_time = {slot["time"]: slot for slot in availability("dr-lina", clinic_day)}
    assert by_time["09:00"]["available"]
    assert by_time["11:00"]["reason"] == "BOOKED"


def test_reallocate_runs_full_conflict_check(clinic_day):
    now = datetime.combine(clinic_day, time(7, 0))
    moving = request_appointment("dr-lina", "patient-1", clinic_day, "09:00", now=now)
    request_appointment("dr-lina", "patient-2", clinic_day, "10:00", now=now)

    with pytest.raises(SlotTaken):
        reallocate(moving["id"], clinic_day, "10:00", now=now)
    with pytest.raises(OutsideWorkingHours):
        reallocate(moving["id"], clinic_day, "13:00", now=now)
    with pytest.raises(SlotInPast):
        reallocate(moving["id"], clinic_day, "09:30", now=datetime.combine(clinic_day, time(10, 0)))

    # Moving within its own interval is allowed.
    assert reallocate(moving["id"], clinic_day, "09:30", now=now)["time"] == "09:30"


def test_time_off_reports_only_bookings_it_overlays(clinic_day):
    booked = {
        clock: request_appointment("dr-lina", "patient-1", clinic_day, clock)["id"]
        for clock in ("09:00", "09:30", "10:00", "11:00")
    }
    entry = create_time_off("dr-lina", _stamp(clinic_day, 9, 45), _stamp(clinic_day, 10, 15))
    assert entry["conflicting_appointments"] == [booked["09:30"], booked["10:00"]]

    edge = update_time_off("dr-lina", entry["id"], start=_stamp(clinic_day, 9, 30), end=_stamp(clinic_day, 10))
    assert edge["conflicting_appointments"] == [booked["09:30"]]
