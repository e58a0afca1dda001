import pytest
import redis

from carebook_app.extensions import availability_cache
from carebook_app.services import availability as availability_service
from carebook_app.services.admission import cancel_appointment, request_appointment, save_slot_period
from carebook_app.services.availability import availability
from carebook_app.services.cache import AvailabilityCache


class _UnreachableRedis:
    def _fail(self, *args, **kwargs):
        raise redis.ConnectionError("connection refused")

    get = setex = incr = scan_iter = delete = _fail


def _counting(monkeypatch):
    calls = []
    original = availability_service.compute_slots

    def wrapper(doctor_id, day):
        calls.append((doctor_id, day))
        return original(doctor_id, day)

    monkeypatch.setattr(availability_service, "compute_slots", wrapper)
    return calls


def test_hit_skips_recompute_and_booking_invalidates(clinic_day, monkeypatch):
    calls = _counting(monkeypatch)
    availability("dr-lina", clinic_day)
    availability("dr-lina", clinic_day, only_open=True)
    assert len(calls) == 1

    request_appointment("dr-lina", "patient-1", clinic_day, "09:00")
    slots = availability("dr-lina", clinic_day)
    assert len(calls) == 2
    assert slots[0]["reason"] == "BOOKED"
    assert len(availability("dr-lina", clinic_day, only_open=True)) == 5


def test_every_write_path_retires_cached_dates(clinic_day, monkeypatch):
    appt = request_appointment("dr-lina", "patient-1", clinic_day, "09:00")
    assert not availability("dr-lina", clinic_day)[0]["available"]

    cancel_appointment(appt["id"])
    assert availability("dr-lina", clinic_day)[0]["available"]

    save_slot_period("dr-lina", 60)
    assert [slot["time"] for slot in availability("dr-lina", clinic_day)] == ["09:00", "10:00", "11:00"]


def test_stale_generation_is_never_served():
    cache = AvailabilityCache()
    generation = cache.generation("dr-lina")
    cache.invalidate("dr-lina")
    # A reader that computed before the invalidation stores under the old generation.
    cache.set("dr-lina", "2030-03-04", [{"time": "09:00"}], generation)
    assert cache.get("dr-lina", "2030-03-04") is None

    cache.set("dr-lina", "2030-03-04", [{"time": "09:00"}], cache.generation("dr-lina"))
    assert cache.get("dr-lina", "2030-03-04") == [{"time": "09:00"}]


def test_entries_expire_after_ttl():
    fresh = AvailabilityCache(ttl_seconds=60)
    fresh.set("dr-lina", "2030-03-04", [], fresh.generation("dr-lina"))
    assert fresh.get("dr-lina", "2030-03-04") == []

    expired = AvailabilityCache(ttl_seconds=0)
    expired.set("dr-lina", "2030-03-04", [], expired.generation("dr-lina"))
    assert expired.get("dr-lina", "2030-03-04") is None


def test_unreachable_store_degrades_reads_but_fails_writes(clinic_day, monkeypatch):
    monkeypatch.setattr(availability_cache, "_client", _UnreachableRedis())
    assert len(availability("dr-lina", clinic_day)) == 6

    with pytest.raises(redis.ConnectionError):
        availability_cache.invalidate("dr-lina")


def test_local_backend_is_flagged_at_startup(caplog, app):
    assert availability_cache.is_local
    messages = [record.getMessage() for record in caplog.get_records("setup")]
    assert any("process-local" in message for message in messages)


def test_invalidation_only_retires_that_doctor():
    cache = AvailabilityCache()
    for doctor_id in ("dr-lina", "dr-omar"):
        cache.set(doctor_id, "2030-03-04", [{"time": "09:00"}], cache.generation(doctor_id))

    cache.invalidate("dr-lina")
    assert cache.generation("dr-lina") == 1
    assert cache.get("dr-lina", "2030-03-04") is None
    assert cache.get("dr-omar", "2030-03-04") == [{"time": "09:00"}]
