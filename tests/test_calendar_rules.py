import pytest

from carebook_app.services.admission import save_slot_period, save_working_hours
from carebook_app.services.calendar_rules import (
    capacity_per_hour,
    get_slot_period,
    get_working_hours,
    validate_hours,
    validate_period,
)
from carebook_app.services.errors import DoctorNotFound, InvalidConfiguration


def test_slot_period_defaults_and_allowed_values(ctx):
    assert get_slot_period("dr-omar") == 15
    for minutes in (10, 15, 20, 30, 60):
        assert validate_period(minutes) == minutes
    assert validate_period("20") == 20
    for bad in (25, 0, True, None, "abc"):
        with pytest.raises(InvalidConfiguration):
            validate_period(bad)


def test_capacity_per_hour():
    assert capacity_per_hour(15) == 4
    assert capacity_per_hour(20) == 3
    assert capacity_per_hour(60) == 1


@pytest.mark.parametrize(
    "entry",
    [
        {"day_of_week": 7, "start_time": "09:00", "end_time": "10:00"},
        {"day_of_week": "1", "start_time": "09:00", "end_time": "10:00"},
        {"day_of_week": 1, "start_time": "10:00", "end_time": "09:00"},
        {"day_of_week": 1, "start_time": "09:00", "end_time": None},
        {"day_of_week": 1, "start_time": "9am", "end_time": "10:00"},
    ],
)
def test_invalid_working_hours_are_rejected(ctx, entry):
    with pytest.raises(InvalidConfiguration):
        validate_hours([entry])


def test_working_hours_are_validated_before_any_write(ctx):
    good = {"day_of_week": 2, "start_time": "08:00", "end_time": "16:00"}
    with pytest.raises(InvalidConfiguration):
        save_working_hours("dr-omar", [good, dict(good)])
    assert get_working_hours("dr-omar") == []


def test_working_hours_upsert_and_close_day(ctx):
    save_working_hours(
        "dr-omar",
        [
            {"day_of_week": 0, "start_time": "10:00", "end_time": "14:00"},
            {"day_of_week": 3, "start_time": "08:00", "end_time": "12:00"},
        ],
    )
    hours = save_working_hours("dr-omar", [{"day_of_week": 0, "start_time": None, "end_time": None}])
    assert hours == [{"day_of_week": 3, "start_time": "08:00", "end_time": "12:00"}]


def test_configuration_for_unknown_doctor(ctx):
    with pytest.raises(DoctorNotFound):
        save_slot_period("dr-nobody", 30)
