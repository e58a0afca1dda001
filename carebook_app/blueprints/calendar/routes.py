"""Availability reads and per-doctor calendar configuration."""

from __future__ import annotations

from flask import Blueprint, jsonify, request
from werkzeug.exceptions import BadRequest

from carebook_app.blueprints.payload import field, flag, has_field, json_body, text
from carebook_app.services.admission import (
    create_time_off,
    delete_time_off,
    save_slot_period,
    save_working_hours,
    update_time_off,
)
from carebook_app.services.availability import availability, batch_availability, hourly_summary
from carebook_app.services.calendar_rules import (
    allowed_periods,
    capacity_per_hour,
    get_slot_period,
    get_working_hours,
)
from carebook_app.services.security import STAFF_ROLES, ensure_doctor_scope, require_role
from carebook_app.services.time_off import list_time_off
from carebook_app.services.timefmt import parse_day, parse_timestamp

bp = Blueprint("calendar", __name__, url_prefix="/api")


def _requested_day():
    raw = request.args.get("date")
    if not raw:
        raise BadRequest("Missing required query parameter: date")
    return parse_day(raw)


@bp.route("/doctors/<doctor_id>/availability", methods=["GET"])
def doctor_availability(doctor_id: str):
    day = _requested_day()
    slots = availability(doctor_id, day, only_open=flag(request.args.get("open")))
    return jsonify({"success": True, "doctor_id": doctor_id, "date": day.isoformat(), "slots": slots})


@bp.route("/doctors/<doctor_id>/availability/hours", methods=["GET"])
def doctor_hourly(doctor_id: str):
    day = _requested_day()
    period = get_slot_period(doctor_id)
    return jsonify(
        {
            "success": True,
            "doctor_id": doctor_id,
            "date": day.isoformat(),
            "period_minutes": period,
            "capacity_per_hour": capacity_per_hour(period),
            "hours": hourly_summary(availability(doctor_id, day)),
        }
    )


@bp.route("/availability/batch", methods=["POST"])
def batch():
    payload = json_body()
    doctor_ids = field(payload, "doctorIds") or []
    day = field(payload, "date")
    if not isinstance(doctor_ids, list) or not doctor_ids or not day:
        raise BadRequest("Missing required fields: doctorIds, date")
    ids = [str(doctor_id).strip() for doctor_id in doctor_ids if str(doctor_id).strip()]
    return jsonify({"success": True, "date": parse_day(day).isoformat(), "results": batch_availability(ids, day)})


@bp.route("/doctors/<doctor_id>/working-hours", methods=["GET"])
def working_hours(doctor_id: str):
    return jsonify({"success": True, "doctor_id": doctor_id, "hours": get_working_hours(doctor_id)})


@bp.route("/doctors/<doctor_id>/working-hours", methods=["PUT"])
@require_role(*STAFF_ROLES)
def put_working_hours(doctor_id: str):
    ensure_doctor_scope(doctor_id)
    payload = json_body()
    hours = field(payload, "hours")
    if not isinstance(hours, list):
        raise BadRequest("Missing required field: hours")
    entries = []
    for entry in hours:
        if not isinstance(entry, dict):
            raise BadRequest("Each hours entry must be an object")
        entries.append(
            {
                "day_of_week": field(entry, "dayOfWeek"),
                "start_time": field(entry, "startTime"),
                "end_time": field(entry, "endTime"),
            }
        )
    return jsonify({"success": True, "doctor_id": doctor_id, "hours": save_working_hours(doctor_id, entries)})


def _period_payload(doctor_id: str, period: int) -> dict:
    return {
        "success": True,
        "doctor_id": doctor_id,
        "period_minutes": period,
        "capacity_per_hour": capacity_per_hour(period),
        "allowed": list(allowed_periods()),
    }


@bp.route("/doctors/<doctor_id>/slot-period", methods=["GET"])
def slot_period(doctor_id: str):
    return jsonify(_period_payload(doctor_id, get_slot_period(doctor_id)))


@bp.route("/doctors/<doctor_id>/slot-period", methods=["PUT"])
@require_role(*STAFF_ROLES)
def put_slot_period(doctor_id: str):
    ensure_doctor_scope(doctor_id)
    payload = json_body()
    if not has_field(payload, "periodMinutes"):
        raise BadRequest("Missing required field: periodMinutes")
    period = save_slot_period(doctor_id, field(payload, "periodMinutes"))
    return jsonify(_period_payload(doctor_id, period))


@bp.route("/doctors/<doctor_id>/time-off", methods=["GET"])
@require_role(*STAFF_ROLES)
def time_off_index(doctor_id: str):
    ensure_doctor_scope(doctor_id)
    start = request.args.get("start")
    end = request.args.get("end")
    entries = list_time_off(
        doctor_id,
        start=parse_timestamp(start) if start else None,
        end=parse_timestamp(end) if end else None,
    )
    return jsonify({"success": True, "doctor_id": doctor_id, "time_off": entries})


@bp.route("/doctors/<doctor_id>/time-off", methods=["POST"])
@require_role(*STAFF_ROLES)
def time_off_create(doctor_id: str):
    ensure_doctor_scope(doctor_id)
    payload = json_body()
    entry = create_time_off(doctor_id, field(payload, "start"), field(payload, "end"), text(payload, "reason"))
    return jsonify({"success": True, "time_off": entry}), 201


@bp.route("/doctors/<doctor_id>/time-off/<time_off_id>", methods=["PATCH"])
@require_role(*STAFF_ROLES)
def time_off_update(doctor_id: str, time_off_id: str):
    ensure_doctor_scope(doctor_id)
    payload = json_body()
    changes = {}
    if has_field(payload, "reason"):
        changes["reason"] = text(payload, "reason")
    entry = update_time_off(
        doctor_id,
        time_off_id,
        start=field(payload, "start"),
        end=field(payload, "end"),
        **changes,
    )
    return jsonify({"success": True, "time_off": entry})


@bp.route("/doctors/<doctor_id>/time-off/<time_off_id>", methods=["DELETE"])
@require_role(*STAFF_ROLES)
def time_off_delete(doctor_id: str, time_off_id: str):
    ensure_doctor_scope(doctor_id)
    delete_time_off(doctor_id, time_off_id)
    return jsonify({"success": True})
