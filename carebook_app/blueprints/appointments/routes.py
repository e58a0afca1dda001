from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user
from werkzeug.exceptions import BadRequest

from carebook_app.blueprints.payload import field, flag, json_body, text
from carebook_app.extensions import limiter
from carebook_app.services.admission import (
    cancel_appointment,
    reallocate,
    request_appointment,
    update_status,
)
from carebook_app.services.errors import AppointmentNotFound
from carebook_app.services.ledger import (
    get_appointment,
    list_expired_pending,
    list_for_doctor,
    list_for_patient,
)
from carebook_app.services.security import (
    ROLES,
    STAFF_ROLES,
    can_manage_doctor,
    ensure_appointment_scope,
    ensure_doctor_scope,
    ensure_patient_scope,
    require_role,
)
from carebook_app.services.timefmt import parse_day

bp = Blueprint("appointments", __name__, url_prefix="/api")


def _booking_limit() -> str:
    return current_app.config["BOOKING_RATE_LIMIT"]


def _load(appointment_id: str) -> dict:
    appointment = get_appointment(appointment_id)
    if appointment is None:
        raise AppointmentNotFound(f"appointment_not_found:{appointment_id}")
    ensure_appointment_scope(appointment)
    return appointment


@bp.route("/appointments", methods=["POST"])
@limiter.limit(_booking_limit, methods=["POST"])
@require_role(*ROLES)
def create():
    payload = json_body()
    doctor_id = text(payload, "doctorId")
    patient_id = text(payload, "patientId")
    day = field(payload, "date")
    clock = field(payload, "time")
    if not doctor_id or not patient_id or not day or not clock:
        raise BadRequest("Missing required fields: doctorId, patientId, date, time")

    ensure_patient_scope(patient_id)
    if current_user.role != "patient":
        ensure_doctor_scope(doctor_id)

    appointment = request_appointment(
        doctor_id,
        patient_id,
        day,
        clock,
        reason=text(payload, "reason"),
        emergency=flag(field(payload, "emergency")),
    )
    return jsonify({"success": True, "appointment": appointment}), 201


@bp.route("/appointments/<appointment_id>", methods=["GET"])
@require_role(*ROLES)
def show(appointment_id: str):
    return jsonify({"success": True, "appointment": _load(appointment_id)})


@bp.route("/appointments/<appointment_id>/status", methods=["PATCH"])
@require_role(*STAFF_ROLES)
def change_status(appointment_id: str):
    payload = json_body()
    status = field(payload, "status")
    if not status:
        raise BadRequest("Missing required field: status")
    _load(appointment_id)
    appointment = update_status(appointment_id, status, actor=current_user)
    return jsonify({"success": True, "appointment": appointment})


@bp.route("/appointments/<appointment_id>/reallocate", methods=["PATCH"])
@require_role(*STAFF_ROLES)
def move(appointment_id: str):
    payload = json_body()
    day = field(payload, "date")
    clock = field(payload, "time")
    if not day or not clock:
        raise BadRequest("Missing required fields: date, time")
    _load(appointment_id)
    appointment = reallocate(appointment_id, day, clock, status=field(payload, "status"))
    return jsonify({"success": True, "appointment": appointment})


@bp.route("/appointments/<appointment_id>/cancel", methods=["PATCH"])
@require_role(*ROLES)
def cancel(appointment_id: str):
    payload = json_body()
    _load(appointment_id)
    appointment = cancel_appointment(appointment_id, reason=text(payload, "reason"))
    return jsonify({"success": True, "appointment": appointment})


@bp.route("/doctors/<doctor_id>/appointments", methods=["GET"])
@require_role(*STAFF_ROLES)
def doctor_appointments(doctor_id: str):
    ensure_doctor_scope(doctor_id)
    day = request.args.get("date")
    end = request.args.get("end")
    status = (request.args.get("status") or "").strip().upper() or None
    appointments = list_for_doctor(
        doctor_id,
        day=parse_day(day) if day else None,
        end_day=parse_day(end) if end else None,
        status=status,
    )
    return jsonify({"success": True, "appointments": appointments})


@bp.route("/doctors/<doctor_id>/appointments/expired-pending", methods=["GET"])
@require_role(*STAFF_ROLES)
def expired_pending(doctor_id: str):
    ensure_doctor_scope(doctor_id)
    return jsonify({"success": True, "appointments": list_expired_pending(doctor_id)})


@bp.route("/patients/<patient_id>/appointments", methods=["GET"])
@require_role(*ROLES)
def patient_appointments(patient_id: str):
    ensure_patient_scope(patient_id)
    appointments = list_for_patient(patient_id)
    if current_user.role != "patient":
        appointments = [a for a in appointments if can_manage_doctor(current_user, a["doctor_id"])]
    return jsonify({"success": True, "appointments": appointments})
