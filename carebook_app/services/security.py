"""Caller identity forwarded by the upstream gateway.

The gateway authenticates the caller and passes ``X-Actor-Id``,
``X-Actor-Role`` and ``X-Actor-Hospital``; this module only turns those into an
``Actor`` and enforces who may act for which doctor.
"""

from __future__ import annotations

from functools import wraps
from typing import Callable, TypeVar

from flask import g, jsonify
from flask_login import UserMixin, current_user
from werkzeug.exceptions import Forbidden

from carebook_app.extensions import login_manager
from carebook_app.services.doctors import get_doctor

F = TypeVar("F", bound=Callable)

ROLES = ("patient", "doctor", "slot_admin", "admin")
STAFF_ROLES = ("doctor", "slot_admin", "admin")


class Actor(UserMixin):
    def __init__(self, actor_id: str, role: str, hospital_id: str | None = None) -> None:
        self.id = actor_id
        self.role = role
        self.hospital_id = hospital_id

    def __repr__(self) -> str:
        return f"<Actor {self.role}:{self.id}>"


@login_manager.request_loader
def load_actor_from_headers(req) -> Actor | None:
    actor_id = (req.headers.get("X-Actor-Id") or "").strip()
    role = (req.headers.get("X-Actor-Role") or "").strip().lower()
    if not actor_id or role not in ROLES:
        return None
    hospital_id = (req.headers.get("X-Actor-Hospital") or "").strip() or None
    return Actor(actor_id, role, hospital_id)


def forget_cached_actor() -> None:
    """Drop the actor Flask-Login cached on ``g`` so each request reads its own headers."""
    g.pop("_login_user", None)


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({"success": False, "error": {"kind": "UNAUTHORIZED", "message": "actor_headers_required"}}), 401


def require_role(*roles: str) -> Callable[[F], F]:
    """Reject callers without gateway headers (401) or outside ``roles`` (403)."""

    def decorator(view: F) -> F:
        @wraps(view)
        def wrapped(*args, **kwargs):
            if not current_user.is_authenticated:
                return login_manager.unauthorized()
            if roles and current_user.role not in roles:
                raise Forbidden(f"role_not_allowed:{current_user.role}")
            return view(*args, **kwargs)

        return wrapped  # type: ignore[return-value]

    return decorator


def can_manage_doctor(actor: Actor, doctor_id: str) -> bool:
    if actor.role == "admin":
        return True
    if actor.role == "doctor":
        return actor.id == doctor_id
    if actor.role == "slot_admin":
        doctor = get_doctor(doctor_id)
        return bool(doctor and actor.hospital_id and doctor["hospital_id"] == actor.hospital_id)
    return False


def ensure_doctor_scope(doctor_id: str) -> None:
    if not can_manage_doctor(current_user, doctor_id):
        raise Forbidden(f"not_allowed_for_doctor:{doctor_id}")


def ensure_patient_scope(patient_id: str) -> None:
    """Patients act only for themselves; staff may act for any patient."""
    if current_user.role == "patient" and current_user.id != patient_id:
        raise Forbidden("patients_book_for_themselves")


def ensure_appointment_scope(appointment: dict) -> None:
    if current_user.role == "patient":
        if appointment["patient_id"] != current_user.id:
            raise Forbidden("not_your_appointment")
        return
    ensure_doctor_scope(appointment["doctor_id"])
