"""Blueprint registration for the scheduling API."""

from __future__ import annotations

from flask import Flask


def register_blueprints(app: Flask) -> None:
    from carebook_app.blueprints.appointments.routes import bp as appointments_bp
    from carebook_app.blueprints.calendar.routes import bp as calendar_bp
    from carebook_app.blueprints.core.core import bp as core_bp

    app.register_blueprint(core_bp)
    app.register_blueprint(calendar_bp)
    app.register_blueprint(appointments_bp)
