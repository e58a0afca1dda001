"""Carebook scheduling package exposing the Flask application factory."""

from __future__ import annotations

import os
import sqlite3
from pathlib import Path

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from .blueprints import register_blueprints
from .cli import register_cli
from .extensions import availability_cache, init_extensions
from .services.auto_migrate import auto_upgrade
from .services.bootstrap import ensure_base_tables
from .services.calendar_rules import DEFAULT_ALLOWED_SLOT_MINUTES
from .services.doctors import seed_doctors
from .services.errors import SchedulingError, record_exception
from .services.security import forget_cached_actor

APP_HOST = "127.0.0.1"
APP_PORT = 8080


def _data_root(base_dir: Path, override: Path | None = None) -> Path:
    root = override if override else base_dir / "data"
    root.mkdir(parents=True, exist_ok=True)
    for sub in ("logs", "backups"):
        (root / sub).mkdir(parents=True, exist_ok=True)
    return root


def _int_list(raw: str | None, default: tuple[int, ...]) -> tuple[int, ...]:
    if not raw:
        return default
    values = tuple(int(part) for part in raw.split(",") if part.strip())
    return values or default


def create_app() -> Flask:
    base_dir = Path(__file__).resolve().parent.parent
    db_override = os.getenv("CAREBOOK_DB_PATH")
    override_root = Path(db_override).parent if db_override else None
    data_root = _data_root(base_dir, override_root)
    db_path = Path(db_override) if db_override else data_root / "app.db"

    app = Flask(__name__)

    secret_key = os.getenv("CAREBOOK_SECRET_KEY")
    if not secret_key:
        secret_key = os.urandom(32)

    doctor_list = [
        doc.strip()
        for doc in os.getenv("CAREBOOK_DOCTORS", "Dr. Lina,Dr. Omar").split(",")
        if doc.strip()
    ]

    app.config.update(
        SECRET_KEY=secret_key,
        SQLALCHEMY_DATABASE_URI=f"sqlite:///{db_path}",
        SQLALCHEMY_ENGINE_OPTIONS={"connect_args": {"check_same_thread": False}},
        RATELIMIT_STORAGE_URI=os.getenv("RATELIMIT_STORAGE_URI", "memory://"),
        RATELIMIT_HEADERS_ENABLED=True,
        DATA_ROOT=str(data_root),
        CAREBOOK_DB=str(db_path),
        DEFAULT_SLOT_MINUTES=int(os.getenv("CAREBOOK_DEFAULT_SLOT_MINUTES", "15")),
        ALLOWED_SLOT_MINUTES=_int_list(os.getenv("CAREBOOK_ALLOWED_SLOT_MINUTES"), DEFAULT_ALLOWED_SLOT_MINUTES),
        AVAILABILITY_CACHE_URI=os.getenv("CAREBOOK_AVAILABILITY_CACHE_URI", "memory://"),
        AVAILABILITY_CACHE_TTL=int(os.getenv("CAREBOOK_AVAILABILITY_CACHE_TTL", "120")),
        BOOKING_RATE_LIMIT=os.getenv("CAREBOOK_BOOKING_RATE_LIMIT", "60 per minute"),
        CAREBOOK_DOCTORS=doctor_list,
    )

    init_extensions(app)
    if availability_cache.is_local and not app.testing:
        app.logger.warning("Availability cache is process-local (memory://); use redis:// with more than one worker")
    app.before_request(forget_cached_actor)
    register_blueprints(app)
    auto_upgrade(app)
    ensure_base_tables(Path(app.config["CAREBOOK_DB"]))
    register_cli(app)

    with app.app_context():
        added = seed_doctors(app.config["CAREBOOK_DOCTORS"])
        if added:
            app.logger.info("Seeded %s doctor(s) from CAREBOOK_DOCTORS", added)

    @app.errorhandler(SchedulingError)
    def handle_scheduling_error(e: SchedulingError):
        return jsonify({"success": False, "error": e.to_dict()}), e.http_status

    @app.errorhandler(HTTPException)
    def handle_http_error(e: HTTPException):
        kind = (e.name or "error").upper().replace(" ", "_")
        return jsonify({"success": False, "error": {"kind": kind, "message": e.description}}), e.code

    @app.errorhandler(sqlite3.Error)
    def handle_storage_error(e: sqlite3.Error):
        record_exception("storage", e)
        app.logger.error("Storage failure: %s", e)
        return jsonify({"success": False, "error": {"kind": "STORAGE_FAILURE", "message": "storage_failure"}}), 500

    @app.errorhandler(Exception)
    def handle_unexpected(e: Exception):
        record_exception("unhandled", e)
        app.logger.exception("Unhandled error")
        return jsonify({"success": False, "error": {"kind": "STORAGE_FAILURE", "message": "internal_error"}}), 500

    return app


__all__ = ["create_app", "APP_HOST", "APP_PORT"]
