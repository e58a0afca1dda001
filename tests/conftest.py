import os
import pathlib
import shutil
import sys
from datetime import date, timedelta

import pytest

root = pathlib.Path(__file__).resolve().parents[1]
if str(root) not in sys.path:
    sys.path.insert(0, str(root))

from carebook_app import create_app
from carebook_app.extensions import db as sa_db
from carebook_app.services.admission import save_slot_period, save_working_hours

MONDAY = 1  # day_of_week numbering starts at Sunday = 0
SEED_DOCTORS = "Dr. Lina:north,Dr. Omar:south"


@pytest.fixture(scope="session")
def _template_db(tmp_path_factory):
    """Build a fully-migrated DB once per test session.

    Every function-scoped ``app`` fixture copies this file instead of
    running the Alembic migrations from scratch.
    """
    db_path = tmp_path_factory.mktemp("template") / "app.db"
    overrides = {
        "CAREBOOK_DB_PATH": str(db_path),
        "CAREBOOK_SECRET_KEY": "test-secret",
        "CAREBOOK_DOCTORS": SEED_DOCTORS,
    }
    saved = {key: os.environ.get(key) for key in overrides}
    os.environ.update(overrides)
    try:
        _app = create_app()
        with _app.app_context():
            pass
        # Close pooled connections so the WAL is checkpointed into app.db before copying.
        sa_db.engine.dispose()
    finally:
        # Restore environment so monkeypatch in tests can work normally.
        for key, value in saved.items():
            if value is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = value
    return db_path


@pytest.fixture
def app(tmp_path, monkeypatch, _template_db):
    db_path = tmp_path / "app.db"
    shutil.copy2(_template_db, db_path)
    monkeypatch.setenv("CAREBOOK_DB_PATH", str(db_path))
    monkeypatch.setenv("CAREBOOK_SECRET_KEY", "test-secret")
    monkeypatch.setenv("CAREBOOK_AUTO_MIGRATE", "0")  # Already migrated
    monkeypatch.setenv("CAREBOOK_DOCTORS", SEED_DOCTORS)
    monkeypatch.setenv("CAREBOOK_AVAILABILITY_CACHE_URI", "memory://")
    monkeypatch.setenv("CAREBOOK_BOOKING_RATE_LIMIT", "1000 per minute")
    app = create_app()
    app.config.update(TESTING=True)
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def ctx(app):
    with app.app_context():
        yield app


@pytest.fixture
def monday():
    """The next Monday strictly after today, so its slots are never in the past."""
    today = date.today()
    return today + timedelta(days=(0 - today.weekday()) % 7 or 7)


@pytest.fixture
def clinic_day(ctx, monday):
    """Dr. Lina works Mondays 09:00-12:00 in 30-minute slots."""
    save_working_hours("dr-lina", [{"day_of_week": MONDAY, "start_time": "09:00", "end_time": "12:00"}])
    save_slot_period("dr-lina", 30)
    return monday


def actor_headers(role: str, actor_id: str, hospital: str | None = None) -> dict[str, str]:
    headers = {"X-Actor-Id": actor_id, "X-Actor-Role": role}
    if hospital:
        headers["X-Actor-Hospital"] = hospital
    return headers


@pytest.fixture
def patient_headers():
    return actor_headers("patient", "patient-1")


@pytest.fixture
def admin_headers():
    return actor_headers("admin", "admin-1")


@pytest.fixture
def doctor_headers():
    return actor_headers("doctor", "dr-lina")
