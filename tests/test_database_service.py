import importlib

import pytest

from carebook_app.services.database import db, write_transaction


def test_database_service_imports():
    m = importlib.import_module("carebook_app.services.database")
    assert hasattr(m, "db")
    assert hasattr(m, "write_transaction")


def test_sqlite_pragmas_active(app):
    conn = db()
    try:
        mode = conn.execute("PRAGMA journal_mode").fetchone()[0]
        timeout = conn.execute("PRAGMA busy_timeout").fetchone()[0]
        foreign = conn.execute("PRAGMA foreign_keys").fetchone()[0]
    finally:
        conn.close()
    assert mode.lower() == "wal"
    assert timeout == 5000
    assert foreign == 1


def test_write_transaction_rolls_back_on_error(app):
    with pytest.raises(RuntimeError):
        with write_transaction() as conn:
            conn.execute("INSERT INTO doctors(id, label) VALUES ('dr-temp', 'Dr. Temp')")
            raise RuntimeError("abort")
    conn = db()
    try:
        assert conn.execute("SELECT 1 FROM doctors WHERE id='dr-temp'").fetchone() is None
    finally:
        conn.close()


def test_active_slot_is_unique_per_doctor(app):
    insert = (
        "INSERT INTO appointments(id, doctor_id, patient_id, starts_at, status) "
        "VALUES (?, 'dr-lina', 'p', '2030-03-04T09:00:00', ?)"
    )
    conn = db()
    try:
        conn.execute(insert, ("a-1", "CANCELLED"))
        conn.execute(insert, ("a-2", "PENDING"))
        with pytest.raises(Exception) as excinfo:
            conn.execute(insert, ("a-3", "CONFIRMED"))
        assert "UNIQUE" in str(excinfo.value)
    finally:
        conn.rollback()
        conn.close()
