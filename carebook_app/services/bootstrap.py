"""Bootstrap helper to ensure the scheduling tables exist for first-time runs."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Iterable


BASE_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS doctors (
        id TEXT PRIMARY KEY,
        label TEXT NOT NULL,
        hospital_id TEXT,
        created_at TEXT NOT NULL DEFAULT (datetime('now'))
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_doctors_hospital ON doctors(hospital_id)
    """,
    """
    CREATE TABLE IF NOT EXISTS doctor_working_hours (
        doctor_id TEXT NOT NULL,
        day_of_week INTEGER NOT NULL,
        start_time TEXT NOT NULL,
        end_time TEXT NOT NULL,
        updated_at TEXT NOT NULL DEFAULT (datetime('now')),
        PRIMARY KEY (doctor_id, day_of_week),
        FOREIGN KEY(doctor_id) REFERENCES doctors(id) ON DELETE CASCADE,
        CHECK(day_of_week BETWEEN 0 AND 6)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS doctor_slot_periods (
        doctor_id TEXT PRIMARY KEY,
        period_minutes INTEGER NOT NULL,
        updated_at TEXT NOT NULL DEFAULT (datetime('now')),
        FOREIGN KEY(doctor_id) REFERENCES doctors(id) ON DELETE CASCADE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS doctor_time_off (
        id TEXT PRIMARY KEY,
        doctor_id TEXT NOT NULL,
        starts_at TEXT NOT NULL,
        ends_at TEXT NOT NULL,
        reason TEXT,
        created_at TEXT NOT NULL DEFAULT (datetime('now')),
        updated_at TEXT NOT NULL DEFAULT (datetime('now')),
        FOREIGN KEY(doctor_id) REFERENCES doctors(id) ON DELETE CASCADE,
        CHECK(starts_at < ends_at)
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_time_off_doctor_window
    ON doctor_time_off(doctor_id, starts_at, ends_at)
    """,
    """
    CREATE TABLE IF NOT EXISTS appointments (
        id TEXT PRIMARY KEY,
        doctor_id TEXT NOT NULL,
        patient_id TEXT NOT NULL,
        starts_at TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'PENDING',
        reason TEXT,
        cancel_reason TEXT,
        created_at TEXT NOT NULL DEFAULT (datetime('now')),
        updated_at TEXT NOT NULL DEFAULT (datetime('now')),
        FOREIGN KEY(doctor_id) REFERENCES doctors(id) ON DELETE CASCADE,
        CHECK(status IN ('PENDING','EMERGENCY','CONFIRMED','COMPLETED','CANCELLED'))
    )
    """,
    """
    CREATE UNIQUE INDEX IF NOT EXISTS idx_appointments_doctor_start_active
    ON appointments(doctor_id, starts_at)
    WHERE status != 'CANCELLED'
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_appointments_patient ON appointments(patient_id, starts_at)
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_appointments_status ON appointments(status, starts_at)
    """,
]


def _execute_statements(conn: sqlite3.Connection, statements: Iterable[str]) -> None:
    for stmt in statements:
        conn.execute(stmt)


def ensure_base_tables(db_path: Path) -> None:
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path)
    conn.execute("PRAGMA foreign_keys=ON")
    try:
        _execute_statements(conn, BASE_STATEMENTS)
        conn.commit()
    finally:
        conn.close()
