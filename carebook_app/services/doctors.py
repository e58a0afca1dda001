"""Doctor directory used to resolve ids and hospital scope."""

from __future__ import annotations

import sqlite3
from typing import Iterable

from carebook_app.services.database import db


def slugify(label: str) -> str:
    keep = []
    for ch in label.lower():
        if ch.isalnum():
            keep.append(ch)
        elif ch in {" ", "-", "_"}:
            keep.append("-")
    slug = "".join(keep).strip("-")
    while "--" in slug:
        slug = slug.replace("--", "-")
    return slug or "doctor"


def parse_seed(entries: Iterable[str]) -> list[tuple[str, str, str | None]]:
    """Turn ``"Dr. Lina:north"`` style entries into ``(id, label, hospital)``."""
    doctors = []
    for entry in entries:
        label, _, hospital = entry.partition(":")
        label = label.strip()
        if not label:
            continue
        doctors.append((slugify(label), label, hospital.strip() or None))
    return doctors


def _row_to_dict(row: sqlite3.Row) -> dict[str, str | None]:
    return {
        "id": row["id"],
        "label": row["label"],
        "hospital_id": row["hospital_id"],
        "created_at": row["created_at"],
    }


def doctor_exists(conn: sqlite3.Connection, doctor_id: str) -> bool:
    row = conn.execute("SELECT 1 FROM doctors WHERE id=?", (doctor_id,)).fetchone()
    return bool(row)


def seed_doctors(entries: Iterable[str]) -> int:
    """Insert seed doctors that are not registered yet; returns rows added."""
    conn = db()
    try:
        added = 0
        for doctor_id, label, hospital_id in parse_seed(entries):
            cur = conn.execute(
                "INSERT OR IGNORE INTO doctors(id, label, hospital_id, created_at) VALUES (?, ?, ?, datetime('now'))",
                (doctor_id, label, hospital_id),
            )
            added += cur.rowcount
        conn.commit()
        return added
    finally:
        conn.close()


def register_doctor(doctor_id: str, label: str, hospital_id: str | None = None) -> dict[str, str | None]:
    conn = db()
    try:
        conn.execute(
            """
            INSERT INTO doctors(id, label, hospital_id, created_at)
            VALUES (?, ?, ?, datetime('now'))
            ON CONFLICT(id) DO UPDATE SET label=excluded.label, hospital_id=excluded.hospital_id
            """,
            (doctor_id, label, hospital_id),
        )
        conn.commit()
        row = conn.execute("SELECT * FROM doctors WHERE id=?", (doctor_id,)).fetchone()
        return _row_to_dict(row)
    finally:
        conn.close()


def get_doctor(doctor_id: str) -> dict[str, str | None] | None:
    conn = db()
    try:
        row = conn.execute("SELECT * FROM doctors WHERE id=?", (doctor_id,)).fetchone()
        return _row_to_dict(row) if row else None
    finally:
        conn.close()


def list_doctors(hospital_id: str | None = None) -> list[dict[str, str | None]]:
    conn = db()
    try:
        if hospital_id:
            rows = conn.execute(
                "SELECT * FROM doctors WHERE hospital_id=? ORDER BY label", (hospital_id,)
            ).fetchall()
        else:
            rows = conn.execute("SELECT * FROM doctors ORDER BY label").fetchall()
        return [_row_to_dict(row) for row in rows]
    finally:
        conn.close()
