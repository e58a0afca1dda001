"""Database helpers backed by SQLAlchemy."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager

from carebook_app.extensions import db as sa_db


def db() -> sqlite3.Connection:
    """Return a raw sqlite3 connection with PRAGMAs applied."""

    return sa_db.raw_connection()


@contextmanager
def write_transaction():
    """Yield a connection holding SQLite's write lock for the whole block.

    ``BEGIN IMMEDIATE`` serialises writers, so a check followed by an insert
    cannot interleave with another admission.
    """

    conn = db()
    try:
        conn.execute("BEGIN IMMEDIATE")
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()

