from __future__ import annotations

from flask import Blueprint, jsonify

from carebook_app.services.database import db

bp = Blueprint("core", __name__)


@bp.route("/health", methods=["GET"])
def health():
    conn = db()
    try:
        conn.execute("SELECT 1").fetchone()
    finally:
        conn.close()
    return jsonify({"success": True, "status": "ok"})
