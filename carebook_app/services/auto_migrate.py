"""Automatically run Alembic migrations when the app starts."""

from __future__ import annotations

import os

from alembic import command
from flask import Flask

from carebook_app.services.migrations import alembic_config


def auto_upgrade(app: Flask) -> None:
    """Run `alembic upgrade head` automatically if enabled."""

    if os.getenv("CAREBOOK_AUTO_MIGRATE", "1") != "1":
        return

    cfg = alembic_config(app)
    if cfg is None:
        return

    try:
        command.upgrade(cfg, "head")
    except Exception as exc:
        app.logger.warning("Auto migration skipped: %s", exc)
