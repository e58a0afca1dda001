"""Alembic migration helpers."""

from __future__ import annotations

from pathlib import Path

from alembic import command
from alembic.config import Config
from flask import Flask


def _repo_root() -> Path:
    return Path(__file__).resolve().parents[2]


def alembic_config(app: Flask) -> Config | None:
    """Alembic Config bound to the app's database, or ``None`` outside a source checkout."""

    root = _repo_root()
    alembic_ini = root / "alembic.ini"
    migrations_dir = root / "migrations"
    if not alembic_ini.exists() or not migrations_dir.exists():
        return None
    cfg = Config(str(alembic_ini))
    cfg.set_main_option("script_location", str(migrations_dir))
    cfg.set_main_option("sqlalchemy.url", app.config["SQLALCHEMY_DATABASE_URI"])
    cfg.attributes["configure_logger"] = False
    return cfg


def run_migrations(app: Flask) -> None:
    """Upgrade the database to the latest revision."""

    cfg = alembic_config(app)
    if cfg is None:
        raise RuntimeError("alembic.ini or migrations/ not found next to the package")
    command.upgrade(cfg, "head")
