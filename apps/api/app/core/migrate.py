"""
Programmatic `alembic upgrade head` (startup hook and test fixtures).
"""
from __future__ import annotations

from pathlib import Path

from alembic import command
from alembic.config import Config

from app.core.db import resolved_database_url

# apps/api/app/core/migrate.py -> apps/api/migrations
MIGRATIONS_DIR = Path(__file__).resolve().parents[2] / "migrations"


def alembic_config() -> Config:
    cfg = Config()
    cfg.set_main_option("script_location", MIGRATIONS_DIR.as_posix())
    cfg.set_main_option("sqlalchemy.url", resolved_database_url())
    return cfg


def upgrade_head() -> None:
    command.upgrade(alembic_config(), "head")
