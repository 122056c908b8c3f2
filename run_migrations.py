#!/usr/bin/env python3
"""
Apply Alembic migrations for the diagnostic service database.

Usage:
    python run_migrations.py          # upgrade to head
    python run_migrations.py status   # show current revision and history
"""

import sys
from pathlib import Path

from alembic import command
from alembic.config import Config
from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).parent


def _alembic_config() -> Config:
    load_dotenv()
    from diagnostics_api.config.settings import Settings

    alembic_ini = PROJECT_ROOT / "alembic.ini"
    if not alembic_ini.exists():
        raise FileNotFoundError(f"alembic.ini not found at {alembic_ini}")

    database_url = Settings().DATABASE_URL
    print(f"   Database: {database_url.split('@')[-1]}")

    alembic_cfg = Config(str(alembic_ini))
    alembic_cfg.set_main_option("sqlalchemy.url", database_url)
    return alembic_cfg


def run_migrations() -> bool:
    """Run all pending migrations."""
    try:
        print("🔧 Running database migrations...")
        command.upgrade(_alembic_config(), "head")
        print("✅ Migrations completed successfully!")
        return True

    except Exception as e:
        print(f"❌ ERROR running migrations: {e}")
        return False


def check_migrations_status() -> None:
    try:
        alembic_cfg = _alembic_config()

        print("📋 Current migration status:")
        command.current(alembic_cfg)

        print("\n📋 Migration history:")
        command.history(alembic_cfg)

    except Exception as e:
        print(f"❌ ERROR checking status: {e}")


if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1] == "status":
        check_migrations_status()
    else:
        sys.exit(0 if run_migrations() else 1)
