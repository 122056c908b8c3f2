# Load .env before anything reads the settings
import os
from dotenv import load_dotenv
load_dotenv()

import uvicorn
from diagnostics_api import create_app
from diagnostics_api.utils.logger import get_logger

logger = get_logger(__name__)


def run_alembic_migrations():
    """Apply pending Alembic migrations at startup."""
    logger.info("🔧 Running Alembic migrations...")

    try:
        from alembic.config import Config
        from alembic import command
        from pathlib import Path

        from diagnostics_api.config.settings import settings

        # Project root (parent of diagnostics_api)
        project_root = Path(__file__).parent.parent
        alembic_ini = project_root / "alembic.ini"

        if not alembic_ini.exists():
            logger.warning(f"⚠️ alembic.ini not found at {alembic_ini}, skipping migrations")
            return False

        alembic_cfg = Config(str(alembic_ini))
        alembic_cfg.set_main_option("sqlalchemy.url", settings.DATABASE_URL)

        logger.info("📝 Applying pending migrations...")
        command.upgrade(alembic_cfg, "head")

        logger.info("✅ Alembic migrations completed")
        return True

    except Exception as e:
        logger.error(f"❌ Error running Alembic migrations: {str(e)}")
        logger.warning("The application will continue, but the database may be out of date")
        return False


app = create_app()

if __name__ == "__main__":
    logger.info("🚀 Starting application...")
    run_alembic_migrations()

    logger.info("🌐 Starting FastAPI server...")
    uvicorn.run(
        "diagnostics_api.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "7657")),
        reload=False,
        log_level="info"
    )
