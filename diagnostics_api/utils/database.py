"""Database configuration for the diagnostic service."""

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from diagnostics_api.config.settings import settings
from diagnostics_api.utils.logger import get_logger

logger = get_logger(__name__)

# Database configuration
DATABASE_URL = settings.DATABASE_URL

if not DATABASE_URL:
    logger.error("❌ DATABASE_URL is not configured")
    raise ValueError("DATABASE_URL is required. Set it in the environment or .env file")

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

# Create engine
engine = create_engine(DATABASE_URL, connect_args=connect_args)

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Create base class for models
Base = declarative_base()


def init_db():
    """Initialize database tables."""
    logger.info("Initializing database...")

    try:
        # Import all models here to ensure they are registered
        from diagnostics_api.models.diagnostics.diagnostic_log import DiagnosticLog, TargetLease
        from diagnostics_api.models.diagnostics.queued_job import QueuedJob

        Base.metadata.create_all(bind=engine)
        logger.info("✅ Database tables created")
        logger.info("Tables available:")
        logger.info("   - diagnostic_logs")
        logger.info("   - target_leases")
        logger.info("   - diagnostic_jobs")

        if "sqlite" in DATABASE_URL:
            logger.info("Using local SQLite")
        elif "mysql" in DATABASE_URL:
            logger.info("Using MySQL")

    except Exception as e:
        logger.error(f"❌ Error initializing database: {str(e)}")
        raise
