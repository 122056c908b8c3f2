from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from diagnostics_api.config.settings import settings
from diagnostics_api.routes.diagnostic_routes import router as diagnostic_router
from diagnostics_api.routes.webhook_routes import router as webhook_router
from diagnostics_api.utils.logger import get_logger

logger = get_logger(__name__)


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        description="Network diagnostic orchestration: webhook-triggered device and subscriber health checks",
        version="1.0.0",
        debug=settings.DEBUG
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Inbound network events
    app.include_router(webhook_router)

    # Manual trigger, log queries, worker pool control
    app.include_router(diagnostic_router)

    @app.on_event("startup")
    async def startup_event():
        logger.info(f"Starting {settings.APP_NAME}")

        try:
            from diagnostics_api.utils.database import init_db
            init_db()
            logger.info("Database initialized successfully")
        except Exception as e:
            logger.error(f"Failed to initialize database: {str(e)}")
            logger.warning("Application will continue without database functionality")

        try:
            from diagnostics_api.dependencies import get_diagnostic_worker_pool

            if settings.WORKERS_ENABLED:
                logger.info("🔄 Auto-starting diagnostic workers...")
                await get_diagnostic_worker_pool().start()
                logger.info("✅ Diagnostic workers started automatically")
            else:
                logger.info("⏸️  Diagnostic workers disabled (WORKERS_ENABLED=false)")

        except Exception as e:
            logger.error(f"Failed to start diagnostic workers: {str(e)}")
            logger.warning("Application will continue without workers")

    @app.on_event("shutdown")
    async def shutdown_event():
        logger.info(f"Shutting down {settings.APP_NAME}")

        try:
            from diagnostics_api.services.worker_pool_service import get_worker_pool

            pool = get_worker_pool()
            if pool and pool.is_running:
                logger.info("🛑 Stopping diagnostic workers...")
                await pool.stop()
                logger.info("✅ Diagnostic workers stopped")

        except Exception as e:
            logger.error(f"Error stopping diagnostic workers: {str(e)}")

    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "service": settings.APP_NAME}

    @app.get("/")
    async def root():
        return {"message": f"{settings.APP_NAME} API", "version": "1.0.0"}

    return app
