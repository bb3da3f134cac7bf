import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

# Import all models to ensure they're registered with SQLAlchemy Base
from . import (
    models,  # noqa: F401
    models_invoice,  # noqa: F401
    models_reminders,  # noqa: F401
)
from . import config
from .database import Base, engine
from .routes.scheduler import router as scheduler_router
from .scheduler.orchestrator import SchedulerOrchestrator, create_orchestrator

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


def create_app(
    orchestrator: Optional[SchedulerOrchestrator] = None,
    autostart: Optional[bool] = None,
    bind=None,
) -> FastAPI:
    """
    Build the API app. The orchestrator is created on startup unless one is
    passed in, stored on app.state and stopped on shutdown.
    """
    autostart = config.SCHEDULER_AUTOSTART if autostart is None else autostart
    bind = bind if bind is not None else engine

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Application starting up...")
        try:
            Base.metadata.create_all(bind=bind, checkfirst=True)
            logger.info("Database tables created successfully")
        except Exception as e:
            # Ignore "already exists" errors from race conditions between workers
            error_msg = str(e)
            if "already exists" in error_msg or "duplicate key" in error_msg:
                logger.info("Database tables already exist (created by another worker)")
            else:
                logger.error(f"Failed to create database tables: {e}")

        app.state.orchestrator = orchestrator or create_orchestrator()
        if autostart:
            app.state.orchestrator.start()

        yield

        logger.info("Application shutting down...")
        app.state.orchestrator.stop()
        await app.state.orchestrator.drain()

    app = FastAPI(title="ClientOps Scheduler API", version="1.0.0", lifespan=lifespan)
    app.include_router(scheduler_router)

    @app.get("/health")
    async def health_check():
        return {"status": "healthy"}

    return app


app = create_app()
