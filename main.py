import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from wealth_notify.config import get_settings
from wealth_notify.infrastructure.database import engine, initialize_database
from wealth_notify.infrastructure.scheduler import NotificationScheduler
from wealth_notify.interfaces.api.routes import register_routes

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialise the database and the scheduled jobs; release them on shutdown."""

    initialize_database()
    scheduler: NotificationScheduler | None = None
    if get_settings().scheduler_enabled:
        scheduler = NotificationScheduler()
        scheduler.start()
    else:
        logger.info("Notification scheduler disabled by configuration")
    app.state.scheduler = scheduler
    try:
        yield
    finally:
        if scheduler is not None:
            scheduler.stop()
        engine.dispose()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    app = FastAPI(title="Wealth Notify", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=get_settings().cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_routes(app)
    return app


app = create_app()
