import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from notifyq.config import get_settings
from notifyq.infrastructure.database import SessionLocal, engine, initialize_database
from notifyq.infrastructure.providers import (
    DeliveryProvider,
    build_providers,
    close_providers,
)
from notifyq.infrastructure.worker import DeliveryWorkerPool
from notifyq.interfaces.api.routes import register_routes

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize the database, start the workers if enabled, release resources on exit."""

    settings = get_settings()
    initialize_database()
    pool: DeliveryWorkerPool | None = None
    providers: dict[str, DeliveryProvider] = {}
    if settings.worker_enabled:
        providers = build_providers(settings)
        pool = DeliveryWorkerPool(providers, settings=settings, session_factory=SessionLocal)
        pool.start()
    app.state.worker_pool = pool
    yield
    if pool is not None:
        pool.stop()
    close_providers(providers)
    engine.dispose()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    app = FastAPI(title="notifyq", lifespan=lifespan)
    register_routes(app)
    return app


app = create_app()
