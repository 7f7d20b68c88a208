from fastapi import FastAPI

from .messages import router as messages_router
from .webhooks import router as webhooks_router


def register_routes(app: FastAPI) -> None:
    """Register every API router on the FastAPI application."""

    app.include_router(messages_router)
    app.include_router(webhooks_router)
