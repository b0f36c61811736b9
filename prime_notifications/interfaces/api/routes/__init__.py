from fastapi import FastAPI

from .notifications import router as notifications_router
from .realtime import router as realtime_router


def register_routes(app: FastAPI, prefix: str = "") -> None:
    """Register every API router on the FastAPI application."""

    app.include_router(notifications_router, prefix=prefix)
    app.include_router(realtime_router)
