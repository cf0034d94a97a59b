from fastapi import FastAPI

from tripline.api import health, itinerary, trips
from tripline.core.db import dispose_engine, init_db
from tripline.core.logging import get_logger, setup_logging
from tripline.core.settings import settings


def create_app() -> FastAPI:
    """Application factory registering routers and config."""

    setup_logging()
    init_db()
    application = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
    )

    application.include_router(health.router)
    application.include_router(trips.router)
    application.include_router(itinerary.router)

    @application.on_event("shutdown")
    async def _dispose_engine() -> None:
        dispose_engine()

    get_logger(__name__).info(
        "app.created", extra={"env": settings.app_env, "version": settings.app_version}
    )
    return application
