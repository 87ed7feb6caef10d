"""FastAPI application."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from adoption.app.api.routes.access import router as access_router
from adoption.app.api.routes.health import router as health_router
from adoption.app.api.routes.metrics import router as metrics_router
from adoption.app.api.routes.promotions import router as promotions_router
from adoption.app.api.routes.resources import router as resources_router
from adoption.app.api.routes.scheduler import router as scheduler_router
from adoption.app.config import get_settings
from adoption.app.services import Services, build_services
from adoption.app.utils.logging import configure_logging


def create_app(services: Services | None = None) -> FastAPI:
    """Create the application.

    Args:
        services: Prebuilt services (tests); built from settings otherwise

    Returns:
        Configured FastAPI app
    """
    if services is None:
        settings = get_settings()
        configure_logging(settings.log_level)
        services = build_services(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if services.settings.scheduler_enabled:
            services.scheduler.start(services.settings.scheduler_poll_interval_seconds)
        try:
            yield
        finally:
            await services.scheduler.stop()
            if services.db_engine is not None:
                services.db_engine.dispose()

    app = FastAPI(title="Adoption Platform API", version="0.1.0", lifespan=lifespan)
    app.state.services = services

    # Register routes
    app.include_router(health_router, tags=["health"])
    app.include_router(metrics_router, tags=["metrics"])
    app.include_router(promotions_router)
    app.include_router(scheduler_router)
    app.include_router(access_router)
    app.include_router(resources_router)

    @app.get("/")
    async def root() -> dict[str, str]:
        """Root endpoint."""
        return {"message": "Adoption Platform API", "version": "0.1.0"}

    return app


app = create_app()
