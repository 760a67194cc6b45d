import asyncio
import contextlib
from contextlib import asynccontextmanager

from fastapi import FastAPI

from continuum.config import get_settings
from continuum.core.background import BackgroundTaskCoordinator
from continuum.infra.logging_config import LoggingConfig, get_logger
from continuum.routers import system, webhooks
from continuum.services.promotion_service import PromotionCatalog

logger = get_logger("main")

SHUTDOWN_DRAIN_SECONDS = 30


def create_app(testing: bool = False) -> FastAPI:
    """Build the FastAPI app. testing=True skips the promotion refresh loop."""
    LoggingConfig()
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        refresher = None
        if not testing:
            refresher = asyncio.create_task(
                app.state.promotion_catalog.run_refresh_loop(
                    settings.promotion_refresh_seconds
                )
            )
        logger.info("%s started (env=%s)", settings.app_name, settings.environment)
        try:
            yield
        finally:
            if refresher is not None:
                refresher.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await refresher
            await app.state.coordinator.drain(timeout=SHUTDOWN_DRAIN_SECONDS)
            logger.info("%s stopped", settings.app_name)

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.state.coordinator = BackgroundTaskCoordinator()
    app.state.promotion_catalog = PromotionCatalog()

    app.include_router(system.router)
    app.include_router(webhooks.router)
    return app


app = create_app()
