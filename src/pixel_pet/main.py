"""Main FastAPI application entry point."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI

from pixel_pet import __version__
from pixel_pet.api.routes import router
from pixel_pet.core.config import settings
from pixel_pet.core.database import close_database, init_database
from pixel_pet.services.pet_service import get_pet_service

logger = structlog.get_logger()

scheduler = AsyncIOScheduler()


async def reconcile_pet(*, on_startup: bool = False) -> None:
    """Periodic task that catches the pet up with elapsed time.

    Timer ticks keep short stretches for the next tick; the startup run
    treats the time the app was closed like any other absence.
    """
    service = get_pet_service()
    outcome = await service.reconcile(accumulate_short_absences=not on_startup)

    if outcome is None:
        logger.debug("reconcile_skipped", message="No pet has hatched yet")
        return

    _, result = outcome
    logger.info(
        "reconcile_completed",
        offline_minutes=result.offline_minutes,
        changes=result.change_log,
        evolved=result.updated_pet is not None,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan manager."""
    # Startup
    logger.info("Starting Pixel Pet", version=__version__)
    await init_database()

    # Catch up with the time the app was closed before serving anything
    await reconcile_pet(on_startup=True)

    scheduler.add_job(
        reconcile_pet,
        "interval",
        minutes=settings.reconcile_interval_minutes,
        id="reconcile_pet",
    )
    scheduler.start()
    logger.info(
        "Scheduler started",
        reconcile_interval_minutes=settings.reconcile_interval_minutes,
    )

    yield

    # Shutdown
    scheduler.shutdown()
    await close_database()
    logger.info("Pixel Pet shutdown complete")


app = FastAPI(
    title=settings.app_name,
    version=__version__,
    description="A virtual pet that keeps living while you are away",
    lifespan=lifespan,
)

app.include_router(router)


@app.get("/")
async def root() -> dict[str, str]:
    """Service information."""
    return {"name": settings.app_name, "version": __version__, "docs": "/docs"}


def run() -> None:
    """Serve the app with uvicorn."""
    import uvicorn

    uvicorn.run("pixel_pet.main:app", host=settings.host, port=settings.port)
