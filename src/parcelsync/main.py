"""Main FastAPI application."""

import asyncio
import logging
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI

from parcelsync.api import router
from parcelsync.carriers.aggregator import AfterShipClient
from parcelsync.carriers.merchant import FileSessionStore, MerchantScraper
from parcelsync.config import settings
from parcelsync.db import ItemStore, init_db
from parcelsync.services.carrier_loader import carrier_loader
from parcelsync.services.geocoding import Geocoder
from parcelsync.services.resolver import CarrierResolver
from parcelsync.services.sync import SyncEngine, SyncJob
from parcelsync.services.tracker import TrackerService

logger = logging.getLogger("parcelsync")


def setup_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    setup_logging()
    logger.info("Starting %s...", settings.app_name)
    await init_db()
    carrier_loader.load_all()
    logger.info("Loaded %d carriers", len(carrier_loader.list_carriers()))

    aggregator = AfterShipClient() if settings.aftership_api_key else None
    if aggregator is None:
        logger.warning("No aggregator API key configured; unknown carriers fall back to manual tracking")

    tracker = TrackerService(
        ItemStore(),
        CarrierResolver(carrier_loader, aggregator),
        MerchantScraper(FileSessionStore()),
        Geocoder() if settings.geocoding_enabled else None,
    )
    sync_job = SyncJob(SyncEngine(tracker))
    app.state.tracker = tracker
    app.state.sync_job = sync_job
    sync_task = asyncio.create_task(sync_job.run_forever())

    yield

    logger.info("Shutting down...")
    sync_task.cancel()
    with suppress(asyncio.CancelledError):
        await sync_task
    await tracker.aclose()


app = FastAPI(
    title=settings.app_name,
    description="Parcel tracking aggregator",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "parcelsync.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
