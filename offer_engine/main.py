"""FastAPI application initialization."""

from contextlib import asynccontextmanager

from dotenv import load_dotenv

# Load environment variables before anything else
load_dotenv()

import structlog
from fastapi import FastAPI

from offer_engine.api.dependencies import get_offer_service
from offer_engine.api.offers import router as offers_router
from offer_engine.config import get_settings
from offer_engine.database import close_database, health_check, init_database, run_migrations
from offer_engine.services.logging_service import configure_logging
from offer_engine.services.scheduler_service import OfferSchedulerService

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    settings = get_settings()
    configure_logging(settings.log_level)

    # Without the database nothing useful can run, so fail startup
    await init_database()
    await run_migrations()
    logger.info("database_initialized")

    offer_service = get_offer_service()
    if not offer_service.whatsapp.is_configured():
        logger.warning("whatsapp_not_configured", note="Offer sends will fail until a provider is set")

    scheduler = None
    if settings.scheduler_enabled:
        scheduler = OfferSchedulerService(offer_service=offer_service)
        scheduler.start()

    logger.info(
        "application_started",
        log_level=settings.log_level,
        providers=[p.value for p in offer_service.whatsapp.get_providers()],
        scheduler_enabled=settings.scheduler_enabled,
    )

    yield

    if scheduler is not None:
        await scheduler.stop()

    await offer_service.whatsapp.close()
    await close_database()
    logger.info("application_shutdown")


app = FastAPI(
    title="Kosmospace Offer Engine",
    description="Booking pattern analysis and personalized WhatsApp offers",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(offers_router)


@app.get("/health")
async def health() -> dict:
    """Database connectivity and configured WhatsApp providers."""
    database_ok = await health_check()
    providers = get_offer_service().whatsapp.get_providers()
    return {
        "status": "ok" if database_ok else "degraded",
        "database": database_ok,
        "whatsapp_providers": [p.value for p in providers],
    }
