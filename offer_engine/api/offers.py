"""Offer API endpoints for admin actions and the periodic trigger."""

from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Depends, HTTPException, status

from offer_engine.api.dependencies import get_offer_service, verify_cron_secret
from offer_engine.models.offer import (
    InvalidStatusTransition,
    Offer,
    OfferEventRequest,
    OfferRecommendation,
    OfferResult,
)
from offer_engine.models.pattern import BookingPattern
from offer_engine.models.preferences import CustomerPreferences, CustomerPreferencesUpdate
from offer_engine.services.offer_service import OfferService

logger = structlog.get_logger(__name__)

router = APIRouter(
    prefix="/offers",
    tags=["Offers"],
    dependencies=[Depends(verify_cron_secret)],
)


@router.post("/customers/{customer_id}/send")
async def send_offer(
    customer_id: str,
    service: OfferService = Depends(get_offer_service),
) -> OfferResult:
    """Manually send the most urgent offer to one customer."""
    result = await service.generate_and_send_offer(customer_id)
    logger.info(
        "manual_offer_requested",
        customer_id=customer_id,
        success=result.success,
        result_message=result.message,
    )
    return result


@router.post("/process")
async def process_offers(
    service: OfferService = Depends(get_offer_service),
) -> dict:
    """Run the automated offer batch now."""
    result = await service.process_automated_offers()
    return {
        "success": True,
        "message": "Automated offer generation completed",
        "sent": result.sent,
        "failed": result.failed,
        "skipped": result.skipped,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/customers/{customer_id}/pattern")
async def get_pattern(
    customer_id: str,
    service: OfferService = Depends(get_offer_service),
) -> BookingPattern:
    """Booking behaviour profile for one customer."""
    return await service.recommendations.pattern_service.analyze_customer_pattern(customer_id)


@router.get("/customers/{customer_id}/recommendations")
async def get_recommendations(
    customer_id: str,
    service: OfferService = Depends(get_offer_service),
) -> list[OfferRecommendation]:
    """Ranked offer recommendations for one customer."""
    return await service.recommendations.generate_offer_recommendations(customer_id)


@router.patch("/customers/{customer_id}/preferences")
async def update_preferences(
    customer_id: str,
    update: CustomerPreferencesUpdate,
    service: OfferService = Depends(get_offer_service),
) -> CustomerPreferences:
    """Update a customer's WhatsApp preferences."""
    return await service.update_preferences(customer_id, update)


@router.post("/{offer_id}/events")
async def record_offer_event(
    offer_id: str,
    event: OfferEventRequest,
    service: OfferService = Depends(get_offer_service),
) -> Offer:
    """Record a lifecycle event (delivered, read, clicked, booked, expired).

    Raises:
        HTTPException 404: If the offer does not exist
        HTTPException 409: If the transition would move the offer backwards
            or another update won the race
    """
    try:
        offer = await service.record_offer_event(offer_id, event.status)
    except InvalidStatusTransition as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    if offer is None:
        # Distinguish a missing offer from a lost race
        if await service.storage.get_offer(offer_id) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Offer not found")
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Offer status changed concurrently",
        )
    return offer
