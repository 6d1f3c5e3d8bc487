"""Offer service: eligibility, pricing, persistence and dispatch of personalized offers."""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import uuid4

import structlog

from offer_engine.config import get_settings
from offer_engine.models.offer import (
    BatchResult,
    InvalidStatusTransition,
    Offer,
    OfferCreate,
    OfferResult,
    OfferStatus,
    OfferType,
    allowed_predecessors,
    can_transition,
)
from offer_engine.models.preferences import CustomerPreferences, CustomerPreferencesUpdate
from offer_engine.models.whatsapp import WhatsAppMessage, WhatsappMessageCreate
from offer_engine.services.pricing import discounted_price
from offer_engine.services.recommendation_service import RecommendationService
from offer_engine.services.whatsapp_service import WhatsAppService
from offer_engine.storage import PostgresStorage, Storage

logger = structlog.get_logger(__name__)


def render_offer_message(
    customer_name: str,
    beautician_name: str,
    service_name: str,
    discount: int,
    original_price: int,
    discounted: int,
    expiry_days: int = 7,
) -> str:
    """Message text stored on the offer (the booking link is appended at send time)."""
    return (
        f"Hi {customer_name}! 💅✨\n\n"
        f"It's time for your {service_name} with {beautician_name}!\n\n"
        f"🎁 Special offer: {discount}% OFF\n"
        f"{original_price} AED → {discounted} AED\n\n"
        f"Book within {expiry_days} days to claim your discount."
    )


class OfferService:
    """Coordinates a personalized offer from recommendation to delivery."""

    def __init__(
        self,
        storage: Optional[Storage] = None,
        recommendation_service: Optional[RecommendationService] = None,
        whatsapp_service: Optional[WhatsAppService] = None,
    ):
        self.storage = storage or PostgresStorage()
        self.recommendations = recommendation_service or RecommendationService(storage=self.storage)
        self.whatsapp = whatsapp_service or WhatsAppService()

    async def get_or_create_preferences(self, customer_id: str) -> CustomerPreferences:
        """Get preferences for a customer, creating defaults if needed.

        New preferences are opted in and use the phone number on the
        customer's account, if any.
        """
        existing = await self.storage.get_customer_preferences(customer_id)
        if existing is not None:
            return existing

        user = await self.storage.get_user(customer_id)
        return await self.storage.create_customer_preferences(
            CustomerPreferences(
                customer_id=customer_id,
                whatsapp_number=user.phone if user else None,
            )
        )

    async def update_preferences(
        self, customer_id: str, update: CustomerPreferencesUpdate
    ) -> CustomerPreferences:
        """Apply a partial update, creating default preferences first if needed."""
        await self.get_or_create_preferences(customer_id)
        updated = await self.storage.update_customer_preferences(customer_id, update)
        if updated is None:
            # Row vanished between create and update
            return await self.get_or_create_preferences(customer_id)
        return updated

    async def generate_and_send_offer(self, customer_id: str) -> OfferResult:
        """Pick the most urgent recommendation for a customer and send it.

        Business rejections come back as ``OfferResult(success=False)``.
        Store and other infrastructure errors propagate to the caller.
        """
        settings = get_settings()

        prefs = await self.get_or_create_preferences(customer_id)
        reason = prefs.offer_ineligibility_reason()
        if reason is not None:
            logger.info("offer_skipped_ineligible", customer_id=customer_id, reason=reason)
            return OfferResult(success=False, message=reason)

        recommendations = await self.recommendations.generate_offer_recommendations(customer_id)
        if not recommendations:
            return OfferResult(success=False, message="No suitable offers found for customer")

        top = recommendations[0]

        customer = await self.storage.get_user(customer_id)
        beautician = await self.storage.get_beautician(top.beautician_id)
        beautician_user = await self.storage.get_user(beautician.user_id) if beautician else None
        if customer is None or beautician is None or beautician_user is None:
            return OfferResult(success=False, message="Missing customer or beautician data")

        service = await self.storage.get_service(top.service_id)
        if service is None:
            return OfferResult(success=False, message="Service not found")

        original_price = service.price
        price = discounted_price(original_price, top.suggested_discount)

        offer = await self.storage.create_offer(
            OfferCreate(
                customer_id=customer_id,
                beautician_id=top.beautician_id,
                service_id=top.service_id,
                offer_type=OfferType.for_urgency(top.urgency),
                discount_percent=top.suggested_discount,
                original_price=original_price,
                discounted_price=price,
                message=render_offer_message(
                    customer.first_name or "Valued Customer",
                    beautician_user.first_name or "beautician",
                    top.service_name,
                    top.suggested_discount,
                    original_price,
                    price,
                    expiry_days=settings.offer_expiry_days,
                ),
                expires_at=datetime.now(timezone.utc) + timedelta(days=settings.offer_expiry_days),
            )
        )

        booking_link = (
            f"{settings.offer_base_url.rstrip('/')}/beauticians/{top.beautician_id}?offer={offer.id}"
        )
        body = f"{offer.message}\n\nBook now: {booking_link}"

        send_result = await self.whatsapp.send_message(
            WhatsAppMessage(to=prefs.whatsapp_number, body=body)
        )

        await self.storage.create_whatsapp_message(
            WhatsappMessageCreate.from_send_result(
                send_result,
                offer_id=offer.id,
                customer_id=customer_id,
                phone_number=prefs.whatsapp_number,
                message_body=body,
            )
        )

        if not send_result.success:
            # The offer stays pending so the failed attempt can be inspected or retried
            logger.warning(
                "offer_send_failed",
                customer_id=customer_id,
                offer_id=offer.id,
                provider=send_result.provider.value,
                error=send_result.error,
            )
            return OfferResult(success=False, message=f"Failed to send offer: {send_result.error}")

        await self.storage.update_offer_status(
            offer.id, OfferStatus.SENT, expected_statuses=[OfferStatus.PENDING]
        )

        logger.info(
            "offer_sent",
            customer_id=customer_id,
            offer_id=offer.id,
            service_id=top.service_id,
            urgency=top.urgency.value,
            discount_percent=top.suggested_discount,
            provider=send_result.provider.value,
        )
        return OfferResult(
            success=True,
            message=f"Offer sent successfully via {send_result.provider.value}",
        )

    async def _in_cooldown(self, customer_id: str, now: datetime, cooldown_days: int) -> bool:
        """True if the customer's newest offer is younger than the cooldown."""
        offers = await self.storage.get_offers_by_customer_id(customer_id)
        if not offers:
            return False
        newest = max(o.created_at for o in offers)
        return now - newest < timedelta(days=cooldown_days)

    async def process_automated_offers(self) -> BatchResult:
        """Send offers to every customer with a high or medium urgency recommendation.

        Customers are handled one at a time with a pause between sends to stay
        under provider rate limits. A failure or exception for one customer is
        logged and counted and never stops the batch.
        """
        settings = get_settings()
        result = BatchResult()
        run_id = str(uuid4())

        structlog.contextvars.bind_contextvars(batch_run_id=run_id)
        try:
            customer_ids = await self.recommendations.find_customers_for_offers()
            logger.info("offer_batch_started", customers=len(customer_ids))

            attempted = 0
            for customer_id in customer_ids:
                if settings.offer_cooldown_days > 0 and await self._in_cooldown(
                    customer_id, datetime.now(timezone.utc), settings.offer_cooldown_days
                ):
                    result.skipped += 1
                    logger.info("offer_skipped_cooldown", customer_id=customer_id)
                    continue

                if attempted > 0:
                    await asyncio.sleep(settings.offer_batch_delay_seconds)
                attempted += 1

                try:
                    outcome = await self.generate_and_send_offer(customer_id)
                except Exception as e:
                    result.failed += 1
                    logger.error(
                        "offer_batch_customer_error",
                        customer_id=customer_id,
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                    continue

                if outcome.success:
                    result.sent += 1
                else:
                    result.failed += 1
                    logger.info(
                        "offer_batch_customer_failed",
                        customer_id=customer_id,
                        reason=outcome.message,
                    )

            logger.info(
                "offer_batch_completed",
                sent=result.sent,
                failed=result.failed,
                skipped=result.skipped,
            )
            return result
        finally:
            structlog.contextvars.unbind_contextvars("batch_run_id")

    async def record_offer_event(self, offer_id: str, status: OfferStatus) -> Optional[Offer]:
        """Move an offer forward (delivered, read, clicked, booked, expired).

        Returns None when the offer does not exist or another writer changed
        it first.

        Raises:
            InvalidStatusTransition: If the move would go backwards
        """
        offer = await self.storage.get_offer(offer_id)
        if offer is None:
            return None

        if not can_transition(offer.status, status):
            raise InvalidStatusTransition(offer.status, status)

        return await self.storage.update_offer_status(
            offer_id, status, expected_statuses=allowed_predecessors(status)
        )

    async def expire_stale_offers(self, now: Optional[datetime] = None) -> int:
        """Mark pending or sent offers past their expiry as expired. Returns count."""
        now = now or datetime.now(timezone.utc)
        stale = await self.storage.get_expired_offers(now)

        expired = 0
        for offer in stale:
            updated = await self.storage.update_offer_status(
                offer.id,
                OfferStatus.EXPIRED,
                expected_statuses=[OfferStatus.PENDING, OfferStatus.SENT],
            )
            if updated is not None:
                expired += 1

        if expired:
            logger.info("offers_expired", count=expired)
        return expired
