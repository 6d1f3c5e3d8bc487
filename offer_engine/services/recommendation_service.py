"""Recommendation service for turning booking patterns into scored offers."""

import math
from datetime import datetime, timedelta, timezone
from typing import Callable, NamedTuple, Optional

import structlog

from offer_engine.config import get_settings
from offer_engine.models.offer import URGENCY_ORDER, OfferRecommendation, Urgency
from offer_engine.services.pattern_service import SECONDS_PER_DAY, PatternService
from offer_engine.storage import PostgresStorage, Storage

logger = structlog.get_logger(__name__)

# Used when a profile has no last booking date, so the overdue rule can fire
NO_BOOKING_DAYS = 999


class UrgencyContext(NamedTuple):
    """Timing facts for one service, in whole days."""

    days_until_predicted: int
    days_since_last_booking: int
    average_interval: int


class UrgencyRule(NamedTuple):
    """One row of the urgency table: when ``applies`` holds, use this outcome."""

    name: str
    applies: Callable[[UrgencyContext], bool]
    urgency: Urgency
    discount: int
    reason: str  # formatted with service and discount


class UrgencyOutcome(NamedTuple):
    rule: str
    urgency: Urgency
    discount: int
    reason: str


# Evaluated top to bottom, first match wins. A service that is both close to
# its predicted date and overdue gets the "due"/"upcoming" outcome.
URGENCY_RULES: tuple[UrgencyRule, ...] = (
    UrgencyRule(
        name="due",
        applies=lambda ctx: abs(ctx.days_until_predicted) <= 3,
        urgency=Urgency.HIGH,
        discount=15,
        reason="Your {service} is due! Book now with {discount}% off.",
    ),
    UrgencyRule(
        name="upcoming",
        applies=lambda ctx: abs(ctx.days_until_predicted) <= 7,
        urgency=Urgency.MEDIUM,
        discount=12,
        reason="Upcoming {service} appointment - book ahead with {discount}% off!",
    ),
    UrgencyRule(
        name="overdue",
        applies=lambda ctx: ctx.days_since_last_booking > ctx.average_interval + 7,
        urgency=Urgency.HIGH,
        discount=20,
        reason="We miss you! Get {discount}% off your next {service}.",
    ),
)

DEFAULT_RULE = UrgencyRule(
    name="regular",
    applies=lambda ctx: True,
    urgency=Urgency.LOW,
    discount=10,
    reason="Time for your regular {service} appointment!",
)


def evaluate_urgency(
    ctx: UrgencyContext,
    service_name: str,
    rules: tuple[UrgencyRule, ...] = URGENCY_RULES,
) -> UrgencyOutcome:
    """Return the outcome of the first rule that applies to ``ctx``."""
    rule = next((r for r in rules if r.applies(ctx)), DEFAULT_RULE)
    return UrgencyOutcome(
        rule=rule.name,
        urgency=rule.urgency,
        discount=rule.discount,
        reason=rule.reason.format(service=service_name, discount=rule.discount),
    )


def _whole_days(delta: timedelta) -> int:
    """Floor a timedelta to whole days (negative deltas round toward -inf)."""
    return math.floor(delta.total_seconds() / SECONDS_PER_DAY)


def sort_by_urgency(recommendations: list[OfferRecommendation]) -> list[OfferRecommendation]:
    """High before medium before low, keeping input order within a tier."""
    return sorted(recommendations, key=lambda r: URGENCY_ORDER[r.urgency])


class RecommendationService:
    """Scores a customer's recurring services and proposes discounts."""

    def __init__(
        self,
        storage: Optional[Storage] = None,
        pattern_service: Optional[PatternService] = None,
    ):
        self.storage = storage or PostgresStorage()
        self.pattern_service = pattern_service or PatternService(storage=self.storage)

    async def generate_offer_recommendations(
        self,
        customer_id: str,
        now: Optional[datetime] = None,
    ) -> list[OfferRecommendation]:
        """Recommend one offer per service booked on a 14 to 28 day cadence."""
        settings = get_settings()
        now = now or datetime.now(timezone.utc)
        pattern = await self.pattern_service.analyze_customer_pattern(customer_id)

        if pattern.favorite_beautician is None or not pattern.frequent_services:
            return []

        days_since_last_booking = (
            _whole_days(now - pattern.last_booking_date)
            if pattern.last_booking_date is not None
            else NO_BOOKING_DAYS
        )

        recommendations = []
        for service in pattern.frequent_services:
            if service.average_interval == 0:
                continue
            if not (
                settings.frequent_interval_min_days
                <= service.average_interval
                <= settings.frequent_interval_max_days
            ):
                continue

            # last_booking_date is always set once there are bookings
            predicted_date = pattern.last_booking_date + timedelta(days=service.average_interval)
            outcome = evaluate_urgency(
                UrgencyContext(
                    days_until_predicted=_whole_days(predicted_date - now),
                    days_since_last_booking=days_since_last_booking,
                    average_interval=service.average_interval,
                ),
                service.name,
            )

            recommendations.append(
                OfferRecommendation(
                    customer_id=customer_id,
                    beautician_id=pattern.favorite_beautician.id,
                    service_id=service.id,
                    service_name=service.name,
                    reason=outcome.reason,
                    urgency=outcome.urgency,
                    suggested_discount=outcome.discount,
                    predicted_booking_date=predicted_date,
                )
            )

        return sort_by_urgency(recommendations)

    async def find_customers_for_offers(self, now: Optional[datetime] = None) -> list[str]:
        """Customers with at least one high or medium urgency recommendation.

        A customer whose history cannot be analyzed is logged and left out.
        Only a failure to list customers propagates.
        """
        now = now or datetime.now(timezone.utc)
        customers = await self.storage.get_all_customers()
        selected = []
        failed = 0

        for customer in customers:
            try:
                recommendations = await self.generate_offer_recommendations(customer.id, now=now)
            except Exception as e:
                failed += 1
                logger.error(
                    "offer_candidate_scan_failed",
                    customer_id=customer.id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                continue
            if any(r.urgency in (Urgency.HIGH, Urgency.MEDIUM) for r in recommendations):
                selected.append(customer.id)

        logger.info(
            "customers_for_offers_found",
            scanned=len(customers),
            selected=len(selected),
            failed=failed,
        )
        return selected
