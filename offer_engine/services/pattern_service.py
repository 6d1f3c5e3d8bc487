"""Pattern service for deriving a customer's booking behaviour profile."""

from collections import Counter
from datetime import timedelta
from typing import Optional

import structlog

from offer_engine.config import get_settings
from offer_engine.models.booking import Booking, BookingStatus
from offer_engine.models.pattern import BookingPattern, FavoriteBeautician, FrequentService
from offer_engine.services.pricing import round_half_up
from offer_engine.storage import PostgresStorage, Storage

logger = structlog.get_logger(__name__)

SECONDS_PER_DAY = 86400


def _favorite_beautician(bookings: list[Booking]) -> Optional[FavoriteBeautician]:
    """Most-booked beautician. Ties go to the one seen first."""
    counts = Counter(b.beautician_id for b in bookings)
    favorite = None
    max_count = 0
    for beautician_id, count in counts.items():
        if count > max_count:
            max_count = count
            favorite = FavoriteBeautician(id=beautician_id, booking_count=count)
    return favorite


def _average_interval_days(bookings: list[Booking]) -> int:
    """Mean gap in whole days between consecutive bookings, 0 for a single booking."""
    dates = sorted(b.scheduled_date for b in bookings)
    if len(dates) < 2:
        return 0
    gaps = [
        (later - earlier).total_seconds() / SECONDS_PER_DAY
        for earlier, later in zip(dates, dates[1:])
    ]
    return round_half_up(sum(gaps) / len(gaps))


class PatternService:
    """Derives favourite beautician, service cadence and spend from booking history."""

    def __init__(
        self,
        storage: Optional[Storage] = None,
        include_cancelled: Optional[bool] = None,
    ):
        self.storage = storage or PostgresStorage()
        if include_cancelled is None:
            include_cancelled = get_settings().include_cancelled_in_pattern
        self.include_cancelled = include_cancelled

    async def analyze_customer_pattern(self, customer_id: str) -> BookingPattern:
        """Build the behaviour profile for one customer.

        A customer without bookings gets an empty profile. Store errors
        propagate; no partial profile is returned.
        """
        bookings = await self.storage.get_bookings_by_customer_id(customer_id)

        if not bookings:
            return BookingPattern(customer_id=customer_id)

        frequent_services = await self._frequent_services(bookings)

        total_spend = sum(b.total_amount for b in bookings)
        average_spend = round_half_up(total_spend / len(bookings))

        last_booking_date = max(b.scheduled_date for b in bookings)

        # Predict from the most frequently booked service's cadence
        next_predicted_date = None
        if frequent_services and frequent_services[0].average_interval > 0:
            next_predicted_date = last_booking_date + timedelta(
                days=frequent_services[0].average_interval
            )

        pattern = BookingPattern(
            customer_id=customer_id,
            favorite_beautician=_favorite_beautician(bookings),
            frequent_services=frequent_services,
            last_booking_date=last_booking_date,
            next_predicted_date=next_predicted_date,
            total_bookings=len(bookings),
            average_spend=average_spend,
        )

        logger.debug(
            "customer_pattern_analyzed",
            customer_id=customer_id,
            total_bookings=pattern.total_bookings,
            service_count=len(frequent_services),
            next_predicted_date=next_predicted_date.isoformat() if next_predicted_date else None,
        )
        return pattern

    async def _frequent_services(self, bookings: list[Booking]) -> list[FrequentService]:
        """Per-service counts and intervals, most booked first."""
        interval_bookings = bookings
        if not self.include_cancelled:
            interval_bookings = [b for b in bookings if b.status != BookingStatus.CANCELLED]

        grouped: dict[str, list[Booking]] = {}
        names: dict[str, str] = {}
        missing: set[str] = set()

        for booking in interval_bookings:
            service_id = booking.service_id
            if service_id in missing:
                continue
            if service_id not in names:
                service = await self.storage.get_service(service_id)
                if service is None:
                    missing.add(service_id)
                    logger.warning(
                        "pattern_service_not_found",
                        customer_id=booking.customer_id,
                        service_id=service_id,
                    )
                    continue
                names[service_id] = service.name
            grouped.setdefault(service_id, []).append(booking)

        stats = [
            FrequentService(
                id=service_id,
                name=names[service_id],
                count=len(group),
                average_interval=_average_interval_days(group),
            )
            for service_id, group in grouped.items()
        ]
        # sorted() is stable, so equal counts keep first-seen order
        return sorted(stats, key=lambda s: s.count, reverse=True)
