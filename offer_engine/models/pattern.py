"""Booking behaviour profile derived from a customer's history."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class FavoriteBeautician(BaseModel):
    """The beautician a customer booked most often."""

    model_config = ConfigDict(frozen=True)

    id: str
    booking_count: int


class FrequentService(BaseModel):
    """Recurrence statistics for one service.

    average_interval is the mean gap between consecutive bookings in whole
    days, or 0 when the service was booked only once.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    count: int
    average_interval: int = 0


class BookingPattern(BaseModel):
    """Per-customer booking profile. Recomputed on every call, never stored."""

    model_config = ConfigDict(frozen=True)

    customer_id: str
    favorite_beautician: Optional[FavoriteBeautician] = None
    frequent_services: list[FrequentService] = Field(default_factory=list)
    last_booking_date: Optional[datetime] = None
    next_predicted_date: Optional[datetime] = None
    total_bookings: int = 0
    average_spend: int = 0
