"""Offer models: recommendations, persisted offers, and operation results."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Urgency(str, Enum):
    """Priority tier of a recommendation."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


URGENCY_ORDER = {Urgency.HIGH: 0, Urgency.MEDIUM: 1, Urgency.LOW: 2}


class OfferType(str, Enum):
    """Kind of offer sent to a customer."""

    INTERVAL_REMINDER = "interval_reminder"
    LOYALTY_DISCOUNT = "loyalty_discount"

    @classmethod
    def for_urgency(cls, urgency: Urgency) -> "OfferType":
        """High and medium urgency are cadence reminders; low is a loyalty nudge."""
        if urgency in (Urgency.HIGH, Urgency.MEDIUM):
            return cls.INTERVAL_REMINDER
        return cls.LOYALTY_DISCOUNT


class OfferStatus(str, Enum):
    """Offer lifecycle. Statuses only ever move forward."""

    PENDING = "pending"
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"
    CLICKED = "clicked"
    BOOKED = "booked"
    EXPIRED = "expired"


_STATUS_RANK = {
    OfferStatus.PENDING: 0,
    OfferStatus.SENT: 1,
    OfferStatus.DELIVERED: 2,
    OfferStatus.READ: 3,
    OfferStatus.CLICKED: 4,
    OfferStatus.BOOKED: 5,
}


class InvalidStatusTransition(ValueError):
    """Raised when an offer status change would move backwards."""

    def __init__(self, current: OfferStatus, requested: OfferStatus):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot move offer from '{current.value}' to '{requested.value}'")


def allowed_predecessors(status: OfferStatus) -> list[OfferStatus]:
    """Statuses an offer may be in immediately before entering ``status``."""
    if status == OfferStatus.PENDING:
        return []
    if status == OfferStatus.EXPIRED:
        return [s for s in _STATUS_RANK if s != OfferStatus.BOOKED]
    rank = _STATUS_RANK[status]
    return [s for s, r in _STATUS_RANK.items() if r < rank]


def can_transition(current: OfferStatus, requested: OfferStatus) -> bool:
    """Return True if moving from current to requested is a forward move."""
    return current in allowed_predecessors(requested)


class OfferRecommendation(BaseModel):
    """A scored, not yet persisted, discount suggestion for one service."""

    model_config = ConfigDict(frozen=True)

    customer_id: str
    beautician_id: str
    service_id: str
    service_name: str
    reason: str
    urgency: Urgency
    suggested_discount: int = Field(..., ge=0, le=100)
    predicted_booking_date: datetime


class OfferCreate(BaseModel):
    """Validated input for inserting an offer row."""

    customer_id: str
    beautician_id: str
    service_id: str
    offer_type: OfferType
    discount_percent: int = Field(..., ge=0, le=100)
    original_price: int = Field(..., ge=0)
    discounted_price: int = Field(..., ge=0)
    message: str = Field(..., min_length=1)
    expires_at: datetime

    @model_validator(mode="after")
    def discount_not_above_original(self) -> "OfferCreate":
        if self.discounted_price > self.original_price:
            raise ValueError("discounted_price cannot exceed original_price")
        return self


class Offer(BaseModel):
    """A persisted, time-bounded offer sent to one customer for one service."""

    model_config = ConfigDict(frozen=True)

    id: str
    customer_id: str
    beautician_id: str
    service_id: str
    offer_type: OfferType
    discount_percent: int
    original_price: int
    discounted_price: int
    message: str
    status: OfferStatus = OfferStatus.PENDING
    created_at: datetime
    expires_at: datetime
    sent_at: Optional[datetime] = None
    clicked_at: Optional[datetime] = None
    booked_at: Optional[datetime] = None


class OfferResult(BaseModel):
    """Outcome of a single-customer offer send."""

    success: bool
    message: str


class BatchResult(BaseModel):
    """Counters from an automated batch run."""

    sent: int = 0
    failed: int = 0
    skipped: int = 0


class OfferEventRequest(BaseModel):
    """Request model for recording an offer lifecycle event."""

    status: OfferStatus
