"""Marketplace records read by the offer engine (bookings, services, users, beauticians)."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class BookingStatus(str, Enum):
    """Lifecycle states of a marketplace booking."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Booking(BaseModel):
    """A customer's booking of one service with one beautician."""

    model_config = ConfigDict(frozen=True)

    id: str
    customer_id: str
    beautician_id: str
    service_id: str
    scheduled_date: datetime
    status: BookingStatus = BookingStatus.PENDING
    total_amount: int = Field(..., ge=0)

    @field_validator("scheduled_date")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        """Marketplace timestamps are stored without a zone and are UTC."""
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class Service(BaseModel):
    """A priced service offered by a beautician."""

    model_config = ConfigDict(frozen=True)

    id: str
    beautician_id: Optional[str] = None
    name: str
    price: int = Field(..., ge=0)
    duration: int = Field(0, ge=0)  # minutes


class User(BaseModel):
    """A marketplace account (customer or beautician)."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    role: Optional[str] = None


class Beautician(BaseModel):
    """Provider profile linked to its owning user account."""

    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str
    commission_percentage: Optional[int] = None  # overrides the platform default when set
