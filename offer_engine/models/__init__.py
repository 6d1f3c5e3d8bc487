"""Models package exports."""

from offer_engine.models.booking import Beautician, Booking, BookingStatus, Service, User
from offer_engine.models.offer import (
    BatchResult,
    InvalidStatusTransition,
    Offer,
    OfferCreate,
    OfferRecommendation,
    OfferResult,
    OfferStatus,
    OfferType,
    Urgency,
)
from offer_engine.models.pattern import BookingPattern, FavoriteBeautician, FrequentService
from offer_engine.models.preferences import ContactTime, CustomerPreferences
from offer_engine.models.whatsapp import SendResult, WhatsAppMessage, WhatsAppProvider

__all__ = [
    "BatchResult",
    "Beautician",
    "Booking",
    "BookingPattern",
    "BookingStatus",
    "ContactTime",
    "CustomerPreferences",
    "FavoriteBeautician",
    "FrequentService",
    "InvalidStatusTransition",
    "Offer",
    "OfferCreate",
    "OfferRecommendation",
    "OfferResult",
    "OfferStatus",
    "OfferType",
    "SendResult",
    "Service",
    "Urgency",
    "User",
    "WhatsAppMessage",
    "WhatsAppProvider",
]
