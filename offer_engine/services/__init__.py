"""Services package exports."""

from offer_engine.services.logging_service import configure_logging
from offer_engine.services.offer_service import OfferService
from offer_engine.services.pattern_service import PatternService
from offer_engine.services.recommendation_service import RecommendationService
from offer_engine.services.whatsapp_service import WhatsAppConfig, WhatsAppService

__all__ = [
    "OfferService",
    "PatternService",
    "RecommendationService",
    "WhatsAppConfig",
    "WhatsAppService",
    "configure_logging",
]
