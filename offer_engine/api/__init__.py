"""API package exports."""

from offer_engine.api.offers import router

__all__ = ["router"]
