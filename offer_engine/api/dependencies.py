"""FastAPI dependencies for the offer endpoints."""

import hmac
from functools import lru_cache
from typing import Optional

import structlog
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from offer_engine.config import get_settings
from offer_engine.services.offer_service import OfferService

logger = structlog.get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


async def verify_cron_secret(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> None:
    """Require ``Authorization: Bearer <cron_secret>`` when a secret is configured.

    Without a configured secret the endpoints stay open and a warning is
    logged on every call.

    Raises:
        HTTPException 401: If the secret is set and the token does not match
    """
    secret = get_settings().cron_secret
    if not secret:
        logger.warning("cron_secret_not_set", note="Offer endpoints are unprotected")
        return

    token = credentials.credentials if credentials else ""
    if not hmac.compare_digest(token.encode(), secret.encode()):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )


@lru_cache
def get_offer_service() -> OfferService:
    """Shared offer service wired to the Postgres store and configured providers."""
    return OfferService()
