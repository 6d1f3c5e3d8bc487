"""Data access for the offer engine.

``Storage`` is the contract the services depend on. ``PostgresStorage`` is
the asyncpg implementation; rows are converted to frozen models here so the
services never see raw records.
"""

from datetime import datetime, timezone
from typing import Optional, Protocol, Sequence
from uuid import uuid4

import structlog

from offer_engine.database import get_pool
from offer_engine.models.booking import Beautician, Booking, Service, User
from offer_engine.models.offer import Offer, OfferCreate, OfferStatus
from offer_engine.models.preferences import CustomerPreferences, CustomerPreferencesUpdate
from offer_engine.models.whatsapp import DispatchStatus, WhatsappMessageCreate, WhatsappMessageLog

logger = structlog.get_logger(__name__)

_BOOKING_COLUMNS = """
    id, customer_id, beautician_id, service_id, scheduled_date, status, total_amount
"""

_USER_COLUMNS = "id, email, first_name, last_name, phone, role"

_PREFERENCE_COLUMNS = """
    customer_id, whatsapp_number, whatsapp_opt_in, receive_offers,
    receive_reminders, preferred_contact_time
"""

_OFFER_COLUMNS = """
    id, customer_id, beautician_id, service_id, offer_type, discount_percent,
    original_price, discounted_price, message, status, created_at, expires_at,
    sent_at, clicked_at, booked_at
"""

_MESSAGE_COLUMNS = """
    id, offer_id, customer_id, phone_number, provider, message_type, message_body,
    status, provider_message_id, error_message, sent_at, created_at
"""


class Storage(Protocol):
    """Store operations consumed by the pattern, recommendation and offer services."""

    async def get_bookings_by_customer_id(self, customer_id: str) -> list[Booking]: ...

    async def get_all_bookings(self) -> list[Booking]: ...

    async def get_all_customers(self) -> list[User]: ...

    async def get_service(self, service_id: str) -> Optional[Service]: ...

    async def get_user(self, user_id: str) -> Optional[User]: ...

    async def get_beautician(self, beautician_id: str) -> Optional[Beautician]: ...

    async def get_customer_preferences(self, customer_id: str) -> Optional[CustomerPreferences]: ...

    async def create_customer_preferences(self, prefs: CustomerPreferences) -> CustomerPreferences: ...

    async def update_customer_preferences(
        self, customer_id: str, update: CustomerPreferencesUpdate
    ) -> Optional[CustomerPreferences]: ...

    async def create_offer(self, data: OfferCreate) -> Offer: ...

    async def get_offer(self, offer_id: str) -> Optional[Offer]: ...

    async def get_offers_by_customer_id(self, customer_id: str) -> list[Offer]: ...

    async def update_offer_status(
        self,
        offer_id: str,
        status: OfferStatus,
        expected_statuses: Sequence[OfferStatus],
    ) -> Optional[Offer]: ...

    async def get_expired_offers(self, now: datetime) -> list[Offer]: ...

    async def create_whatsapp_message(self, data: WhatsappMessageCreate) -> WhatsappMessageLog: ...

    async def get_whatsapp_messages_by_customer_id(self, customer_id: str) -> list[WhatsappMessageLog]: ...


class PostgresStorage:
    """asyncpg-backed implementation of ``Storage``."""

    # Bookings, catalog and identity (marketplace-owned, read only)

    async def get_bookings_by_customer_id(self, customer_id: str) -> list[Booking]:
        pool = await get_pool()
        async with pool.acquire() as conn:
            rows = await conn.fetch(
                f"""
                SELECT {_BOOKING_COLUMNS}
                FROM bookings
                WHERE customer_id = $1
                ORDER BY scheduled_date ASC
                """,
                customer_id,
            )
        return [Booking(**dict(row)) for row in rows]

    async def get_all_bookings(self) -> list[Booking]:
        pool = await get_pool()
        async with pool.acquire() as conn:
            rows = await conn.fetch(
                f"SELECT {_BOOKING_COLUMNS} FROM bookings ORDER BY scheduled_date ASC"
            )
        return [Booking(**dict(row)) for row in rows]

    async def get_all_customers(self) -> list[User]:
        pool = await get_pool()
        async with pool.acquire() as conn:
            rows = await conn.fetch(
                f"SELECT {_USER_COLUMNS} FROM users WHERE role = 'customer' ORDER BY created_at ASC"
            )
        return [User(**dict(row)) for row in rows]

    async def get_service(self, service_id: str) -> Optional[Service]:
        pool = await get_pool()
        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                "SELECT id, beautician_id, name, price, duration FROM services WHERE id = $1",
                service_id,
            )
        return Service(**dict(row)) if row else None

    async def get_user(self, user_id: str) -> Optional[User]:
        pool = await get_pool()
        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {_USER_COLUMNS} FROM users WHERE id = $1",
                user_id,
            )
        return User(**dict(row)) if row else None

    async def get_beautician(self, beautician_id: str) -> Optional[Beautician]:
        pool = await get_pool()
        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                "SELECT id, user_id, commission_percentage FROM beauticians WHERE id = $1",
                beautician_id,
            )
        return Beautician(**dict(row)) if row else None

    # Customer preferences

    async def get_customer_preferences(self, customer_id: str) -> Optional[CustomerPreferences]:
        pool = await get_pool()
        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {_PREFERENCE_COLUMNS} FROM customer_preferences WHERE customer_id = $1",
                customer_id,
            )
        return CustomerPreferences(**dict(row)) if row else None

    async def create_customer_preferences(self, prefs: CustomerPreferences) -> CustomerPreferences:
        """Insert preferences; a concurrent insert for the same customer wins and is returned."""
        now = datetime.now(timezone.utc)
        pool = await get_pool()
        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                INSERT INTO customer_preferences
                    (id, customer_id, whatsapp_number, whatsapp_opt_in, receive_offers,
                     receive_reminders, preferred_contact_time, created_at, updated_at)
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                ON CONFLICT (customer_id) DO UPDATE SET updated_at = customer_preferences.updated_at
                RETURNING {_PREFERENCE_COLUMNS}
                """,
                str(uuid4()),
                prefs.customer_id,
                prefs.whatsapp_number,
                prefs.whatsapp_opt_in,
                prefs.receive_offers,
                prefs.receive_reminders,
                prefs.preferred_contact_time.value,
                now,
                now,
            )

        logger.info("customer_preferences_created", customer_id=prefs.customer_id)
        return CustomerPreferences(**dict(row))

    async def update_customer_preferences(
        self, customer_id: str, update: CustomerPreferencesUpdate
    ) -> Optional[CustomerPreferences]:
        fields = update.model_dump(exclude_none=True, mode="json")

        set_clauses = []
        params: list = [customer_id]
        for key, value in fields.items():
            params.append(value)
            set_clauses.append(f"{key} = ${len(params)}")

        if not set_clauses:
            return await self.get_customer_preferences(customer_id)

        params.append(datetime.now(timezone.utc))
        set_clauses.append(f"updated_at = ${len(params)}")

        pool = await get_pool()
        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                UPDATE customer_preferences
                SET {", ".join(set_clauses)}
                WHERE customer_id = $1
                RETURNING {_PREFERENCE_COLUMNS}
                """,
                *params,
            )

        if row is None:
            return None

        logger.info("customer_preferences_updated", customer_id=customer_id, fields=list(fields))
        return CustomerPreferences(**dict(row))

    # Offers

    async def create_offer(self, data: OfferCreate) -> Offer:
        pool = await get_pool()
        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                INSERT INTO offers
                    (id, customer_id, beautician_id, service_id, offer_type, discount_percent,
                     original_price, discounted_price, message, status, created_at, expires_at)
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, 'pending', $10, $11)
                RETURNING {_OFFER_COLUMNS}
                """,
                str(uuid4()),
                data.customer_id,
                data.beautician_id,
                data.service_id,
                data.offer_type.value,
                data.discount_percent,
                data.original_price,
                data.discounted_price,
                data.message,
                datetime.now(timezone.utc),
                data.expires_at,
            )
        return Offer(**dict(row))

    async def get_offer(self, offer_id: str) -> Optional[Offer]:
        pool = await get_pool()
        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {_OFFER_COLUMNS} FROM offers WHERE id = $1",
                offer_id,
            )
        return Offer(**dict(row)) if row else None

    async def get_offers_by_customer_id(self, customer_id: str) -> list[Offer]:
        """Offers for a customer, newest first."""
        pool = await get_pool()
        async with pool.acquire() as conn:
            rows = await conn.fetch(
                f"""
                SELECT {_OFFER_COLUMNS}
                FROM offers
                WHERE customer_id = $1
                ORDER BY created_at DESC
                """,
                customer_id,
            )
        return [Offer(**dict(row)) for row in rows]

    async def update_offer_status(
        self,
        offer_id: str,
        status: OfferStatus,
        expected_statuses: Sequence[OfferStatus],
    ) -> Optional[Offer]:
        """Conditionally move an offer to ``status``.

        The row is only updated while its current status is one of
        ``expected_statuses``. Returns None when the offer does not exist or
        another writer moved it first.
        """
        now = datetime.now(timezone.utc)
        pool = await get_pool()
        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                UPDATE offers
                SET status = $2,
                    sent_at = CASE WHEN $2 = 'sent' THEN $3 ELSE sent_at END,
                    clicked_at = CASE WHEN $2 = 'clicked' THEN $3 ELSE clicked_at END,
                    booked_at = CASE WHEN $2 = 'booked' THEN $3 ELSE booked_at END
                WHERE id = $1 AND status = ANY($4::text[])
                RETURNING {_OFFER_COLUMNS}
                """,
                offer_id,
                status.value,
                now,
                [s.value for s in expected_statuses],
            )

        if row is None:
            logger.warning(
                "offer_status_update_skipped",
                offer_id=offer_id,
                status=status.value,
                expected=[s.value for s in expected_statuses],
            )
            return None

        logger.info("offer_status_updated", offer_id=offer_id, status=status.value)
        return Offer(**dict(row))

    async def get_expired_offers(self, now: datetime) -> list[Offer]:
        """Open (pending or sent) offers whose expiry has passed."""
        pool = await get_pool()
        async with pool.acquire() as conn:
            rows = await conn.fetch(
                f"""
                SELECT {_OFFER_COLUMNS}
                FROM offers
                WHERE status IN ('pending', 'sent') AND expires_at <= $1
                ORDER BY expires_at ASC
                """,
                now,
            )
        return [Offer(**dict(row)) for row in rows]

    # Dispatch log (append only)

    async def create_whatsapp_message(self, data: WhatsappMessageCreate) -> WhatsappMessageLog:
        now = datetime.now(timezone.utc)
        sent_at = now if data.status == DispatchStatus.SENT else None

        pool = await get_pool()
        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                INSERT INTO whatsapp_messages
                    (id, offer_id, customer_id, phone_number, provider, message_type,
                     message_body, status, provider_message_id, error_message, sent_at, created_at)
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12)
                RETURNING {_MESSAGE_COLUMNS}
                """,
                str(uuid4()),
                data.offer_id,
                data.customer_id,
                data.phone_number,
                data.provider.value,
                data.message_type,
                data.message_body,
                data.status.value,
                data.provider_message_id,
                data.error_message,
                sent_at,
                now,
            )
        return WhatsappMessageLog(**dict(row))

    async def get_whatsapp_messages_by_customer_id(self, customer_id: str) -> list[WhatsappMessageLog]:
        pool = await get_pool()
        async with pool.acquire() as conn:
            rows = await conn.fetch(
                f"""
                SELECT {_MESSAGE_COLUMNS}
                FROM whatsapp_messages
                WHERE customer_id = $1
                ORDER BY created_at DESC
                """,
                customer_id,
            )
        return [WhatsappMessageLog(**dict(row)) for row in rows]
