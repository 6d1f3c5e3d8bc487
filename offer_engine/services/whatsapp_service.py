"""WhatsApp dispatch with UltraMsg as primary provider and Twilio as fallback."""

from typing import Optional

import httpx
import structlog
from pydantic import BaseModel

from offer_engine.config import Settings, get_settings
from offer_engine.models.whatsapp import SendResult, WhatsAppMessage, WhatsAppProvider

logger = structlog.get_logger(__name__)

NO_PROVIDER_ERROR = "No WhatsApp provider configured"


class WhatsAppConfig(BaseModel):
    """Provider credentials and transport settings for the dispatcher."""

    ultramsg_token: str = ""
    ultramsg_instance_id: str = ""
    ultramsg_base_url: str = "https://api.ultramsg.com"
    twilio_account_sid: str = ""
    twilio_auth_token: str = ""
    twilio_whatsapp_number: str = ""
    twilio_base_url: str = "https://api.twilio.com/2010-04-01"
    timeout_seconds: float = 10.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "WhatsAppConfig":
        return cls(
            ultramsg_token=settings.ultramsg_token,
            ultramsg_instance_id=settings.ultramsg_instance_id,
            ultramsg_base_url=settings.ultramsg_base_url,
            twilio_account_sid=settings.twilio_account_sid,
            twilio_auth_token=settings.twilio_auth_token,
            twilio_whatsapp_number=settings.twilio_whatsapp_number,
            twilio_base_url=settings.twilio_base_url,
            timeout_seconds=settings.whatsapp_timeout_seconds,
        )


def _whatsapp_address(number: str) -> str:
    """Format a phone number as a Twilio WhatsApp address (whatsapp:+E.164)."""
    if number.startswith("whatsapp:"):
        return number
    if not number.startswith("+"):
        number = f"+{number}"
    return f"whatsapp:{number}"


def _error_detail(response: httpx.Response, fallback: str) -> str:
    """Best-effort error text from a provider response body."""
    try:
        data = response.json()
    except ValueError:
        return f"{fallback} (HTTP {response.status_code})"
    if isinstance(data, dict):
        detail = data.get("error") or data.get("message")
        code = data.get("code")
        if detail:
            return f"[{code}] {detail}" if code else str(detail)
    return f"{fallback} (HTTP {response.status_code})"


class UltraMsgProvider:
    """UltraMsg chat API."""

    name = WhatsAppProvider.ULTRAMSG

    def __init__(self, config: WhatsAppConfig):
        self.config = config

    @property
    def is_configured(self) -> bool:
        return bool(self.config.ultramsg_token and self.config.ultramsg_instance_id)

    async def send(self, client: httpx.AsyncClient, message: WhatsAppMessage) -> SendResult:
        url = f"{self.config.ultramsg_base_url}/{self.config.ultramsg_instance_id}/messages/chat"
        response = await client.post(
            url,
            data={
                "token": self.config.ultramsg_token,
                "to": message.to,
                "body": message.body,
            },
        )

        if response.is_success:
            data = response.json()
            # UltraMsg reports "sent" as the string "true"
            if isinstance(data, dict) and data.get("sent") in (True, "true"):
                message_id = data.get("id")
                return SendResult(
                    success=True,
                    provider=self.name,
                    message_id=str(message_id) if message_id is not None else None,
                )

        return SendResult(
            success=False,
            provider=self.name,
            error=_error_detail(response, "Message not sent"),
        )


class TwilioProvider:
    """Twilio Messages REST API over the WhatsApp channel."""

    name = WhatsAppProvider.TWILIO

    def __init__(self, config: WhatsAppConfig):
        self.config = config

    @property
    def is_configured(self) -> bool:
        return bool(
            self.config.twilio_account_sid
            and self.config.twilio_auth_token
            and self.config.twilio_whatsapp_number
        )

    async def send(self, client: httpx.AsyncClient, message: WhatsAppMessage) -> SendResult:
        sid = self.config.twilio_account_sid
        response = await client.post(
            f"{self.config.twilio_base_url}/Accounts/{sid}/Messages.json",
            auth=(sid, self.config.twilio_auth_token),
            data={
                "From": _whatsapp_address(self.config.twilio_whatsapp_number),
                "To": _whatsapp_address(message.to),
                "Body": message.body,
            },
        )

        if response.status_code in (200, 201):
            return SendResult(
                success=True,
                provider=self.name,
                message_id=response.json().get("sid"),
            )

        return SendResult(
            success=False,
            provider=self.name,
            error=_error_detail(response, "Unknown error"),
        )


class WhatsAppService:
    """Sends a message through the first provider that succeeds.

    Providers are tried in fixed order. There is no retry within a provider;
    a failure, exception or timeout moves on to the next one.
    """

    def __init__(
        self,
        config: Optional[WhatsAppConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config or WhatsAppConfig.from_settings(get_settings())
        self.providers = [UltraMsgProvider(self.config), TwilioProvider(self.config)]
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.config.timeout_seconds)
            )
        return self._client

    async def close(self):
        """Close HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    def is_configured(self) -> bool:
        return any(p.is_configured for p in self.providers)

    def get_providers(self) -> list[WhatsAppProvider]:
        """Names of the configured providers, in fallback order."""
        return [p.name for p in self.providers if p.is_configured]

    async def send_message(self, message: WhatsAppMessage) -> SendResult:
        """Deliver ``message`` via the primary provider, falling back on failure."""
        configured = [p for p in self.providers if p.is_configured]
        if not configured:
            logger.error("whatsapp_no_provider_configured")
            return SendResult(
                success=False,
                provider=self.providers[0].name,
                error=NO_PROVIDER_ERROR,
            )

        client = await self._get_client()
        result: Optional[SendResult] = None

        for provider in configured:
            try:
                result = await provider.send(client, message)
            except httpx.TimeoutException as e:
                result = SendResult(
                    success=False,
                    provider=provider.name,
                    error=f"Request timed out: {e}" if str(e) else "Request timed out",
                )
            except Exception as e:
                result = SendResult(success=False, provider=provider.name, error=str(e))

            if result.success:
                logger.info(
                    "whatsapp_message_sent",
                    provider=provider.name.value,
                    message_id=result.message_id,
                    to=message.to,
                )
                return result

            logger.warning(
                "whatsapp_provider_failed",
                provider=provider.name.value,
                error=result.error,
                to=message.to,
            )

        return result
