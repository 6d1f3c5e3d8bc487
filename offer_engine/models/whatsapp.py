"""WhatsApp dispatch models: outbound messages, send results, and the audit log."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class WhatsAppProvider(str, Enum):
    """Configured messaging providers, in fallback order."""

    ULTRAMSG = "ultramessage"
    TWILIO = "twilio"


class DispatchStatus(str, Enum):
    """Result recorded for one send attempt."""

    SENT = "sent"
    FAILED = "failed"


class WhatsAppMessage(BaseModel):
    """A rendered message addressed to one phone number."""

    to: str = Field(..., min_length=1)
    body: str


class SendResult(BaseModel):
    """Outcome of a dispatcher send."""

    success: bool
    provider: WhatsAppProvider
    message_id: Optional[str] = None
    error: Optional[str] = None


class WhatsappMessageCreate(BaseModel):
    """Validated input for appending a dispatch log entry."""

    offer_id: Optional[str] = None
    customer_id: str
    phone_number: str
    provider: WhatsAppProvider
    message_type: str = "offer"
    message_body: str
    status: DispatchStatus
    provider_message_id: Optional[str] = None
    error_message: Optional[str] = None

    @classmethod
    def from_send_result(
        cls,
        result: SendResult,
        *,
        customer_id: str,
        phone_number: str,
        message_body: str,
        offer_id: Optional[str] = None,
        message_type: str = "offer",
    ) -> "WhatsappMessageCreate":
        """Build the audit entry for one dispatcher result."""
        return cls(
            offer_id=offer_id,
            customer_id=customer_id,
            phone_number=phone_number,
            provider=result.provider,
            message_type=message_type,
            message_body=message_body,
            status=DispatchStatus.SENT if result.success else DispatchStatus.FAILED,
            provider_message_id=result.message_id,
            error_message=result.error,
        )


class WhatsappMessageLog(BaseModel):
    """A persisted dispatch attempt. Never updated after insert."""

    model_config = ConfigDict(frozen=True)

    id: str
    offer_id: Optional[str] = None
    customer_id: str
    phone_number: str
    provider: WhatsAppProvider
    message_type: str
    message_body: str
    status: DispatchStatus
    provider_message_id: Optional[str] = None
    error_message: Optional[str] = None
    sent_at: Optional[datetime] = None
    created_at: datetime
