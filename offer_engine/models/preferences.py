"""Customer notification preference models."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class ContactTime(str, Enum):
    """Preferred time of day for outreach."""

    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"


class CustomerPreferences(BaseModel):
    """Per-customer WhatsApp settings, created with defaults on first access."""

    model_config = ConfigDict(frozen=True)

    customer_id: str
    whatsapp_number: Optional[str] = None
    whatsapp_opt_in: bool = True
    receive_offers: bool = True
    receive_reminders: bool = True
    preferred_contact_time: ContactTime = ContactTime.MORNING

    def offer_ineligibility_reason(self) -> Optional[str]:
        """Return why offers must not be sent, or None if the customer is eligible."""
        if not self.whatsapp_opt_in or not self.receive_offers:
            return "Customer opted out of offers"
        if not self.whatsapp_number:
            return "Customer has no WhatsApp number"
        return None


class CustomerPreferencesUpdate(BaseModel):
    """Request model for updating customer preferences. Unset fields are left alone."""

    whatsapp_number: Optional[str] = None
    whatsapp_opt_in: Optional[bool] = None
    receive_offers: Optional[bool] = None
    receive_reminders: Optional[bool] = None
    preferred_contact_time: Optional[ContactTime] = None
