"""Pydantic v2 models for the Wave Checkout API and its webhooks."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict

CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"
PAYMENT_SUCCEEDED = "succeeded"


class WaveCheckoutSession(BaseModel):
    """A Wave checkout session as returned by the API and embedded in webhooks."""

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    id: str
    checkout_status: str  # open, complete, expired
    payment_status: str  # pending, processing, succeeded, failed, cancelled
    amount: str
    currency: str
    client_reference: str | None = None
    wave_launch_url: str | None = None
    business_name: str | None = None
    transaction_id: str | None = None
    last_payment_error: Any = None
    when_created: datetime | None = None
    when_completed: datetime | None = None
    when_expires: datetime | None = None

    @property
    def succeeded(self) -> bool:
        return self.payment_status == PAYMENT_SUCCEEDED


class WaveWebhookEvent(BaseModel):
    """Envelope of a Wave webhook delivery."""

    model_config = ConfigDict(extra="allow")

    id: str
    type: str
    data: WaveCheckoutSession
