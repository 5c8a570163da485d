"""Pydantic v2 request/response schemas for billing and premium endpoints."""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from exampremium.billing.plans import Plan

# --- Request schemas ---


class CheckoutRequest(BaseModel):
    """Request to start a Wave checkout for a premium plan."""

    plan: Plan


class VerifyRequest(BaseModel):
    """Request to re-check a Wave checkout session the webhook has not settled."""

    session_id: str = Field(..., min_length=1)


class AdminPremiumRequest(BaseModel):
    """Admin grant or revoke of premium access."""

    is_premium: bool
    plan: Plan = Plan.ANNUAL
    unbounded: bool = True  # grant without end date; otherwise the plan duration applies


# --- Response schemas ---


class PlanResponse(BaseModel):
    """Plan details for display."""

    name: Plan
    display_name: str
    amount: str
    currency: str
    duration_days: int


class PlansListResponse(BaseModel):
    """All available plans."""

    plans: list[PlanResponse]


class CheckoutResponse(BaseModel):
    """Wave launch URL returned to the frontend."""

    checkout_url: str
    session_id: str
    plan: Plan
    amount: str
    currency: str


class SubscriptionResponse(BaseModel):
    """One ledger row, for display."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    plan: str
    status: str
    provider: str
    start_at: datetime
    end_at: datetime | None


class PremiumStatusResponse(BaseModel):
    """Ledger-derived premium status of a user."""

    is_premium: bool
    subscription: SubscriptionResponse | None = None


class PremiumAccessResponse(BaseModel):
    """Access decision for a resource path."""

    path: str
    requires_premium: bool
    is_premium: bool


class ReconciliationResponse(BaseModel):
    """Answer to a webhook delivery or a manual verification."""

    model_config = ConfigDict(from_attributes=True)

    received: bool = True
    activated: bool
    idempotent: bool | None = None
    ignored: bool | None = None
    user_id: uuid.UUID | None = None
    plan: Plan | None = None
    end_at: datetime | None = None
