"""Billing API endpoints: plans, Wave checkout, manual verification, and status."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from exampremium.api.deps import get_current_active_user, get_db, get_user_premium_status
from exampremium.billing.exceptions import ConfigurationError
from exampremium.billing.plans import build_client_reference, compute_end_at, get_plan, list_plans
from exampremium.billing.premium import PremiumStatus, get_premium_status
from exampremium.billing.reconciler import reconcile_polled_session
from exampremium.billing.wave_client import create_checkout_session, is_wave_configured
from exampremium.database import utcnow
from exampremium.models.subscription import PROVIDER_WAVE
from exampremium.models.user import User
from exampremium.schemas.billing import (
    CheckoutRequest,
    CheckoutResponse,
    PlanResponse,
    PlansListResponse,
    PremiumStatusResponse,
    ReconciliationResponse,
    SubscriptionResponse,
    VerifyRequest,
)
from exampremium.services.subscription_ledger import create_pending_subscription

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/billing", tags=["billing"])


@router.get("/plans", response_model=PlansListResponse)
async def plans() -> PlansListResponse:
    """List available plans (public, no auth required)."""
    return PlansListResponse(
        plans=[
            PlanResponse(
                name=p.plan,
                display_name=p.display_name,
                amount=p.amount,
                currency=p.currency,
                duration_days=p.duration_days,
            )
            for p in list_plans()
        ]
    )


@router.get("/subscription", response_model=PremiumStatusResponse)
async def get_subscription(
    premium: PremiumStatus = Depends(get_user_premium_status),
) -> PremiumStatusResponse:
    """Current premium status and the subscription granting it."""
    return PremiumStatusResponse(
        is_premium=premium.is_premium,
        subscription=(
            SubscriptionResponse.model_validate(premium.subscription)
            if premium.subscription is not None
            else None
        ),
    )


@router.post("/checkout", response_model=CheckoutResponse)
async def create_checkout(
    body: CheckoutRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> CheckoutResponse:
    """Create a Wave checkout session and its PENDING ledger row."""
    premium = await get_premium_status(db, current_user)
    # Keep a corrected premium flag even when the request fails below.
    await db.commit()
    if premium.is_premium:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You already have an active premium subscription.",
        )

    if not is_wave_configured():
        raise ConfigurationError("Wave payments are not configured")

    plan = get_plan(body.plan)
    client_reference = build_client_reference(current_user.id, body.plan)

    # ProviderError propagates as 502; nothing has been written yet.
    session = await create_checkout_session(body.plan, client_reference)

    now = utcnow()
    await create_pending_subscription(
        db,
        user_id=current_user.id,
        plan=body.plan,
        tx_ref=session.id,
        provider=PROVIDER_WAVE,
        start_at=now,
        end_at=compute_end_at(body.plan, now),
    )
    await db.commit()

    return CheckoutResponse(
        checkout_url=session.wave_launch_url,
        session_id=session.id,
        plan=body.plan,
        amount=plan.amount,
        currency=plan.currency,
    )


@router.post(
    "/verify",
    response_model=ReconciliationResponse,
    response_model_exclude_none=True,
)
async def verify_checkout(
    body: VerifyRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> ReconciliationResponse:
    """Re-check a checkout session with Wave (for webhooks that never arrived)."""
    result = await reconcile_polled_session(db, current_user, body.session_id)
    await db.commit()
    return ReconciliationResponse.model_validate(result)
