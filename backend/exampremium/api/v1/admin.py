"""Admin endpoints: manual premium grant and revoke."""

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from exampremium.api.deps import get_admin_user, get_db
from exampremium.billing.plans import compute_end_at
from exampremium.billing.premium import get_premium_status
from exampremium.database import utcnow
from exampremium.models.user import User
from exampremium.schemas.billing import (
    AdminPremiumRequest,
    PremiumStatusResponse,
    SubscriptionResponse,
)
from exampremium.services.subscription_ledger import grant_premium, revoke_premium

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/admin", tags=["admin"])


@router.patch("/users/{user_id}/premium", response_model=PremiumStatusResponse)
async def set_user_premium(
    user_id: uuid.UUID,
    body: AdminPremiumRequest,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(get_admin_user),
) -> PremiumStatusResponse:
    """Grant premium (a new ACTIVE ledger row) or revoke it (cancel ACTIVE rows)."""
    user = await db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    if body.is_premium:
        end_at = None if body.unbounded else compute_end_at(body.plan, utcnow())
        await grant_premium(db, user.id, body.plan, end_at)
        logger.info("Admin %s granted premium (%s) to user %s", admin.id, body.plan, user.id)
    else:
        await revoke_premium(db, user.id)
        logger.info("Admin %s revoked premium of user %s", admin.id, user.id)

    premium = await get_premium_status(db, user)
    await db.commit()

    return PremiumStatusResponse(
        is_premium=premium.is_premium,
        subscription=(
            SubscriptionResponse.model_validate(premium.subscription)
            if premium.subscription is not None
            else None
        ),
    )
