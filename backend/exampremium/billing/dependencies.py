"""Premium gating dependencies: enforce premium access on resource paths."""

import logging

from fastapi import Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from exampremium.auth.dependencies import get_current_active_user
from exampremium.billing.premium import PremiumStatus, get_premium_status, is_premium_route
from exampremium.database import get_db
from exampremium.models.user import User

logger = logging.getLogger(__name__)


async def get_user_premium_status(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_active_user),
) -> PremiumStatus:
    """Ledger-derived premium status of the current user.

    Commits at once so a corrected ``is_premium`` flag survives a 402 raised
    further down the request.
    """
    premium = await get_premium_status(db, user)
    await db.commit()
    return premium


async def require_premium_for_path(
    path: str = Query(..., min_length=1, description="Resource path, e.g. /quiz/42"),
    premium: PremiumStatus = Depends(get_user_premium_status),
) -> bool:
    """Raise 402 if ``path`` is premium-only and the user has no active subscription.

    Returns whether the path required premium.
    """
    requires_premium = is_premium_route(path)
    if requires_premium and not premium.is_premium:
        logger.info("Premium required for %s", path)
        raise HTTPException(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail={
                "message": "This content requires a premium subscription.",
                "path": path,
                "upgrade_url": "/api/v1/billing/checkout",
            },
        )
    return requires_premium
