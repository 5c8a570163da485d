"""Premium access endpoint: tells the presentation layer whether a path may be served."""

from fastapi import APIRouter, Depends, Query

from exampremium.api.deps import get_user_premium_status, require_premium_for_path
from exampremium.billing.premium import PremiumStatus
from exampremium.schemas.billing import PremiumAccessResponse

router = APIRouter(prefix="/api/v1/premium", tags=["premium"])


@router.get("/access", response_model=PremiumAccessResponse)
async def check_access(
    path: str = Query(..., min_length=1),
    requires_premium: bool = Depends(require_premium_for_path),
    premium: PremiumStatus = Depends(get_user_premium_status),
) -> PremiumAccessResponse:
    """200 if the current user may open ``path``, 402 otherwise."""
    return PremiumAccessResponse(
        path=path,
        requires_premium=requires_premium,
        is_premium=premium.is_premium,
    )
