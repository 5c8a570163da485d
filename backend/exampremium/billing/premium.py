"""Premium gate: derive premium access from the ledger, not the cached flag."""

import logging
import re
import uuid
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from exampremium.models.subscription import Subscription
from exampremium.models.user import User
from exampremium.services.subscription_ledger import find_current_active, set_premium_flag

logger = logging.getLogger(__name__)

# Resource paths reserved to premium users. ``*`` stands for one or more characters.
PREMIUM_ROUTES: tuple[str, ...] = (
    "/quiz",
    "/download",
    "/doc/*/explain",
    "/profile/dashboard",
    "/certificates",
    "/support",
)

_PREMIUM_ROUTE_PATTERNS = tuple(
    re.compile("^" + re.escape(route).replace(r"\*", ".+")) for route in PREMIUM_ROUTES
)


def is_premium_route(path: str) -> bool:
    """Whether ``path`` needs premium access (prefix match, no I/O)."""
    return any(pattern.match(path) for pattern in _PREMIUM_ROUTE_PATTERNS)


@dataclass(frozen=True)
class PremiumStatus:
    is_premium: bool
    subscription: Subscription | None


async def get_premium_status(
    db: AsyncSession, user: User, now: datetime | None = None
) -> PremiumStatus:
    """Re-derive the user's premium access and repair the cached flag if it drifted.

    An ACTIVE row whose ``end_at`` has passed no longer counts; this is where
    natural expiry is noticed.
    """
    subscription = await find_current_active(db, user.id, now)
    derived = subscription is not None

    if user.is_premium != derived:
        logger.info(
            "Premium flag drift for user %s: cached=%s, ledger=%s, correcting",
            user.id,
            user.is_premium,
            derived,
        )
        await set_premium_flag(db, user.id, derived)

    return PremiumStatus(is_premium=derived, subscription=subscription)


async def is_premium(db: AsyncSession, user_id: uuid.UUID, now: datetime | None = None) -> bool:
    """Ledger-derived premium check by user ID. Unknown users are not premium."""
    user = await db.get(User, user_id)
    if user is None:
        return False
    status = await get_premium_status(db, user, now)
    return status.is_premium
