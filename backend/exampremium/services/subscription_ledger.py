"""Subscription ledger: the only code path that writes subscription rows.

Functions flush but never commit: the caller owns the transaction, so every
statement issued for one webhook delivery or request commits (or rolls back)
together.
"""

import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime

from sqlalchemy import or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from exampremium.billing.exceptions import PersistenceError
from exampremium.billing.plans import Plan
from exampremium.database import utcnow
from exampremium.models.subscription import PROVIDER_ADMIN, Subscription, SubscriptionStatus
from exampremium.models.user import User

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _ledger_operation(name: str) -> AsyncIterator[None]:
    """Translate database failures into PersistenceError."""
    try:
        yield
    except SQLAlchemyError as e:
        logger.exception("Ledger operation %s failed", name)
        raise PersistenceError(f"{name} failed") from e


async def create_pending_subscription(
    db: AsyncSession,
    user_id: uuid.UUID,
    plan: Plan,
    tx_ref: str,
    provider: str,
    start_at: datetime,
    end_at: datetime | None,
) -> Subscription:
    """Record a checkout attempt awaiting its payment result."""
    async with _ledger_operation("create_pending_subscription"):
        subscription = Subscription(
            user_id=user_id,
            plan=plan.value,
            status=SubscriptionStatus.PENDING,
            tx_ref=tx_ref,
            provider=provider,
            start_at=start_at,
            end_at=end_at,
        )
        db.add(subscription)
        await db.flush()
    logger.info("Created PENDING subscription %s (tx_ref=%s, user %s)", subscription.id, tx_ref, user_id)
    return subscription


async def find_pending_by_tx_ref(
    db: AsyncSession, tx_ref: str, provider: str
) -> Subscription | None:
    async with _ledger_operation("find_pending_by_tx_ref"):
        result = await db.execute(
            select(Subscription).where(
                Subscription.tx_ref == tx_ref,
                Subscription.provider == provider,
                Subscription.status == SubscriptionStatus.PENDING,
            )
        )
        return result.scalar_one_or_none()


async def find_active_by_tx_ref(db: AsyncSession, tx_ref: str) -> Subscription | None:
    """Idempotency check: the row for ``tx_ref`` if it is already ACTIVE."""
    async with _ledger_operation("find_active_by_tx_ref"):
        result = await db.execute(
            select(Subscription).where(
                Subscription.tx_ref == tx_ref,
                Subscription.status == SubscriptionStatus.ACTIVE,
            )
        )
        return result.scalar_one_or_none()


async def find_by_tx_ref(db: AsyncSession, tx_ref: str) -> Subscription | None:
    async with _ledger_operation("find_by_tx_ref"):
        result = await db.execute(select(Subscription).where(Subscription.tx_ref == tx_ref))
        return result.scalar_one_or_none()


async def cancel_pending_by_tx_ref(db: AsyncSession, tx_ref: str) -> int:
    """Cancel the attempt for ``tx_ref`` if it is still PENDING. Returns rows changed."""
    async with _ledger_operation("cancel_pending_by_tx_ref"):
        result = await db.execute(
            update(Subscription)
            .where(
                Subscription.tx_ref == tx_ref,
                Subscription.status == SubscriptionStatus.PENDING,
            )
            .values(status=SubscriptionStatus.CANCELLED, updated_at=utcnow())
            .execution_options(synchronize_session="evaluate")
        )
    if result.rowcount:
        logger.info("Cancelled PENDING subscription for tx_ref=%s", tx_ref)
    return result.rowcount


async def activate_transaction(
    db: AsyncSession,
    subscription_id: uuid.UUID,
    user_id: uuid.UUID,
    end_at: datetime | None,
    start_at: datetime | None = None,
) -> bool:
    """Move a PENDING subscription to ACTIVE and grant premium.

    The PENDING -> ACTIVE step is a compare-and-swap on ``status``. When it
    matches no row another delivery already activated (or settled) this
    attempt; nothing else is written and ``False`` is returned.
    """
    start_at = start_at or utcnow()
    now = utcnow()
    async with _ledger_operation("activate_transaction"):
        swapped = await db.execute(
            update(Subscription)
            .where(
                Subscription.id == subscription_id,
                Subscription.status == SubscriptionStatus.PENDING,
            )
            .values(
                status=SubscriptionStatus.ACTIVE,
                start_at=start_at,
                end_at=end_at,
                updated_at=now,
            )
            .execution_options(synchronize_session="evaluate")
        )
        if swapped.rowcount == 0:
            logger.info("Subscription %s is no longer PENDING, activation skipped", subscription_id)
            return False

        superseded = await db.execute(
            update(Subscription)
            .where(
                Subscription.user_id == user_id,
                Subscription.status == SubscriptionStatus.ACTIVE,
                Subscription.id != subscription_id,
            )
            .values(status=SubscriptionStatus.CANCELLED, updated_at=now)
            .execution_options(synchronize_session="evaluate")
        )
        await db.execute(
            update(User)
            .where(User.id == user_id)
            .values(is_premium=True, updated_at=now)
            .execution_options(synchronize_session="evaluate")
        )
        await db.flush()

    logger.info(
        "Activated subscription %s for user %s until %s (%d superseded)",
        subscription_id,
        user_id,
        end_at,
        superseded.rowcount,
    )
    return True


async def find_current_active(
    db: AsyncSession, user_id: uuid.UUID, now: datetime | None = None
) -> Subscription | None:
    """Newest ACTIVE subscription of the user that has not expired at ``now``."""
    now = now or utcnow()
    async with _ledger_operation("find_current_active"):
        result = await db.execute(
            select(Subscription)
            .where(
                Subscription.user_id == user_id,
                Subscription.status == SubscriptionStatus.ACTIVE,
                or_(Subscription.end_at.is_(None), Subscription.end_at >= now),
            )
            .order_by(Subscription.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()


async def set_premium_flag(db: AsyncSession, user_id: uuid.UUID, value: bool) -> None:
    """Overwrite the cached ``users.is_premium`` flag."""
    async with _ledger_operation("set_premium_flag"):
        await db.execute(
            update(User)
            .where(User.id == user_id)
            .values(is_premium=value, updated_at=utcnow())
            .execution_options(synchronize_session="evaluate")
        )
        await db.flush()


async def grant_premium(
    db: AsyncSession,
    user_id: uuid.UUID,
    plan: Plan,
    end_at: datetime | None,
    provider: str = PROVIDER_ADMIN,
) -> Subscription:
    """Grant premium without a payment (admin). Goes through the normal activation."""
    now = utcnow()
    subscription = await create_pending_subscription(
        db,
        user_id=user_id,
        plan=plan,
        tx_ref=f"admin-{uuid.uuid4()}",
        provider=provider,
        start_at=now,
        end_at=end_at,
    )
    await activate_transaction(db, subscription.id, user_id, end_at=end_at, start_at=now)
    return subscription


async def revoke_premium(db: AsyncSession, user_id: uuid.UUID) -> int:
    """Cancel every ACTIVE subscription of the user and clear the cached flag."""
    async with _ledger_operation("revoke_premium"):
        result = await db.execute(
            update(Subscription)
            .where(
                Subscription.user_id == user_id,
                Subscription.status == SubscriptionStatus.ACTIVE,
            )
            .values(status=SubscriptionStatus.CANCELLED, updated_at=utcnow())
            .execution_options(synchronize_session="evaluate")
        )
    await set_premium_flag(db, user_id, False)
    logger.info("Revoked premium for user %s (%d subscriptions cancelled)", user_id, result.rowcount)
    return result.rowcount
