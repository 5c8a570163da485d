"""Entitlement reconciler: apply Wave payment results to the subscription ledger.

Two entry points feed the same transition table:

* ``handle_wave_webhook`` for signed ``checkout.session.completed`` deliveries;
* ``reconcile_polled_session`` when a user asks us to re-check a session.

Every path is safe to re-run: Wave retries deliveries on any non-2xx answer.
"""

import json
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import assert_never

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from exampremium.billing.exceptions import (
    ConfigurationError,
    InvalidPayload,
    NotFoundError,
    PaymentNotVerified,
    ProviderError,
    SignatureInvalid,
)
from exampremium.billing.plans import Plan, compute_end_at
from exampremium.billing.signature import verify_signature
from exampremium.billing.state_machine import (
    Decision,
    LedgerState,
    PaymentOutcome,
    ledger_state_of,
    transition,
)
from exampremium.billing.wave_client import get_checkout_session
from exampremium.database import utcnow
from exampremium.models.subscription import PROVIDER_WAVE, Subscription, SubscriptionStatus
from exampremium.models.user import User
from exampremium.schemas.wave import (
    CHECKOUT_SESSION_COMPLETED,
    WaveCheckoutSession,
    WaveWebhookEvent,
)
from exampremium.services.subscription_ledger import (
    activate_transaction,
    cancel_pending_by_tx_ref,
    find_active_by_tx_ref,
    find_by_tx_ref,
    find_pending_by_tx_ref,
)

logger = logging.getLogger(__name__)

_IN_PROGRESS_PAYMENT_STATUSES = {"pending", "processing"}


@dataclass
class ReconciliationResult:
    """What happened to one payment result. Rendered as the webhook answer."""

    activated: bool
    received: bool = True
    idempotent: bool | None = None
    ignored: bool | None = None
    decision: Decision | None = None
    user_id: uuid.UUID | None = None
    plan: Plan | None = None
    end_at: datetime | None = None


async def _load_ledger_state(
    db: AsyncSession, tx_ref: str, provider: str
) -> tuple[LedgerState, Subscription | None]:
    pending = await find_pending_by_tx_ref(db, tx_ref, provider)
    if pending is not None:
        return LedgerState.PENDING, pending

    active = await find_active_by_tx_ref(db, tx_ref)
    if active is not None:
        return LedgerState.ACTIVE, active

    other = await find_by_tx_ref(db, tx_ref)
    if other is None or other.status == SubscriptionStatus.PENDING:
        # A PENDING row under another provider is not this payment's attempt.
        return LedgerState.MISSING, None
    return ledger_state_of(other.status), other


async def _activate(db: AsyncSession, subscription: Subscription, now: datetime) -> ReconciliationResult:
    subscription_id = subscription.id
    user_id = subscription.user_id
    plan = Plan(subscription.plan)
    end_at = compute_end_at(plan, now)

    won = await activate_transaction(db, subscription_id, user_id, end_at=end_at, start_at=now)
    if not won:
        # A concurrent delivery moved the row out of PENDING first.
        logger.info("Lost activation race for subscription %s, treating as duplicate", subscription_id)
        return ReconciliationResult(
            activated=True,
            idempotent=True,
            decision=Decision.ALREADY_ACTIVE,
            user_id=user_id,
            plan=plan,
        )

    logger.info("Premium activated for user %s, plan %s, until %s", user_id, plan, end_at)
    return ReconciliationResult(
        activated=True,
        decision=Decision.ACTIVATE,
        user_id=user_id,
        plan=plan,
        end_at=end_at,
    )


async def reconcile(
    db: AsyncSession,
    tx_ref: str,
    outcome: PaymentOutcome,
    *,
    provider: str = PROVIDER_WAVE,
    now: datetime | None = None,
) -> ReconciliationResult:
    """Apply one payment outcome for ``tx_ref`` to the ledger."""
    state, subscription = await _load_ledger_state(db, tx_ref, provider)
    step = transition(state, outcome)
    logger.info(
        "Reconciling tx_ref=%s: state=%s outcome=%s -> %s",
        tx_ref,
        state,
        outcome,
        step.decision,
    )

    match step.decision:
        case Decision.ACTIVATE:
            return await _activate(db, subscription, now or utcnow())
        case Decision.CANCEL:
            await cancel_pending_by_tx_ref(db, tx_ref)
            return ReconciliationResult(activated=False, decision=step.decision)
        case Decision.ALREADY_ACTIVE:
            logger.info("Subscription for tx_ref=%s already active (duplicate delivery)", tx_ref)
            return ReconciliationResult(
                activated=True,
                idempotent=True,
                decision=step.decision,
                user_id=subscription.user_id,
                plan=Plan(subscription.plan),
            )
        case Decision.IGNORE:
            return ReconciliationResult(
                activated=step.next_state == LedgerState.ACTIVE,
                decision=step.decision,
            )
        case Decision.NOT_FOUND:
            logger.error("No PENDING or ACTIVE subscription for tx_ref=%s (state %s)", tx_ref, state)
            raise NotFoundError(f"No pending subscription for {tx_ref}")
        case _:
            assert_never(step.decision)


async def _cross_check_session(session_id: str) -> None:
    """Re-fetch the session from Wave before trusting a success webhook.

    A contradicting answer rejects the delivery. An unreachable or
    unconfigured Wave does not: the signed webhook is already evidence.
    """
    try:
        verified = await get_checkout_session(session_id)
    except (ProviderError, ConfigurationError) as e:
        logger.warning("Could not independently verify Wave session %s, proceeding: %s", session_id, e)
        return

    if not verified.succeeded:
        logger.error(
            "Wave reports payment_status=%s for session %s, rejecting success webhook",
            verified.payment_status,
            session_id,
        )
        raise PaymentNotVerified(f"Session {session_id} is {verified.payment_status}")


def _parse_event(raw_body: bytes) -> WaveWebhookEvent | None:
    """Parse a delivery; None for event types we do not handle."""
    try:
        payload = json.loads(raw_body)
    except ValueError as e:
        raise InvalidPayload("Webhook body is not valid JSON") from e
    if not isinstance(payload, dict):
        raise InvalidPayload("Webhook body is not a JSON object")

    if payload.get("type") != CHECKOUT_SESSION_COMPLETED:
        logger.debug("Ignoring Wave webhook event type: %s", payload.get("type"))
        return None

    try:
        return WaveWebhookEvent.model_validate(payload)
    except ValidationError as e:
        raise InvalidPayload("Malformed checkout.session.completed event") from e


async def handle_wave_webhook(
    db: AsyncSession,
    raw_body: bytes,
    signature: str,
    *,
    now: datetime | None = None,
) -> ReconciliationResult:
    """Verify, parse and apply one Wave webhook delivery."""
    if not verify_signature(raw_body, signature):
        logger.warning("Wave webhook signature verification failed")
        raise SignatureInvalid()

    event = _parse_event(raw_body)
    if event is None:
        return ReconciliationResult(activated=False, ignored=True)

    session = event.data
    logger.info(
        "Wave webhook %s: session %s payment_status=%s",
        event.id,
        session.id,
        session.payment_status,
    )

    if not session.succeeded:
        return await reconcile(db, session.id, PaymentOutcome.NOT_SUCCEEDED, now=now)

    await _cross_check_session(session.id)
    return await reconcile(db, session.id, PaymentOutcome.SUCCEEDED, now=now)


def outcome_of_polled_session(session: WaveCheckoutSession) -> PaymentOutcome:
    if session.succeeded:
        return PaymentOutcome.SUCCEEDED
    if session.checkout_status == "open" and session.payment_status in _IN_PROGRESS_PAYMENT_STATUSES:
        return PaymentOutcome.IN_PROGRESS
    return PaymentOutcome.NOT_SUCCEEDED


async def reconcile_polled_session(
    db: AsyncSession,
    user: User,
    session_id: str,
    *,
    now: datetime | None = None,
) -> ReconciliationResult:
    """Ask Wave for the state of one of ``user``'s checkouts and apply it.

    Covers webhooks that never arrive. Provider errors propagate: without an
    answer from Wave nothing can be proven.
    """
    subscription = await find_by_tx_ref(db, session_id)
    if subscription is None or subscription.user_id != user.id:
        raise NotFoundError(f"No subscription for session {session_id}")

    provider = subscription.provider
    session = await get_checkout_session(session_id)
    outcome = outcome_of_polled_session(session)
    logger.info("Polled Wave session %s for user %s: %s", session_id, user.id, outcome)
    return await reconcile(db, session_id, outcome, provider=provider, now=now)
