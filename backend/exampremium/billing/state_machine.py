"""Transition table for one checkout attempt's ledger row.

``transition`` is total: every (ledger state, payment outcome) pair maps to a
decision for the reconciler and the state the row ends up in.
"""

from dataclasses import dataclass
from enum import StrEnum

from exampremium.models.subscription import SubscriptionStatus


class LedgerState(StrEnum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    CANCELLED = "CANCELLED"
    MISSING = "MISSING"  # no row for the tx_ref


class PaymentOutcome(StrEnum):
    SUCCEEDED = "SUCCEEDED"
    NOT_SUCCEEDED = "NOT_SUCCEEDED"
    IN_PROGRESS = "IN_PROGRESS"  # only observed when polling an open session


class Decision(StrEnum):
    ACTIVATE = "ACTIVATE"
    CANCEL = "CANCEL"
    ALREADY_ACTIVE = "ALREADY_ACTIVE"
    IGNORE = "IGNORE"
    NOT_FOUND = "NOT_FOUND"


@dataclass(frozen=True)
class Transition:
    decision: Decision
    next_state: LedgerState


_S = LedgerState
_O = PaymentOutcome
_D = Decision

TRANSITIONS: dict[tuple[LedgerState, PaymentOutcome], Transition] = {
    (_S.PENDING, _O.SUCCEEDED): Transition(_D.ACTIVATE, _S.ACTIVE),
    (_S.PENDING, _O.NOT_SUCCEEDED): Transition(_D.CANCEL, _S.CANCELLED),
    (_S.PENDING, _O.IN_PROGRESS): Transition(_D.IGNORE, _S.PENDING),
    (_S.ACTIVE, _O.SUCCEEDED): Transition(_D.ALREADY_ACTIVE, _S.ACTIVE),
    (_S.ACTIVE, _O.NOT_SUCCEEDED): Transition(_D.IGNORE, _S.ACTIVE),
    (_S.ACTIVE, _O.IN_PROGRESS): Transition(_D.IGNORE, _S.ACTIVE),
    # A success for a cancelled attempt has no PENDING or ACTIVE row to apply to.
    (_S.CANCELLED, _O.SUCCEEDED): Transition(_D.NOT_FOUND, _S.CANCELLED),
    (_S.CANCELLED, _O.NOT_SUCCEEDED): Transition(_D.IGNORE, _S.CANCELLED),
    (_S.CANCELLED, _O.IN_PROGRESS): Transition(_D.IGNORE, _S.CANCELLED),
    (_S.MISSING, _O.SUCCEEDED): Transition(_D.NOT_FOUND, _S.MISSING),
    (_S.MISSING, _O.NOT_SUCCEEDED): Transition(_D.IGNORE, _S.MISSING),
    (_S.MISSING, _O.IN_PROGRESS): Transition(_D.IGNORE, _S.MISSING),
}


def transition(state: LedgerState, outcome: PaymentOutcome) -> Transition:
    return TRANSITIONS[(state, outcome)]


def ledger_state_of(status: str | None) -> LedgerState:
    """Map a subscription row status (or no row) to its ledger state."""
    if status is None:
        return LedgerState.MISSING
    return LedgerState(SubscriptionStatus(status).value)
