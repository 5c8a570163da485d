"""Plan definitions: premium pricing and entitlement durations."""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import StrEnum
from typing import assert_never

from exampremium.config import settings


class Plan(StrEnum):
    MONTHLY = "MONTHLY"
    ANNUAL = "ANNUAL"


@dataclass(frozen=True)
class PlanDetails:
    """Price and duration of a premium plan."""

    plan: Plan
    display_name: str
    amount: str  # whole units of `currency`, as Wave expects (e.g. "2500")
    currency: str
    duration_days: int


def get_plan(plan: Plan) -> PlanDetails:
    """Return the details of ``plan``. Every Plan member must be handled here."""
    match plan:
        case Plan.MONTHLY:
            return PlanDetails(
                plan=Plan.MONTHLY,
                display_name="Premium Monthly",
                amount=settings.premium_monthly_amount,
                currency=settings.wave_currency,
                duration_days=settings.premium_monthly_days,
            )
        case Plan.ANNUAL:
            return PlanDetails(
                plan=Plan.ANNUAL,
                display_name="Premium Annual",
                amount=settings.premium_annual_amount,
                currency=settings.wave_currency,
                duration_days=settings.premium_annual_days,
            )
        case _:
            assert_never(plan)


def list_plans() -> list[PlanDetails]:
    return [get_plan(plan) for plan in Plan]


def plan_duration_days(plan: Plan) -> int:
    return get_plan(plan).duration_days


def compute_end_at(plan: Plan, start_at: datetime) -> datetime:
    """End of the entitlement period for ``plan`` starting at ``start_at``."""
    return start_at + timedelta(days=plan_duration_days(plan))


def build_client_reference(user_id: uuid.UUID, plan: Plan) -> str:
    """Correlation string sent to Wave: ``<user_id>_<plan>_<epoch-ms>``."""
    millis = int(datetime.now(timezone.utc).timestamp() * 1000)
    return f"{user_id}_{plan.value}_{millis}"
