"""Subscription model: one row per checkout attempt (the premium ledger)."""

import uuid
from datetime import datetime
from enum import StrEnum

from sqlalchemy import CheckConstraint, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from exampremium.database import Base, TimestampMixin, UUIDPrimaryKeyMixin

PROVIDER_WAVE = "WAVE"
PROVIDER_ADMIN = "ADMIN"


class SubscriptionStatus(StrEnum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    CANCELLED = "CANCELLED"


class Subscription(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A premium purchase attempt keyed by its external transaction reference."""

    __tablename__ = "subscriptions"
    __table_args__ = (
        CheckConstraint("end_at IS NULL OR end_at >= start_at", name="ck_subscriptions_period"),
        Index("ix_subscriptions_user_status", "user_id", "status"),
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Plan & status (values of Plan / SubscriptionStatus)
    plan: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=SubscriptionStatus.PENDING
    )

    # Provider reference: Wave checkout session id, or admin-<uuid>
    tx_ref: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    provider: Mapped[str] = mapped_column(String(50), nullable=False, default=PROVIDER_WAVE)

    # Entitlement period (end_at None = unbounded)
    start_at: Mapped[datetime] = mapped_column(nullable=False)
    end_at: Mapped[datetime | None] = mapped_column(nullable=True)

    # Relationships
    user: Mapped["User"] = relationship(back_populates="subscriptions", lazy="selectin")  # type: ignore[name-defined]  # noqa: F821

    def __repr__(self) -> str:
        return (
            f"<Subscription(id={self.id}, user_id={self.user_id}, plan={self.plan}, "
            f"status={self.status}, tx_ref={self.tx_ref!r})>"
        )
