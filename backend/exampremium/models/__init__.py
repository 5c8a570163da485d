"""SQLAlchemy models for ExamPremium.

All models are imported here so that Alembic's autogenerate can discover
them via Base.metadata. If you add a new model, import it in this file.
"""

from exampremium.models.subscription import Subscription, SubscriptionStatus
from exampremium.models.user import User

__all__ = [
    "Subscription",
    "SubscriptionStatus",
    "User",
]
