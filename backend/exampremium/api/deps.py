"""Shared API dependencies: single import point for all routers.

Re-exports database session, authentication and premium gating dependencies
so that router modules can import everything they need from one place::

    from exampremium.api.deps import get_db, get_current_active_user
"""

from exampremium.auth.dependencies import (
    get_admin_user,
    get_current_active_user,
    get_current_user,
)
from exampremium.billing.dependencies import (
    get_user_premium_status,
    require_premium_for_path,
)
from exampremium.database import get_db

__all__ = [
    "get_db",
    "get_current_user",
    "get_current_active_user",
    "get_admin_user",
    "get_user_premium_status",
    "require_premium_for_path",
]
