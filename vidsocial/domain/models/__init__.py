"""Domain models for the vidsocial backend."""

from .activity import ActivityLogEntry
from .admin_user import AdminUser
from .refresh_token import PrincipalKind, RefreshTokenRecord
from .user import User

__all__ = [
    "ActivityLogEntry",
    "AdminUser",
    "PrincipalKind",
    "RefreshTokenRecord",
    "User",
]
