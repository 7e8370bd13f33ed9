from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from ...domain.access import AccountStatus, build_restriction, parse_status, utcnow
from ...domain.models import AdminUser, User
from ...domain.ports.persistence import UserRepository

logger = logging.getLogger(__name__)

_ACTION_LABELS = {
    AccountStatus.ACTIVE: "unbanned/reactivated",
    AccountStatus.BANNED: "banned",
    AccountStatus.SUSPENDED: "suspended",
}


class UserNotFoundError(LookupError):
    pass


class UserModerationService:
    """Back-office operations on end-user accounts."""

    def __init__(self, users: UserRepository, clock: Callable[[], datetime] = utcnow) -> None:
        self._users = users
        self._clock = clock

    def list_users(
        self,
        *,
        status: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[User], int]:
        return self._users.list_users(
            status=parse_status(status) if status else None,
            search=search,
            limit=limit,
            offset=(page - 1) * limit,
        )

    def get_user(self, user_id: int) -> User:
        user = self._users.get_user_by_id(user_id)
        if user is None:
            raise UserNotFoundError("User not found")
        return user

    def change_status(
        self,
        actor: AdminUser,
        user_id: int,
        status: str,
        reason: Optional[str] = None,
        duration_days: Optional[float] = None,
    ) -> Tuple[User, str]:
        """Ban, suspend or reactivate a user; returns the user and the action label."""
        new_status = parse_status(status)
        user = self.get_user(user_id)
        stored_reason, expiry = build_restriction(new_status, reason, duration_days, self._clock())
        updated = self._users.update_user_status(user.id, new_status, stored_reason, expiry)
        label = _ACTION_LABELS[new_status]
        logger.info(
            "User %s: id=%s reason=%s duration=%s admin=%s",
            label,
            updated.id,
            stored_reason or "N/A",
            f"{duration_days} days" if duration_days else "permanent",
            actor.id,
        )
        return updated, label

    def delete_user(self, actor: AdminUser, user_id: int) -> User:
        user = self.get_user(user_id)
        self._users.delete_user(user.id)
        logger.warning("User deleted by admin: user=%s admin=%s", user.id, actor.id)
        return user
