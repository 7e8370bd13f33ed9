"""Account standing, roles and permissions.

Both the login flow and the per-request gate decide access through
:func:`evaluate`, so a principal is judged by exactly the same rules
wherever it shows up.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import AbstractSet, Iterable, Optional, Tuple, Union


class AccountStatus(str, Enum):
    ACTIVE = "active"
    BANNED = "banned"
    SUSPENDED = "suspended"


class RestrictionKind(str, Enum):
    BANNED = "banned"
    SUSPENDED = "suspended"
    DEACTIVATED = "deactivated"


class AdminRole(str, Enum):
    SUPERADMIN = "superadmin"
    ADMIN = "admin"
    MODERATOR = "moderator"


class Permission(str, Enum):
    USERS = "users"
    MEDIA = "media"
    VIDEOS = "videos"
    POSTS = "posts"
    ANALYTICS = "analytics"
    SETTINGS = "settings"
    SOCIAL_ACCOUNTS = "socialaccounts"


DEFAULT_RESTRICTION_REASON = "No reason provided"
MAX_RESTRICTION_DAYS = 36500


@dataclass(frozen=True, slots=True)
class Active:
    pass


@dataclass(frozen=True, slots=True)
class Restricted:
    kind: RestrictionKind
    reason: Optional[str]
    expiry: Optional[datetime]

    @property
    def is_permanent(self) -> bool:
        return self.expiry is None


@dataclass(frozen=True, slots=True)
class Locked:
    until: datetime


AccessState = Union[Active, Restricted, Locked]


@dataclass(frozen=True, slots=True)
class Standing:
    """The stored lifecycle fields of a principal, as read from persistence."""

    restriction: Optional[RestrictionKind] = None
    reason: Optional[str] = None
    expiry: Optional[datetime] = None
    lock_until: Optional[datetime] = None


@dataclass(frozen=True, slots=True)
class Evaluation:
    state: AccessState
    revert_expired: bool = False

    @property
    def allowed(self) -> bool:
        return isinstance(self.state, Active)


def is_locked(lock_until: Optional[datetime], now: datetime) -> bool:
    return lock_until is not None and lock_until > now


def evaluate(standing: Standing, now: datetime) -> Evaluation:
    """Resolve the effective access state of a principal at ``now``.

    An elapsed restriction resolves to :class:`Active` with
    ``revert_expired`` set; the caller owns persisting that revert.
    A lock is independent of the restriction and is only reported once
    the restriction (if any) no longer applies.
    """
    revert = False
    if standing.restriction is not None:
        if standing.expiry is not None and standing.expiry <= now:
            revert = True
        else:
            return Evaluation(Restricted(standing.restriction, standing.reason, standing.expiry))

    if is_locked(standing.lock_until, now):
        return Evaluation(Locked(standing.lock_until), revert_expired=revert)  # type: ignore[arg-type]
    return Evaluation(Active(), revert_expired=revert)


def has_any_permission(
    role: AdminRole,
    granted: AbstractSet[Permission],
    required: Iterable[Permission],
) -> bool:
    if role is AdminRole.SUPERADMIN:
        return True
    return any(permission in granted for permission in required)


def build_restriction(
    status: AccountStatus,
    reason: Optional[str],
    duration_days: Optional[float],
    now: datetime,
) -> Tuple[Optional[str], Optional[datetime]]:
    """Return the ``(reason, expiry)`` pair to store for a status change."""
    if status is AccountStatus.ACTIVE:
        return None, None
    stored_reason = (reason or "").strip() or DEFAULT_RESTRICTION_REASON
    if not duration_days or duration_days <= 0:
        return stored_reason, None
    try:
        expiry = now + timedelta(days=duration_days)
    except OverflowError:
        raise ValueError("Restriction duration is too long.") from None
    if expiry <= now:
        raise ValueError("Restriction expiry must be in the future.")
    return stored_reason, expiry


def parse_permissions(values: Iterable[str]) -> frozenset[Permission]:
    items = [str(getattr(value, "value", value)) for value in values]
    invalid = [value for value in items if value not in _PERMISSION_VALUES]
    if invalid:
        raise ValueError(f"Invalid permissions: {', '.join(invalid)}")
    return frozenset(Permission(value) for value in items)


def parse_role(value: str) -> AdminRole:
    try:
        return AdminRole(value)
    except ValueError as exc:
        valid = ", ".join(role.value for role in AdminRole)
        raise ValueError(f"Invalid role. Must be one of: {valid}") from exc


def parse_status(value: str) -> AccountStatus:
    try:
        return AccountStatus(value)
    except ValueError as exc:
        valid = ", ".join(status.value for status in AccountStatus)
        raise ValueError(f"Invalid status. Must be one of: {valid}") from exc


_PERMISSION_VALUES = {permission.value for permission in Permission}


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)
