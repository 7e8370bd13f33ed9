"""End-user account model."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..access import AccountStatus, RestrictionKind, Standing


@dataclass(slots=True)
class User:
    """
    Account of a creator using the product.

    Attributes:
        password_hash: bcrypt hash, ``None`` when the account has no password credential
        status: Lifecycle status set by administrators
        status_reason: Explanation shown to the user while restricted
        status_expiry: When a temporary restriction lapses (``None`` if permanent)
        failed_login_count: Consecutive bad passwords since the last successful login
        lock_until: Login lock set after too many bad passwords
        password_changed_at: Last password change; access tokens issued before it are refused
    """

    id: int
    name: str
    email: str
    password_hash: Optional[str]
    status: AccountStatus
    status_reason: Optional[str]
    status_expiry: Optional[datetime]
    failed_login_count: int
    lock_until: Optional[datetime]
    last_login_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime
    password_changed_at: Optional[datetime] = None

    def standing(self) -> Standing:
        restriction = None
        if self.status is not AccountStatus.ACTIVE:
            restriction = RestrictionKind(self.status.value)
        return Standing(
            restriction=restriction,
            reason=self.status_reason,
            expiry=self.status_expiry,
            lock_until=self.lock_until,
        )
