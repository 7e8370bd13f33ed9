"""Back-office administrator model."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import FrozenSet, Optional

from ..access import AdminRole, Permission, RestrictionKind, Standing


@dataclass(slots=True)
class AdminUser:
    id: int
    name: str
    email: str
    password_hash: str
    role: AdminRole
    permissions: FrozenSet[Permission]
    is_active: bool
    failed_login_count: int
    lock_until: Optional[datetime]
    last_login_at: Optional[datetime]
    created_by: Optional[int]
    created_at: datetime
    updated_at: datetime

    @property
    def is_superadmin(self) -> bool:
        return self.role is AdminRole.SUPERADMIN

    def standing(self) -> Standing:
        # deactivation never expires on its own
        restriction = None if self.is_active else RestrictionKind.DEACTIVATED
        return Standing(restriction=restriction, lock_until=self.lock_until)
