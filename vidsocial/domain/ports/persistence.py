from __future__ import annotations

from datetime import datetime
from typing import Dict, FrozenSet, List, Optional, Protocol, Tuple

from ..access import AccountStatus, AdminRole, Permission
from ..models import ActivityLogEntry, AdminUser, PrincipalKind, RefreshTokenRecord, User


class SettingsRepository(Protocol):
    """Abstract storage for application key-value settings."""

    def get_setting(self, key: str) -> Optional[str]:
        ...

    def set_setting(self, key: str, value: str) -> None:
        ...

    def list_settings(self) -> Dict[str, str]:
        ...


class UserRepository(Protocol):
    """Persistence functions related to end-user accounts."""

    def create_user(self, name: str, email: str, password_hash: Optional[str]) -> User:
        ...

    def get_user_by_id(self, user_id: int) -> Optional[User]:
        ...

    def get_user_by_email(self, email: str) -> Optional[User]:
        ...

    def list_users(
        self,
        *,
        status: Optional[AccountStatus] = None,
        search: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[List[User], int]:
        ...

    def update_user_status(
        self,
        user_id: int,
        status: AccountStatus,
        reason: Optional[str],
        expiry: Optional[datetime],
    ) -> User:
        ...

    def update_user_password(self, user_id: int, password_hash: str, changed_at: datetime) -> User:
        ...

    def clear_expired_user_status(self, user_id: int, now: datetime) -> bool:
        ...

    def record_user_login_failure(
        self, user_id: int, now: datetime, max_attempts: int, lock_until: datetime
    ) -> None:
        ...

    def record_user_login_success(self, user_id: int, now: datetime) -> None:
        ...

    def delete_user(self, user_id: int) -> None:
        ...


class AdminUserRepository(Protocol):
    """Persistence functions related to administrator accounts."""

    def create_admin(
        self,
        name: str,
        email: str,
        password_hash: str,
        role: AdminRole,
        permissions: FrozenSet[Permission],
        created_by: Optional[int] = None,
    ) -> AdminUser:
        ...

    def get_admin_by_id(self, admin_id: int) -> Optional[AdminUser]:
        ...

    def get_admin_by_email(self, email: str) -> Optional[AdminUser]:
        ...

    def list_admins(
        self,
        *,
        role: Optional[AdminRole] = None,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[List[AdminUser], int]:
        ...

    def update_admin(
        self,
        admin_id: int,
        *,
        name: Optional[str] = None,
        email: Optional[str] = None,
        role: Optional[AdminRole] = None,
        permissions: Optional[FrozenSet[Permission]] = None,
        is_active: Optional[bool] = None,
    ) -> AdminUser:
        ...

    def record_admin_login_failure(
        self, admin_id: int, now: datetime, max_attempts: int, lock_until: datetime
    ) -> None:
        ...

    def record_admin_login_success(self, admin_id: int, now: datetime) -> None:
        ...

    def delete_admin(self, admin_id: int) -> None:
        ...


class RefreshTokenRepository(Protocol):
    """Storage of refresh tokens with single-use consumption."""

    def create_refresh_token(
        self,
        token_id: str,
        principal_kind: PrincipalKind,
        principal_id: int,
        family_id: str,
        expires_at: datetime,
    ) -> RefreshTokenRecord:
        ...

    def get_refresh_token(self, token_id: str) -> Optional[RefreshTokenRecord]:
        ...

    def consume_refresh_token(self, token_id: str) -> bool:
        ...

    def revoke_refresh_token_family(self, family_id: str) -> int:
        ...

    def revoke_refresh_tokens_for(self, principal_kind: PrincipalKind, principal_id: int) -> int:
        ...


class ActivityLogRepository(Protocol):
    """Append-only audit trail of administrator actions."""

    def append_activity(self, entry: ActivityLogEntry) -> ActivityLogEntry:
        ...

    def list_activity(
        self,
        *,
        action: Optional[str] = None,
        resource_type: Optional[str] = None,
        admin_id: Optional[int] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[ActivityLogEntry], int]:
        ...


class PersistenceGateway(
    SettingsRepository,
    UserRepository,
    AdminUserRepository,
    RefreshTokenRepository,
    ActivityLogRepository,
    Protocol,
):
    """Composite gateway combining every persistence concern used by the app."""

    pass

