from __future__ import annotations

import logging
from typing import Callable, Iterable, List, Optional, Tuple

from ...domain.access import AdminRole, parse_permissions, parse_role
from ...domain.models import AdminUser
from ...domain.ports.persistence import AdminUserRepository

logger = logging.getLogger(__name__)


class AdminAccountError(ValueError):
    """Rejected administrator management request; ``status_code`` says how to report it."""

    def __init__(self, message: str, status_code: int = 400) -> None:
        super().__init__(message)
        self.status_code = status_code


class AdminAccountService:
    """Superadmin-only management of back-office accounts."""

    def __init__(self, persistence: AdminUserRepository, hash_password: Callable[[str], str]) -> None:
        self._persistence = persistence
        self._hash_password = hash_password

    def list_admins(
        self,
        *,
        role: Optional[str] = None,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[AdminUser], int]:
        role_filter = parse_role(role) if role else None
        return self._persistence.list_admins(
            role=role_filter,
            is_active=is_active,
            search=search,
            limit=limit,
            offset=(page - 1) * limit,
        )

    def create_admin(
        self,
        actor: AdminUser,
        *,
        name: str,
        email: str,
        password: str,
        role: Optional[str] = None,
        permissions: Optional[Iterable[str]] = None,
    ) -> AdminUser:
        if not name or not email or not password:
            raise AdminAccountError("Name, email, and password are required")
        if len(password) < 8:
            raise AdminAccountError("Password must be at least 8 characters")
        new_role = parse_role(role) if role else AdminRole.ADMIN
        granted = parse_permissions(permissions or [])
        email_clean = email.strip().lower()
        if self._persistence.get_admin_by_email(email_clean):
            raise AdminAccountError("An admin with this email already exists")
        admin = self._persistence.create_admin(
            name=name.strip(),
            email=email_clean,
            password_hash=self._hash_password(password),
            role=new_role,
            permissions=granted,
            created_by=actor.id,
        )
        logger.info("New admin created by %s: %s (%s)", actor.email, admin.email, admin.role.value)
        return admin

    def update_admin(
        self,
        actor: AdminUser,
        admin_id: int,
        *,
        name: Optional[str] = None,
        email: Optional[str] = None,
        role: Optional[str] = None,
        permissions: Optional[Iterable[str]] = None,
        is_active: Optional[bool] = None,
    ) -> AdminUser:
        admin = self._require(admin_id)
        if admin.is_superadmin and admin.id != actor.id:
            raise AdminAccountError("Cannot modify another superadmin account", status_code=403)

        email_clean = None
        if email:
            email_clean = email.strip().lower()
            existing = self._persistence.get_admin_by_email(email_clean)
            if existing and existing.id != admin.id:
                raise AdminAccountError("Email is already in use")

        updated = self._persistence.update_admin(
            admin.id,
            name=name.strip() if name else None,
            email=email_clean,
            role=parse_role(role) if role else None,
            permissions=parse_permissions(permissions) if permissions is not None else None,
            is_active=is_active,
        )
        logger.info("Admin updated by %s: %s", actor.email, updated.email)
        return updated

    def set_active(self, actor: AdminUser, admin_id: int, is_active: bool, reason: Optional[str] = None) -> AdminUser:
        admin = self._require(admin_id)
        if admin.is_superadmin:
            raise AdminAccountError("Cannot restrict superadmin account", status_code=403)
        if admin.id == actor.id:
            raise AdminAccountError("Cannot restrict your own account", status_code=403)
        updated = self._persistence.update_admin(admin.id, is_active=is_active)
        logger.info(
            "Admin %s by %s: %s (reason: %s)",
            "unrestricted" if is_active else "restricted",
            actor.email,
            updated.email,
            reason or "No reason provided",
        )
        return updated

    def delete_admin(self, actor: AdminUser, admin_id: int) -> AdminUser:
        admin = self._require(admin_id)
        if admin.is_superadmin:
            raise AdminAccountError("Cannot delete superadmin account", status_code=403)
        if admin.id == actor.id:
            raise AdminAccountError("Cannot delete your own account", status_code=403)
        self._persistence.delete_admin(admin.id)
        logger.info("Admin deleted by %s: %s", actor.email, admin.email)
        return admin

    def _require(self, admin_id: int) -> AdminUser:
        admin = self._persistence.get_admin_by_id(admin_id)
        if admin is None:
            raise AdminAccountError("Admin not found", status_code=404)
        return admin
