from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ....application.services.admin_account_service import AdminAccountError, AdminAccountService
from ....core.dependencies import get_admin_account_service
from ....domain.models import AdminUser
from ...api.dependencies import log_activity, require_superadmin
from ...api.schemas.admin import (
    AdminCreateRequest,
    AdminRestrictRequest,
    AdminUpdateRequest,
    Pagination,
)
from .admin import serialize_admin

router = APIRouter(prefix="/api/admin/admins", tags=["Admin Accounts"])


@router.get("")
def list_admins(
    role: Optional[str] = None,
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    _: AdminUser = Depends(require_superadmin),
    accounts: AdminAccountService = Depends(get_admin_account_service),
) -> dict:
    try:
        admins, total = accounts.list_admins(role=role, is_active=is_active, search=search, page=page, limit=limit)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return {
        "admins": [serialize_admin(admin) for admin in admins],
        "pagination": Pagination.of(total, page, limit),
    }


@router.post("", status_code=status.HTTP_201_CREATED, dependencies=[Depends(log_activity("create", "admin"))])
def create_admin(
    payload: AdminCreateRequest,
    current_admin: AdminUser = Depends(require_superadmin),
    accounts: AdminAccountService = Depends(get_admin_account_service),
) -> dict:
    try:
        admin = accounts.create_admin(
            current_admin,
            name=payload.name,
            email=payload.email,
            password=payload.password,
            role=payload.role,
            permissions=payload.permissions,
        )
    except ValueError as exc:
        raise _http_error(exc) from exc
    return {"message": "Admin created successfully", "admin": serialize_admin(admin)}


@router.patch("/{id}", dependencies=[Depends(log_activity("update", "admin"))])
def update_admin(
    id: int,
    payload: AdminUpdateRequest,
    current_admin: AdminUser = Depends(require_superadmin),
    accounts: AdminAccountService = Depends(get_admin_account_service),
) -> dict:
    try:
        admin = accounts.update_admin(
            current_admin,
            id,
            name=payload.name,
            email=payload.email,
            role=payload.role,
            permissions=payload.permissions,
        )
    except ValueError as exc:
        raise _http_error(exc) from exc
    return {"message": "Admin updated successfully", "admin": serialize_admin(admin)}


@router.patch("/{id}/restrict", dependencies=[Depends(log_activity("restrict", "admin"))])
def restrict_admin(
    id: int,
    payload: AdminRestrictRequest,
    current_admin: AdminUser = Depends(require_superadmin),
    accounts: AdminAccountService = Depends(get_admin_account_service),
) -> dict:
    try:
        admin = accounts.set_active(current_admin, id, payload.is_active, payload.reason)
    except ValueError as exc:
        raise _http_error(exc) from exc
    verb = "unrestricted" if admin.is_active else "restricted"
    return {"message": f"Admin {verb} successfully", "admin": serialize_admin(admin)}


@router.delete("/{id}", dependencies=[Depends(log_activity("delete", "admin"))])
def delete_admin(
    id: int,
    current_admin: AdminUser = Depends(require_superadmin),
    accounts: AdminAccountService = Depends(get_admin_account_service),
) -> dict:
    try:
        accounts.delete_admin(current_admin, id)
    except ValueError as exc:
        raise _http_error(exc) from exc
    return {"message": "Admin deleted successfully"}


def _http_error(exc: ValueError) -> HTTPException:
    status_code = exc.status_code if isinstance(exc, AdminAccountError) else status.HTTP_400_BAD_REQUEST
    return HTTPException(status_code=status_code, detail=str(exc))
