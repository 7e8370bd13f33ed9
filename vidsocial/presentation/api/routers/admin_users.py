from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ....application.services.user_moderation_service import UserModerationService, UserNotFoundError
from ....core.dependencies import get_user_moderation_service
from ....domain.access import AdminRole, Permission
from ....domain.models import AdminUser
from ...api.dependencies import log_activity, require_admin
from ...api.schemas.admin import Pagination, UserStatusRequest
from .users import serialize_user

router = APIRouter(prefix="/api/admin/users", tags=["Admin Users"])

_can_view_users = require_admin(permissions=[Permission.USERS])
_can_moderate_users = require_admin(roles=[AdminRole.SUPERADMIN, AdminRole.ADMIN], permissions=[Permission.USERS])
_can_delete_users = require_admin(roles=[AdminRole.SUPERADMIN])


@router.get("")
def list_users(
    status_filter: Optional[str] = Query(default=None, alias="status"),
    search: Optional[str] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    _: AdminUser = Depends(_can_view_users),
    moderation: UserModerationService = Depends(get_user_moderation_service),
) -> dict:
    try:
        users, total = moderation.list_users(status=status_filter, search=search, page=page, limit=limit)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return {
        "users": [serialize_user(user) for user in users],
        "pagination": Pagination.of(total, page, limit),
    }


@router.get("/{id}")
def get_user(
    id: int,
    _: AdminUser = Depends(_can_view_users),
    moderation: UserModerationService = Depends(get_user_moderation_service),
) -> dict:
    try:
        user = moderation.get_user(id)
    except UserNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return {"user": serialize_user(user)}


@router.patch("/{id}/ban", dependencies=[Depends(log_activity("status_change", "user"))])
def change_user_status(
    id: int,
    payload: UserStatusRequest,
    current_admin: AdminUser = Depends(_can_moderate_users),
    moderation: UserModerationService = Depends(get_user_moderation_service),
) -> dict:
    try:
        user, label = moderation.change_status(
            current_admin,
            id,
            payload.status,
            reason=payload.reason,
            duration_days=payload.duration,
        )
    except UserNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return {"message": f"User {label} successfully", "user": serialize_user(user)}


@router.delete("/{id}", dependencies=[Depends(log_activity("delete", "user"))])
def delete_user(
    id: int,
    current_admin: AdminUser = Depends(_can_delete_users),
    moderation: UserModerationService = Depends(get_user_moderation_service),
) -> dict:
    try:
        moderation.delete_user(current_admin, id)
    except UserNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return {"message": "User and all related data deleted successfully"}
