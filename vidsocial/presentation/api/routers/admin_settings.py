from fastapi import APIRouter, Depends, HTTPException, status

from ....application.services.settings_service import SettingsService
from ....core.dependencies import get_settings_service
from ....domain.access import AdminRole, Permission
from ....domain.models import AdminUser
from ...api.dependencies import log_activity, require_admin
from ...api.schemas.admin import SettingsUpdateRequest

router = APIRouter(prefix="/api/admin/settings", tags=["Admin Settings"])

_can_read_settings = require_admin(permissions=[Permission.SETTINGS])
_can_write_settings = require_admin(roles=[AdminRole.SUPERADMIN])


@router.get("")
def get_settings(
    _: AdminUser = Depends(_can_read_settings),
    settings_service: SettingsService = Depends(get_settings_service),
) -> dict:
    return {"settings": settings_service.current()}


@router.patch("", dependencies=[Depends(log_activity("settings_update", "settings"))])
def update_settings(
    payload: SettingsUpdateRequest,
    _: AdminUser = Depends(_can_write_settings),
    settings_service: SettingsService = Depends(get_settings_service),
) -> dict:
    try:
        values = settings_service.update(payload.settings)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return {"message": "Settings updated successfully", "settings": values}
