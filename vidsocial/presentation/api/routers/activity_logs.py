from typing import Optional

from fastapi import APIRouter, Depends, Query

from ....core.dependencies import get_persistence_gateway
from ....domain.access import AdminRole
from ....domain.models import ActivityLogEntry, AdminUser
from ....domain.ports.persistence import ActivityLogRepository
from ...api.dependencies import require_admin
from ...api.schemas.admin import ActivityLogResponse, Pagination

router = APIRouter(prefix="/api/admin/activity-logs", tags=["Admin Activity"])

_can_read_activity = require_admin(roles=[AdminRole.SUPERADMIN, AdminRole.ADMIN])


@router.get("")
def list_activity_logs(
    action: Optional[str] = None,
    resource_type: Optional[str] = None,
    admin_id: Optional[int] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=200),
    _: AdminUser = Depends(_can_read_activity),
    repository: ActivityLogRepository = Depends(get_persistence_gateway),
) -> dict:
    entries, total = repository.list_activity(
        action=action,
        resource_type=resource_type,
        admin_id=admin_id,
        limit=limit,
        offset=(page - 1) * limit,
    )
    return {
        "logs": [_serialize_entry(entry) for entry in entries],
        "pagination": Pagination.of(total, page, limit),
    }


def _serialize_entry(entry: ActivityLogEntry) -> ActivityLogResponse:
    return ActivityLogResponse(
        id=entry.id,
        admin_id=entry.admin_id,
        action=entry.action,
        resource_type=entry.resource_type,
        resource_id=entry.resource_id,
        details=entry.details,
        ip_address=entry.ip_address,
        user_agent=entry.user_agent,
        success=entry.success,
        created_at=entry.created_at,
    )
