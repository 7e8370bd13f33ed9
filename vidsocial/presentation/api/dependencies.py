import json
import logging
from typing import Any, AsyncIterator, Callable, Dict, Iterable, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ...application.services.admin_auth_service import AdminAuthService
from ...core.dependencies import get_activity_log, get_admin_auth_service, get_user_service
from ...domain.access import AdminRole, Permission
from ...domain.models import ActivityLogEntry, AdminUser, User
from ...services.activity_log import ActivityLogWriter
from ...services.user_service import UserService

logger = logging.getLogger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)
_REDACTED_FIELDS = frozenset({"password", "current_password", "new_password"})


def _bearer_token(credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    if credentials is None or credentials.scheme.lower() != "bearer":
        return None
    return credentials.credentials


def require_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
    user_service: UserService = Depends(get_user_service),
) -> User:
    return user_service.gate.admit(_bearer_token(credentials))


def require_admin(
    roles: Optional[Iterable[AdminRole]] = None,
    permissions: Optional[Iterable[Permission]] = None,
) -> Callable[..., AdminUser]:
    """Build a dependency that admits an admin holding one of ``roles`` and one of ``permissions``."""
    allowed_roles = tuple(roles) if roles else None
    required_permissions = tuple(permissions) if permissions else None

    def dependency(
        request: Request,
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
        admin_service: AdminAuthService = Depends(get_admin_auth_service),
    ) -> AdminUser:
        admin = admin_service.gate.admit(
            _bearer_token(credentials),
            roles=allowed_roles,
            permissions=required_permissions,
        )
        request.state.admin = admin
        return admin

    return dependency


require_admin_user = require_admin()
require_superadmin = require_admin(roles=[AdminRole.SUPERADMIN])


def client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def log_activity(action: str, resource_type: str) -> Callable[..., AsyncIterator[None]]:
    """Record the decorated admin route in the activity log once the handler finishes."""

    async def dependency(
        request: Request,
        writer: ActivityLogWriter = Depends(get_activity_log),
    ) -> AsyncIterator[None]:
        success = True
        try:
            yield
        except Exception:
            success = False
            raise
        finally:
            admin: Optional[AdminUser] = getattr(request.state, "admin", None)
            if admin is not None:
                writer.enqueue(
                    ActivityLogEntry(
                        admin_id=admin.id,
                        action=action,
                        resource_type=resource_type,
                        resource_id=_resource_id(request),
                        details=await _request_details(request),
                        ip_address=client_ip(request),
                        user_agent=request.headers.get("user-agent"),
                        success=success,
                    )
                )

    return dependency


def _resource_id(request: Request) -> Optional[str]:
    value = request.path_params.get("id")
    return str(value) if value is not None else None


async def _request_details(request: Request) -> Dict[str, Any]:
    details: Dict[str, Any] = {"method": request.method, "path": request.url.path}
    if request.query_params:
        details["query"] = dict(request.query_params)
    raw = await request.body()
    if raw:
        try:
            body = json.loads(raw)
        except ValueError:
            logger.debug("Activity log body for %s is not JSON", request.url.path)
        else:
            details["body"] = _redact(body)
    return details


def _redact(body: Any) -> Any:
    if not isinstance(body, dict):
        return body
    return {key: ("[REDACTED]" if key in _REDACTED_FIELDS else value) for key, value in body.items()}
