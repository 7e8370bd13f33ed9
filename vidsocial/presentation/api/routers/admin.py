from fastapi import APIRouter, Depends, Request, Response, status

from ....application.services.admin_auth_service import AdminAuthService
from ....application.services.refresh_tokens import TokenPair
from ....core.dependencies import get_admin_auth_service
from ....domain.models import AdminUser
from ...api.dependencies import log_activity, require_admin_user
from ...api.schemas.admin import AdminAuthResponse, AdminLoginRequest, AdminRefreshRequest, AdminResponse

router = APIRouter(prefix="/api/admin", tags=["Admin Authentication"])


@router.post("/login", response_model=AdminAuthResponse, dependencies=[Depends(log_activity("login", "admin"))])
def admin_login(
    payload: AdminLoginRequest,
    request: Request,
    admin_auth: AdminAuthService = Depends(get_admin_auth_service),
) -> AdminAuthResponse:
    admin, tokens = admin_auth.login(payload.email, payload.password)
    request.state.admin = admin
    return _auth_response(admin, tokens)


@router.post("/refresh-token", response_model=AdminAuthResponse)
def admin_refresh_token(
    payload: AdminRefreshRequest,
    admin_auth: AdminAuthService = Depends(get_admin_auth_service),
) -> AdminAuthResponse:
    admin, tokens = admin_auth.refresh(payload.refresh_token)
    return _auth_response(admin, tokens)


@router.get("/me", response_model=AdminResponse)
def admin_me(current_admin: AdminUser = Depends(require_admin_user)) -> AdminResponse:
    return serialize_admin(current_admin)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
def admin_logout(
    current_admin: AdminUser = Depends(require_admin_user),
    admin_auth: AdminAuthService = Depends(get_admin_auth_service),
) -> Response:
    """Revoke every outstanding refresh token of the admin."""
    admin_auth.logout(current_admin)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


def serialize_admin(admin: AdminUser) -> AdminResponse:
    return AdminResponse(
        id=admin.id,
        name=admin.name,
        email=admin.email,
        role=admin.role.value,
        permissions=sorted(permission.value for permission in admin.permissions),
        is_active=admin.is_active,
        last_login_at=admin.last_login_at,
        created_by=admin.created_by,
        created_at=admin.created_at,
    )


def _auth_response(admin: AdminUser, tokens: TokenPair) -> AdminAuthResponse:
    return AdminAuthResponse(
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        expires_in=tokens.expires_in,
        admin=serialize_admin(admin),
    )
