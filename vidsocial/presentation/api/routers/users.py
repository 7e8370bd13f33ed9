"""API router for user authentication and sessions."""

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Response, status

from vidsocial.application.services.refresh_tokens import TokenPair
from vidsocial.core.config import Settings
from vidsocial.core.dependencies import get_email_service, get_settings, get_user_service
from vidsocial.domain.models import User
from vidsocial.presentation.api.dependencies import require_user
from vidsocial.presentation.api.schemas.user_schemas import (
    PasswordUpdateResponse,
    RefreshTokenRequest,
    TokenPairResponse,
    UpdatePasswordRequest,
    UserAuthResponse,
    UserLoginRequest,
    UserRegisterRequest,
    UserResponse,
)
from vidsocial.services.email_service import EmailService
from vidsocial.services.user_service import UserService

router = APIRouter(prefix="/api/users", tags=["users"])


@router.post("/register", response_model=UserAuthResponse, status_code=status.HTTP_201_CREATED)
async def register(
    request: UserRegisterRequest,
    background_tasks: BackgroundTasks,
    user_service: UserService = Depends(get_user_service),
    email_service: EmailService = Depends(get_email_service),
    settings: Settings = Depends(get_settings),
) -> UserAuthResponse:
    """Register a new user and open their first session."""
    try:
        user, tokens = user_service.register(
            name=request.name,
            email=request.email,
            password=request.password,
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )

    # Welcome email is best effort and must not delay the response
    background_tasks.add_task(
        email_service.send_welcome_email,
        to_email=user.email,
        name=user.name,
        base_url=settings.frontend_base_url,
    )

    return _auth_response(user, tokens)


@router.post("/login", response_model=UserAuthResponse)
async def login(
    request: UserLoginRequest,
    user_service: UserService = Depends(get_user_service),
) -> UserAuthResponse:
    """Login and get an access/refresh token pair."""
    user, tokens = user_service.login(request.email, request.password)
    return _auth_response(user, tokens)


@router.post("/refresh-token", response_model=TokenPairResponse)
async def refresh_token(
    request: RefreshTokenRequest,
    user_service: UserService = Depends(get_user_service),
) -> TokenPairResponse:
    """Exchange a refresh token for a new token pair."""
    _, tokens = user_service.refresh(request.refresh_token)
    return TokenPairResponse(
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        expires_in=tokens.expires_in,
    )


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    user: User = Depends(require_user),
    user_service: UserService = Depends(get_user_service),
) -> Response:
    user_service.logout(user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch("/update-password", response_model=PasswordUpdateResponse)
async def update_password(
    request: UpdatePasswordRequest,
    user: User = Depends(require_user),
    user_service: UserService = Depends(get_user_service),
) -> PasswordUpdateResponse:
    """Change the password and replace every open session with a new one."""
    try:
        user, tokens = user_service.update_password(user, request.current_password, request.new_password)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )

    return PasswordUpdateResponse(
        message="Password updated successfully",
        **_auth_response(user, tokens).model_dump(),
    )


@router.get("/me", response_model=UserResponse)
async def get_profile(user: User = Depends(require_user)) -> UserResponse:
    """Get current user profile."""
    return serialize_user(user)


def serialize_user(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        name=user.name,
        email=user.email,
        status=user.status.value,
        status_reason=user.status_reason,
        status_expiry=user.status_expiry,
        last_login_at=user.last_login_at,
        created_at=user.created_at,
    )


def _auth_response(user: User, tokens: TokenPair) -> UserAuthResponse:
    return UserAuthResponse(
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        expires_in=tokens.expires_in,
        user=serialize_user(user),
    )
