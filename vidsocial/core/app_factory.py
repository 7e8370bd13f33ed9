from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Any, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import Settings
from .container import ApplicationContainer
from .logging import configure_logging
from ..application.services.admin_account_service import AdminAccountService
from ..application.services.admin_auth_service import AdminAuthService
from ..application.services.refresh_tokens import RefreshTokenLedger
from ..application.services.settings_service import SettingsService
from ..application.services.user_moderation_service import UserModerationService
from ..domain.errors import AuthError
from ..infrastructure.persistence.sqlite import SQLitePersistence
from ..presentation.api.routers import activity_logs as activity_logs_router
from ..presentation.api.routers import admin as admin_router
from ..presentation.api.routers import admin_accounts as admin_accounts_router
from ..presentation.api.routers import admin_settings as admin_settings_router
from ..presentation.api.routers import admin_users as admin_users_router
from ..presentation.api.routers import users as users_router
from ..services.activity_log import ActivityLogWriter
from ..services.email_service import EmailService
from ..services.user_service import UserService

logger = logging.getLogger(__name__)


def create_application(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings()

    app = FastAPI(title="VidSocial API", lifespan=_create_lifespan(settings))

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(AuthError)
    async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
        logger.info("Access denied on %s %s: %s", request.method, request.url.path, exc.kind)
        return JSONResponse(exc.payload(), status_code=exc.status_code)

    app.include_router(users_router.router)
    app.include_router(admin_router.router)
    app.include_router(admin_users_router.router)
    app.include_router(admin_accounts_router.router)
    app.include_router(activity_logs_router.router)
    app.include_router(admin_settings_router.router)

    @app.get("/health")
    async def health() -> Dict[str, Any]:
        container: ApplicationContainer = app.state.container  # type: ignore[attr-defined]
        return {"ok": True, "activity_log": container.activity_log.running}

    return app


def _create_lifespan(settings: Settings):
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_logging(settings.log_level)
        persistence = SQLitePersistence(settings.database_path)
        user_service = UserService(
            user_repository=persistence,
            ledger=RefreshTokenLedger(persistence, ttl_days=settings.jwt_refresh_expires_days),
            jwt_secret=settings.jwt_secret,
            jwt_refresh_secret=settings.jwt_refresh_secret,
            jwt_expiration_minutes=settings.jwt_expires_minutes,
            max_login_attempts=settings.max_login_attempts,
            lock_minutes=settings.login_lock_minutes,
        )
        admin_auth_service = AdminAuthService(
            persistence=persistence,
            ledger=RefreshTokenLedger(persistence, ttl_days=settings.admin_jwt_refresh_expires_days),
            secret_key=settings.admin_jwt_secret,
            refresh_secret_key=settings.admin_jwt_refresh_secret,
            token_exp_minutes=settings.admin_jwt_expires_minutes,
            max_login_attempts=settings.max_login_attempts,
            lock_minutes=settings.login_lock_minutes,
        )
        admin_auth_service.ensure_default_admin(
            settings.admin_default_email,
            settings.admin_default_password,
            name=settings.admin_default_name,
        )
        activity_log = ActivityLogWriter(persistence, max_workers=settings.activity_log_workers)
        email_service = EmailService(
            smtp_host=settings.smtp_host,
            smtp_port=settings.smtp_port,
            smtp_username=settings.smtp_username,
            smtp_password=settings.smtp_password,
            from_email=settings.smtp_from_email,
        )

        container = ApplicationContainer(
            settings=settings,
            persistence=persistence,
            user_service=user_service,
            admin_auth_service=admin_auth_service,
            admin_account_service=AdminAccountService(persistence, admin_auth_service.hash_password),
            user_moderation_service=UserModerationService(persistence),
            settings_service=SettingsService(persistence),
            activity_log=activity_log,
            email_service=email_service,
        )

        app.state.container = container  # type: ignore[attr-defined]

        await activity_log.start()
        try:
            yield
        finally:
            await activity_log.stop()
            persistence.close()

    return lifespan
