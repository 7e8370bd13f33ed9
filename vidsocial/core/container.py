from dataclasses import dataclass

from ..application.services.admin_account_service import AdminAccountService
from ..application.services.admin_auth_service import AdminAuthService
from ..application.services.settings_service import SettingsService
from ..application.services.user_moderation_service import UserModerationService
from .config import Settings
from ..domain.ports.persistence import PersistenceGateway
from ..services.activity_log import ActivityLogWriter
from ..services.email_service import EmailService
from ..services.user_service import UserService


@dataclass(slots=True)
class ApplicationContainer:
    """Dependency registry shared across the FastAPI application lifecycle."""

    settings: Settings
    persistence: PersistenceGateway
    user_service: UserService
    admin_auth_service: AdminAuthService
    admin_account_service: AdminAccountService
    user_moderation_service: UserModerationService
    settings_service: SettingsService
    activity_log: ActivityLogWriter
    email_service: EmailService
