import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


class Settings:
    """Centralised application configuration sourced from environment variables."""

    def __init__(self) -> None:
        load_dotenv()
        self.database_path = Path(os.getenv("DATABASE_PATH", "data/vidsocial.db")).resolve()
        self.log_level = os.getenv("LOG_LEVEL", "INFO").upper()

        self.jwt_secret = self._get("JWT_SECRET")
        self.jwt_refresh_secret = self._get("JWT_REFRESH_SECRET")
        self.jwt_expires_minutes = self._get_int("JWT_EXPIRES_MINUTES", default=60)
        self.jwt_refresh_expires_days = self._get_int("JWT_REFRESH_EXPIRES_DAYS", default=7)

        self.admin_jwt_secret = self._get("ADMIN_JWT_SECRET")
        self.admin_jwt_refresh_secret = self._get("ADMIN_JWT_REFRESH_SECRET")
        self.admin_jwt_expires_minutes = self._get_int("ADMIN_JWT_EXPIRES_MINUTES", default=60 * 24)
        self.admin_jwt_refresh_expires_days = self._get_int("ADMIN_JWT_REFRESH_EXPIRES_DAYS", default=7)
        self.admin_default_name = os.getenv("ADMIN_NAME", "Super Admin")
        self.admin_default_email = os.getenv("ADMIN_EMAIL")
        self.admin_default_password = os.getenv("ADMIN_PASSWORD")

        self.max_login_attempts = self._get_int("MAX_LOGIN_ATTEMPTS", default=5)
        self.login_lock_minutes = self._get_int("LOGIN_LOCK_MINUTES", default=120)
        self.activity_log_workers = self._get_int("ACTIVITY_LOG_WORKERS", default=1)

        self.smtp_host = os.getenv("SMTP_HOST")
        self.smtp_port = self._get_int("SMTP_PORT", default=587)
        self.smtp_username = os.getenv("SMTP_USERNAME")
        self.smtp_password = os.getenv("SMTP_PASSWORD")
        self.smtp_from_email = os.getenv("SMTP_FROM_EMAIL")
        self.frontend_base_url = os.getenv("FRONTEND_BASE_URL", "http://localhost:3000")
        origins = os.getenv("CORS_ALLOW_ORIGINS")
        if origins:
            self.cors_allow_origins = [item.strip() for item in origins.split(",") if item.strip()]
        else:
            self.cors_allow_origins = ["*"]

    @staticmethod
    def _get(key: str) -> str:
        value = os.getenv(key)
        if not value:
            raise RuntimeError(f"Missing required environment variable: {key}")
        return value

    @staticmethod
    def _get_int(key: str, default: Optional[int] = None) -> int:
        value = os.getenv(key)
        if value is None:
            if default is None:
                raise RuntimeError(f"Missing required environment variable: {key}")
            return default
        try:
            return int(value)
        except ValueError as exc:
            raise RuntimeError(f"Environment variable {key} must be an integer") from exc
