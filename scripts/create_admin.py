import getpass
import os

from dotenv import load_dotenv

from vidsocial.application.services.admin_auth_service import AdminAuthService
from vidsocial.application.services.refresh_tokens import RefreshTokenLedger
from vidsocial.core.config import Settings
from vidsocial.infrastructure.persistence.sqlite import SQLitePersistence


def main() -> None:
    load_dotenv()
    settings = Settings()

    email = os.getenv("ADMIN_EMAIL") or input("Superadmin email: ").strip()
    name = input(f"Display name [{settings.admin_default_name}]: ").strip() or settings.admin_default_name
    password = os.getenv("ADMIN_PASSWORD") or getpass.getpass("Password (min. 8 characters): ")
    if len(password) < 8:
        raise SystemExit("Password must be at least 8 characters.")

    persistence = SQLitePersistence(settings.database_path)
    try:
        admin_auth = AdminAuthService(
            persistence=persistence,
            ledger=RefreshTokenLedger(persistence, ttl_days=settings.admin_jwt_refresh_expires_days),
            secret_key=settings.admin_jwt_secret,
            refresh_secret_key=settings.admin_jwt_refresh_secret,
        )
        existing = persistence.get_admin_by_email(email.lower())
        admin = admin_auth.ensure_default_admin(email, password, name=name)
    finally:
        persistence.close()

    if existing:
        print(f"Admin {existing.email} already exists ({existing.role.value}); nothing changed.")
    else:
        print(f"Superadmin {admin.email} created in {settings.database_path}")


if __name__ == "__main__":
    main()
