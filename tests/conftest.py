"""
Shared pytest fixtures for the VidSocial API tests.

Provides fixtures for:
- Environment-backed settings pointing at a temporary SQLite database
- A running application (lifespan included) behind FastAPI's TestClient
- Helpers to register users, log admins in and wait for activity log writes
"""

from typing import Dict, Iterable, Iterator

import pytest
from fastapi.testclient import TestClient

from vidsocial.core import config as config_module
from vidsocial.core.app_factory import create_application
from vidsocial.core.config import Settings
from vidsocial.core.container import ApplicationContainer
from vidsocial.domain.access import AdminRole, Permission
from vidsocial.domain.models import AdminUser
from vidsocial.infrastructure.persistence.sqlite import SQLitePersistence

SUPERADMIN_EMAIL = "root@vidsocial.io"
SUPERADMIN_PASSWORD = "root-password-1"
USER_PASSWORD = "creator-pass-1"


# ============================================================================
# Settings & application
# ============================================================================


@pytest.fixture
def settings(tmp_path, monkeypatch) -> Settings:
    monkeypatch.setattr(config_module, "load_dotenv", lambda *args, **kwargs: False)
    env = {
        "DATABASE_PATH": str(tmp_path / "vidsocial.db"),
        "JWT_SECRET": "user-access-secret",
        "JWT_REFRESH_SECRET": "user-refresh-secret",
        "ADMIN_JWT_SECRET": "admin-access-secret",
        "ADMIN_JWT_REFRESH_SECRET": "admin-refresh-secret",
        "ADMIN_EMAIL": SUPERADMIN_EMAIL,
        "ADMIN_PASSWORD": SUPERADMIN_PASSWORD,
        "LOG_LEVEL": "DEBUG",
    }
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    for key in ("SMTP_HOST", "SMTP_USERNAME", "SMTP_PASSWORD", "SMTP_FROM_EMAIL"):
        monkeypatch.delenv(key, raising=False)
    return Settings()


@pytest.fixture
def client(settings) -> Iterator[TestClient]:
    with TestClient(create_application(settings)) as test_client:
        yield test_client


@pytest.fixture
def container(client) -> ApplicationContainer:
    return client.app.state.container


@pytest.fixture
def persistence(tmp_path) -> Iterator[SQLitePersistence]:
    store = SQLitePersistence(tmp_path / "unit.db")
    yield store
    store.close()


# ============================================================================
# Helpers
# ============================================================================


def bearer(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def register_user(client):
    def _register(email: str = "ana@vidsocial.io", name: str = "Ana", password: str = USER_PASSWORD) -> dict:
        response = client.post(
            "/api/users/register",
            json={"name": name, "email": email, "password": password},
        )
        assert response.status_code == 201, response.text
        return response.json()

    return _register


@pytest.fixture
def admin_login(client):
    def _login(email: str = SUPERADMIN_EMAIL, password: str = SUPERADMIN_PASSWORD) -> dict:
        response = client.post("/api/admin/login", json={"email": email, "password": password})
        assert response.status_code == 200, response.text
        return response.json()

    return _login


@pytest.fixture
def superadmin_headers(admin_login) -> Dict[str, str]:
    return bearer(admin_login()["access_token"])


@pytest.fixture
def make_admin(container):
    def _make(
        email: str,
        role: AdminRole = AdminRole.MODERATOR,
        permissions: Iterable[Permission] = (),
        password: str = "staff-password-1",
    ) -> AdminUser:
        return container.persistence.create_admin(
            name=email.split("@")[0].title(),
            email=email,
            password_hash=container.admin_auth_service.hash_password(password),
            role=role,
            permissions=frozenset(permissions),
        )

    return _make


@pytest.fixture
def wait_for_activity(client, container):
    def _wait() -> None:
        client.portal.call(container.activity_log.drain)

    return _wait
