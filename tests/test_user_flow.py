"""
End-to-end tests for user sessions through the HTTP API.

Runs the real application (lifespan, SQLite, token services) in-process
with TestClient; no external services are needed.
"""

from datetime import datetime, timedelta, timezone

import jwt

from vidsocial.domain.access import AccountStatus, AdminRole, Permission, utcnow

from conftest import USER_PASSWORD, bearer


class TestRegistrationAndLogin:
    def test_register_login_and_access_protected_route(self, client, register_user):
        registered = register_user()
        assert registered["user"]["status"] == "active"
        assert registered["token_type"] == "bearer"

        login = client.post("/api/users/login", json={"email": "ANA@vidsocial.io", "password": USER_PASSWORD})
        assert login.status_code == 200
        tokens = login.json()

        me = client.get("/api/users/me", headers=bearer(tokens["access_token"]))
        assert me.status_code == 200
        assert me.json()["email"] == "ana@vidsocial.io"
        assert me.json()["last_login_at"] is not None

    def test_duplicate_email_rejected(self, client, register_user):
        register_user()
        response = client.post(
            "/api/users/register",
            json={"name": "Other", "email": "ana@vidsocial.io", "password": USER_PASSWORD},
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "User with this email already exists"

    def test_short_password_rejected(self, client):
        response = client.post(
            "/api/users/register",
            json={"name": "Ana", "email": "ana@vidsocial.io", "password": "short"},
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Password must be at least 8 characters"

    def test_unknown_email_and_wrong_password(self, client, register_user):
        register_user()
        unknown = client.post("/api/users/login", json={"email": "nobody@vidsocial.io", "password": "whatever1"})
        assert unknown.status_code == 401
        assert unknown.json()["detail"] == "Invalid credentials"

        wrong = client.post("/api/users/login", json={"email": "ana@vidsocial.io", "password": "wrong-pass"})
        assert wrong.status_code == 401
        assert wrong.json()["detail"] == "Invalid email or password"


class TestGateResponses:
    def test_missing_token(self, client):
        response = client.get("/api/users/me")
        assert response.status_code == 401
        assert response.json() == {
            "detail": "You are not logged in! Please log in to get access.",
            "kind": "MissingToken",
        }

    def test_garbage_token(self, client):
        response = client.get("/api/users/me", headers=bearer("not-a-jwt"))
        assert response.status_code == 401
        assert response.json()["kind"] == "InvalidToken"
        assert response.json()["detail"] == "Invalid token. Please log in again!"

    def test_expired_token(self, client, settings, register_user):
        user_id = register_user()["user"]["id"]
        past = datetime.now(timezone.utc) - timedelta(hours=2)
        token = jwt.encode(
            {"sub": str(user_id), "type": "access", "iat": past, "exp": past + timedelta(minutes=5)},
            settings.jwt_secret,
            algorithm="HS256",
        )
        response = client.get("/api/users/me", headers=bearer(token))
        assert response.status_code == 401
        assert response.json()["kind"] == "TokenExpired"
        assert response.json()["detail"] == "Your token has expired! Please log in again."

    def test_refresh_token_is_not_an_access_token(self, client, register_user):
        tokens = register_user()
        response = client.get("/api/users/me", headers=bearer(tokens["refresh_token"]))
        assert response.status_code == 401
        assert response.json()["kind"] == "InvalidToken"

    def test_deleted_user(self, client, container, register_user):
        registered = register_user()
        container.persistence.delete_user(registered["user"]["id"])
        response = client.get("/api/users/me", headers=bearer(registered["access_token"]))
        assert response.status_code == 401
        assert response.json()["detail"] == "The user belonging to this token does no longer exist."

    def test_ban_applies_to_live_sessions(self, client, container, register_user):
        registered = register_user()
        container.persistence.update_user_status(registered["user"]["id"], AccountStatus.BANNED, "spam", None)
        response = client.get("/api/users/me", headers=bearer(registered["access_token"]))
        assert response.status_code == 403
        body = response.json()
        assert body["kind"] == "AccountRestricted"
        assert body["detail"] == "Your account has been banned permanently. Reason: spam"
        assert body["status"] == "banned"
        assert body["expiry"] is None


class TestTemporaryBanLifecycle:
    def test_ban_expires_and_account_reactivates(
        self, client, container, register_user, make_admin, admin_login
    ):
        user_id = register_user()["user"]["id"]
        make_admin("lead@vidsocial.io", role=AdminRole.ADMIN, permissions=[Permission.USERS])
        admin_headers = bearer(admin_login("lead@vidsocial.io", "staff-password-1")["access_token"])

        ban = client.patch(
            f"/api/admin/users/{user_id}/ban",
            json={"status": "banned", "reason": "spam", "duration": 7},
            headers=admin_headers,
        )
        assert ban.status_code == 200
        assert ban.json()["message"] == "User banned successfully"

        denied = client.post("/api/users/login", json={"email": "ana@vidsocial.io", "password": USER_PASSWORD})
        assert denied.status_code == 403
        body = denied.json()
        assert body["kind"] == "AccountRestricted"
        assert body["reason"] == "spam"
        assert "until" in body["detail"] and body["detail"].endswith("UTC. Reason: spam")
        expiry = datetime.fromisoformat(body["expiry"])
        assert abs(expiry - (utcnow() + timedelta(days=7))) < timedelta(minutes=1)

        container.persistence.update_user_status(
            user_id, AccountStatus.BANNED, "spam", utcnow() - timedelta(minutes=1)
        )
        allowed = client.post("/api/users/login", json={"email": "ana@vidsocial.io", "password": USER_PASSWORD})
        assert allowed.status_code == 200
        assert allowed.json()["user"]["status"] == "active"

        status = client.get(f"/api/admin/users/{user_id}", headers=admin_headers)
        assert status.json()["user"]["status"] == "active"
        assert status.json()["user"]["status_reason"] is None


class TestLockout:
    def test_account_locks_after_five_failures(self, client, container, register_user):
        register_user()
        for _ in range(5):
            response = client.post(
                "/api/users/login", json={"email": "ana@vidsocial.io", "password": "wrong-pass"}
            )
            assert response.status_code == 401

        locked = client.post("/api/users/login", json={"email": "ana@vidsocial.io", "password": USER_PASSWORD})
        assert locked.status_code == 401
        assert locked.json()["kind"] == "AccountLocked"
        assert locked.json()["detail"] == (
            "Your account is temporarily locked due to too many failed login attempts."
        )
        until = datetime.fromisoformat(locked.json()["until"])
        assert abs(until - (utcnow() + timedelta(minutes=120))) < timedelta(minutes=1)

    def test_lock_blocks_existing_sessions(self, client, container, register_user):
        registered = register_user()
        container.persistence.record_user_login_failure(
            registered["user"]["id"], utcnow(), 1, utcnow() + timedelta(minutes=120)
        )
        response = client.get("/api/users/me", headers=bearer(registered["access_token"]))
        assert response.status_code == 401
        assert response.json()["kind"] == "AccountLocked"


class TestRefreshRotation:
    def test_rotation_and_reuse_detection(self, client, register_user):
        first = register_user()
        rotated = client.post("/api/users/refresh-token", json={"refresh_token": first["refresh_token"]})
        assert rotated.status_code == 200
        second = rotated.json()
        assert second["refresh_token"] != first["refresh_token"]
        assert client.get("/api/users/me", headers=bearer(second["access_token"])).status_code == 200

        reused = client.post("/api/users/refresh-token", json={"refresh_token": first["refresh_token"]})
        assert reused.status_code == 401
        assert reused.json()["kind"] == "RefreshTokenReused"
        assert reused.json()["detail"] == "Refresh token has already been used. Please log in again."

        # the legitimate successor was revoked with the rest of its family
        follow_up = client.post("/api/users/refresh-token", json={"refresh_token": second["refresh_token"]})
        assert follow_up.status_code == 401

    def test_unreadable_refresh_token(self, client):
        response = client.post("/api/users/refresh-token", json={"refresh_token": "nope"})
        assert response.status_code == 401
        assert response.json() == {"detail": "Invalid or expired refresh token", "kind": "InvalidRefreshToken"}

    def test_refresh_denied_for_banned_user(self, client, container, register_user):
        registered = register_user()
        container.persistence.update_user_status(registered["user"]["id"], AccountStatus.SUSPENDED, None, None)
        response = client.post("/api/users/refresh-token", json={"refresh_token": registered["refresh_token"]})
        assert response.status_code == 403
        assert response.json()["detail"] == "Your account has been suspended permanently. Reason: No reason provided"

    def test_logout_revokes_refresh_tokens(self, client, register_user):
        registered = register_user()
        logout = client.post("/api/users/logout", headers=bearer(registered["access_token"]))
        assert logout.status_code == 204
        response = client.post("/api/users/refresh-token", json={"refresh_token": registered["refresh_token"]})
        assert response.status_code == 401


class TestPasswordChange:
    NEW_PASSWORD = "creator-pass-2"

    def test_update_password_replaces_sessions(self, client, settings, register_user):
        registered = register_user()
        user_id = registered["user"]["id"]
        earlier = datetime.now(timezone.utc) - timedelta(minutes=10)
        earlier_token = jwt.encode(
            {"sub": str(user_id), "type": "access", "iat": earlier, "exp": earlier + timedelta(hours=1)},
            settings.jwt_secret,
            algorithm="HS256",
        )

        response = client.patch(
            "/api/users/update-password",
            json={"current_password": USER_PASSWORD, "new_password": self.NEW_PASSWORD},
            headers=bearer(registered["access_token"]),
        )
        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Password updated successfully"
        assert client.get("/api/users/me", headers=bearer(body["access_token"])).status_code == 200

        stale = client.get("/api/users/me", headers=bearer(earlier_token))
        assert stale.status_code == 401
        assert stale.json() == {
            "detail": "User recently changed password! Please log in again.",
            "kind": "PasswordChanged",
        }

        old_refresh = client.post("/api/users/refresh-token", json={"refresh_token": registered["refresh_token"]})
        assert old_refresh.status_code == 401
        new_refresh = client.post("/api/users/refresh-token", json={"refresh_token": body["refresh_token"]})
        assert new_refresh.status_code == 200

        old_login = client.post("/api/users/login", json={"email": "ana@vidsocial.io", "password": USER_PASSWORD})
        assert old_login.status_code == 401
        new_login = client.post("/api/users/login", json={"email": "ana@vidsocial.io", "password": self.NEW_PASSWORD})
        assert new_login.status_code == 200

    def test_wrong_current_password(self, client, register_user):
        registered = register_user()
        response = client.patch(
            "/api/users/update-password",
            json={"current_password": "not-my-password", "new_password": self.NEW_PASSWORD},
            headers=bearer(registered["access_token"]),
        )
        assert response.status_code == 401
        assert response.json()["detail"] == "Current password is incorrect"
        refresh = client.post("/api/users/refresh-token", json={"refresh_token": registered["refresh_token"]})
        assert refresh.status_code == 200

    def test_short_new_password(self, client, register_user):
        registered = register_user()
        response = client.patch(
            "/api/users/update-password",
            json={"current_password": USER_PASSWORD, "new_password": "short"},
            headers=bearer(registered["access_token"]),
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Password must be at least 8 characters"

    def test_requires_login(self, client):
        response = client.patch(
            "/api/users/update-password",
            json={"current_password": USER_PASSWORD, "new_password": self.NEW_PASSWORD},
        )
        assert response.status_code == 401
        assert response.json()["kind"] == "MissingToken"
