from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Tuple

from jose import jwt
from jose.exceptions import ExpiredSignatureError, JWTError
from passlib.context import CryptContext

from ...domain.access import AdminRole, Permission, is_locked, utcnow
from ...domain.errors import (
    AccountLocked,
    InvalidCredentials,
    InvalidRefreshToken,
    InvalidToken,
    TokenExpired,
)
from ...domain.models import AdminUser, PrincipalKind
from ...domain.ports.persistence import AdminUserRepository
from .access_gate import ADMIN_MESSAGES, AccessGate, TokenClaims
from .refresh_tokens import (
    INVALID_REFRESH_TOKEN,
    UNREADABLE_REFRESH_TOKEN,
    RefreshTokenLedger,
    TokenPair,
)

logger = logging.getLogger(__name__)

INVALID_LOGIN = "Invalid email or password"


class AdminAuthService:
    """Manages administrator credentials and token-based sessions."""

    def __init__(
        self,
        persistence: AdminUserRepository,
        ledger: RefreshTokenLedger,
        secret_key: str,
        refresh_secret_key: str,
        token_exp_minutes: int = 1440,
        max_login_attempts: int = 5,
        lock_minutes: int = 120,
        algorithm: str = "HS256",
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        if not secret_key or not refresh_secret_key:
            raise RuntimeError("ADMIN_JWT_SECRET and ADMIN_JWT_REFRESH_SECRET must be configured.")
        if secret_key == "change-me":
            logger.warning("ADMIN_JWT_SECRET is using the default value. Configure a strong secret in production.")
        self._persistence = persistence
        self._ledger = ledger
        self._secret_key = secret_key
        self._refresh_secret_key = refresh_secret_key
        self._token_exp_minutes = token_exp_minutes
        self._max_login_attempts = max_login_attempts
        self._lock_duration = timedelta(minutes=lock_minutes)
        self._algorithm = algorithm
        self._clock = clock
        self._pwd = CryptContext(schemes=["bcrypt"], deprecated="auto")
        self.gate: AccessGate[AdminUser] = AccessGate(
            decode_claims=self.decode_access_token,
            load_principal=persistence.get_admin_by_id,
            messages=ADMIN_MESSAGES,
            clock=clock,
        )

    # ------------------------------------------------------------------
    def hash_password(self, password: str) -> str:
        return self._pwd.hash(password)

    def ensure_default_admin(
        self, email: Optional[str], password: Optional[str], name: str = "Super Admin"
    ) -> Optional[AdminUser]:
        if not email or not password:
            return None
        existing = self._persistence.get_admin_by_email(email.lower())
        if existing:
            return existing
        logger.info("Creating default superadmin account for %s", email)
        return self._persistence.create_admin(
            name=name,
            email=email.lower(),
            password_hash=self.hash_password(password),
            role=AdminRole.SUPERADMIN,
            permissions=frozenset(Permission),
        )

    def login(self, email: str, password: str) -> Tuple[AdminUser, TokenPair]:
        admin = self._persistence.get_admin_by_email(email.strip().lower())
        if admin is None:
            raise InvalidCredentials("Invalid credentials")
        now = self._clock()
        if is_locked(admin.lock_until, now):
            raise AccountLocked(ADMIN_MESSAGES.locked, until=admin.lock_until)  # type: ignore[arg-type]
        if not self._pwd.verify(password, admin.password_hash):
            self._persistence.record_admin_login_failure(
                admin.id, now, self._max_login_attempts, now + self._lock_duration
            )
            logger.info("Failed admin login for %s", admin.email)
            raise InvalidCredentials(INVALID_LOGIN)

        admin = self.gate.authorize_status(admin)
        self._persistence.record_admin_login_success(admin.id, now)
        logger.info("Admin logged in successfully: %s", admin.email)
        return admin, self._issue_tokens(admin)

    def refresh(self, refresh_token: str) -> Tuple[AdminUser, TokenPair]:
        subject, token_id = self._decode_refresh_token(refresh_token)
        record = self._ledger.consume(PrincipalKind.ADMIN, token_id)
        if record.principal_id != subject:
            raise InvalidRefreshToken(INVALID_REFRESH_TOKEN)
        admin = self._persistence.get_admin_by_id(record.principal_id)
        if admin is None:
            raise InvalidRefreshToken(INVALID_REFRESH_TOKEN)
        admin = self.gate.authorize_status(admin)
        logger.info("Admin tokens refreshed: %s", admin.id)
        return admin, self._issue_tokens(admin, family_id=record.family_id)

    def logout(self, admin: AdminUser) -> None:
        revoked = self._ledger.revoke_all(PrincipalKind.ADMIN, admin.id)
        logger.info("Admin %s logged out; revoked %s refresh token(s).", admin.id, revoked)

    def decode_access_token(self, token: str) -> TokenClaims:
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[self._algorithm])
        except ExpiredSignatureError as exc:
            raise TokenExpired("admin access token expired") from exc
        except JWTError as exc:
            raise InvalidToken("admin access token rejected") from exc
        if payload.get("type") != "access":
            raise InvalidToken("not an access token")
        try:
            subject = int(payload["sub"])
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidToken("admin access token has no subject") from exc
        issued_at = payload.get("iat")
        if issued_at is None:
            return TokenClaims(subject=subject)
        return TokenClaims(subject=subject, issued_at=datetime.fromtimestamp(issued_at, tz=timezone.utc))

    # ------------------------------------------------------------------
    def _issue_tokens(self, admin: AdminUser, family_id: Optional[str] = None) -> TokenPair:
        now = self._clock()
        expire = now + timedelta(minutes=self._token_exp_minutes)
        access_payload = {"sub": str(admin.id), "role": admin.role.value, "type": "access", "iat": now, "exp": expire}
        record = self._ledger.issue(PrincipalKind.ADMIN, admin.id, family_id=family_id)
        refresh_payload = {"sub": str(admin.id), "jti": record.id, "type": "refresh", "exp": record.expires_at}
        return TokenPair(
            access_token=jwt.encode(access_payload, self._secret_key, algorithm=self._algorithm),
            refresh_token=jwt.encode(refresh_payload, self._refresh_secret_key, algorithm=self._algorithm),
            expires_in=self._token_exp_minutes * 60,
        )

    def _decode_refresh_token(self, token: str) -> Tuple[int, str]:
        try:
            payload = jwt.decode(token, self._refresh_secret_key, algorithms=[self._algorithm])
            if payload.get("type") != "refresh":
                raise InvalidRefreshToken(UNREADABLE_REFRESH_TOKEN)
            return int(payload["sub"]), str(payload["jti"])
        except (JWTError, KeyError, TypeError, ValueError) as exc:
            raise InvalidRefreshToken(UNREADABLE_REFRESH_TOKEN) from exc
