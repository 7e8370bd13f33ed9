"""Service for end-user registration, login and sessions."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Tuple

import bcrypt
import jwt

from vidsocial.application.services.access_gate import USER_MESSAGES, AccessGate, TokenClaims
from vidsocial.application.services.refresh_tokens import (
    INVALID_REFRESH_TOKEN,
    UNREADABLE_REFRESH_TOKEN,
    RefreshTokenLedger,
    TokenPair,
)
from vidsocial.domain.access import is_locked, utcnow
from vidsocial.domain.errors import (
    AccountLocked,
    InvalidCredentials,
    InvalidRefreshToken,
    InvalidToken,
    TokenExpired,
)
from vidsocial.domain.models import PrincipalKind, User
from vidsocial.domain.ports.persistence import UserRepository

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8


class UserService:
    """Service for managing user authentication and registration."""

    def __init__(
        self,
        user_repository: UserRepository,
        ledger: RefreshTokenLedger,
        jwt_secret: str,
        jwt_refresh_secret: str,
        jwt_algorithm: str = "HS256",
        jwt_expiration_minutes: int = 60,
        max_login_attempts: int = 5,
        lock_minutes: int = 120,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.user_repository = user_repository
        self.ledger = ledger
        self.jwt_secret = jwt_secret
        self.jwt_refresh_secret = jwt_refresh_secret
        self.jwt_algorithm = jwt_algorithm
        self.jwt_expiration_minutes = jwt_expiration_minutes
        self.max_login_attempts = max_login_attempts
        self.lock_duration = timedelta(minutes=lock_minutes)
        self.clock = clock
        self.gate: AccessGate[User] = AccessGate(
            decode_claims=self.decode_access_token,
            load_principal=user_repository.get_user_by_id,
            messages=USER_MESSAGES,
            revert_expired=user_repository.clear_expired_user_status,
            clock=clock,
        )

    def register(self, name: str, email: str, password: str) -> Tuple[User, TokenPair]:
        """
        Register a new user and open their first session.

        Args:
            name: Display name
            email: User email
            password: Plain text password

        Returns:
            Tuple of (User, TokenPair)

        Raises:
            ValueError: If the email is taken or the password is too short
        """
        email_clean = email.strip().lower()
        if not name or not name.strip():
            raise ValueError("Name is required")
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        if self.user_repository.get_user_by_email(email_clean):
            raise ValueError("User with this email already exists")

        password_hash = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")
        user = self.user_repository.create_user(
            name=name.strip(),
            email=email_clean,
            password_hash=password_hash,
        )
        logger.info("User registered successfully: %s", user.id)
        return user, self._issue_tokens(user)

    def login(self, email: str, password: str) -> Tuple[User, TokenPair]:
        """
        Authenticate a user with email and password.

        Lock and restriction checks use the same rules as every
        authenticated request, so an elapsed ban is lifted here as well.

        Raises:
            InvalidCredentials: Unknown email or wrong password
            AccountLocked: Too many failed attempts
            AccountRestricted: Banned or suspended account
        """
        user = self.user_repository.get_user_by_email(email.strip().lower())
        if not user:
            raise InvalidCredentials("Invalid credentials")

        now = self.clock()
        if is_locked(user.lock_until, now):
            raise AccountLocked(USER_MESSAGES.locked, until=user.lock_until)

        if not user.password_hash or not bcrypt.checkpw(
            password.encode("utf-8"), user.password_hash.encode("utf-8")
        ):
            if user.password_hash:
                self.user_repository.record_user_login_failure(
                    user.id, now, self.max_login_attempts, now + self.lock_duration
                )
            raise InvalidCredentials("Invalid email or password")

        user = self.gate.authorize_status(user)
        self.user_repository.record_user_login_success(user.id, now)
        logger.info("User logged in successfully: %s", user.id)
        return user, self._issue_tokens(user)

    def refresh(self, refresh_token: str) -> Tuple[User, TokenPair]:
        """
        Rotate a refresh token.

        Raises:
            InvalidRefreshToken: Unreadable, unknown or expired token
            RefreshTokenReused: Token was already rotated; its family is revoked
        """
        subject, token_id = self._decode_refresh_token(refresh_token)
        record = self.ledger.consume(PrincipalKind.USER, token_id)
        if record.principal_id != subject:
            raise InvalidRefreshToken(INVALID_REFRESH_TOKEN)
        user = self.user_repository.get_user_by_id(record.principal_id)
        if not user:
            raise InvalidRefreshToken(INVALID_REFRESH_TOKEN)
        user = self.gate.authorize_status(user)
        logger.info("Tokens refreshed successfully: %s", user.id)
        return user, self._issue_tokens(user, family_id=record.family_id)

    def logout(self, user: User) -> None:
        revoked = self.ledger.revoke_all(PrincipalKind.USER, user.id)
        logger.info("User logged out: %s (revoked %s refresh token(s))", user.id, revoked)

    def update_password(self, user: User, current_password: str, new_password: str) -> Tuple[User, TokenPair]:
        """
        Change the password of an authenticated user.

        Every refresh token of the user is revoked, and access tokens issued
        before the change stop passing the gate. A fresh pair is returned.

        Raises:
            InvalidCredentials: The current password does not match
            ValueError: If the new password is too short
        """
        if not user.password_hash or not bcrypt.checkpw(
            (current_password or "").encode("utf-8"), user.password_hash.encode("utf-8")
        ):
            raise InvalidCredentials("Current password is incorrect")
        if len(new_password or "") < MIN_PASSWORD_LENGTH:
            raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

        password_hash = bcrypt.hashpw(new_password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")
        user = self.user_repository.update_user_password(user.id, password_hash, self.clock())
        revoked = self.ledger.revoke_all(PrincipalKind.USER, user.id)
        logger.info("Password updated for user %s (revoked %s refresh token(s))", user.id, revoked)
        return user, self._issue_tokens(user)

    def decode_access_token(self, token: str) -> TokenClaims:
        """Return the user id and issue time carried by a valid access token."""
        try:
            payload = jwt.decode(token, self.jwt_secret, algorithms=[self.jwt_algorithm])
        except jwt.ExpiredSignatureError as exc:
            raise TokenExpired("access token expired") from exc
        except jwt.InvalidTokenError as exc:
            raise InvalidToken("access token rejected") from exc
        if payload.get("type") != "access":
            raise InvalidToken("not an access token")
        try:
            subject = int(payload["sub"])
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidToken("access token has no subject") from exc
        issued_at = payload.get("iat")
        return TokenClaims(
            subject=subject,
            issued_at=datetime.fromtimestamp(issued_at, tz=timezone.utc) if issued_at is not None else None,
        )

    def get_by_id(self, user_id: int) -> Optional[User]:
        """Get user by ID."""
        return self.user_repository.get_user_by_id(user_id)

    def _issue_tokens(self, user: User, family_id: Optional[str] = None) -> TokenPair:
        now = self.clock()
        access_payload = {
            "sub": str(user.id),
            "type": "access",
            "iat": now,
            "exp": now + timedelta(minutes=self.jwt_expiration_minutes),
        }
        record = self.ledger.issue(PrincipalKind.USER, user.id, family_id=family_id)
        refresh_payload = {
            "sub": str(user.id),
            "jti": record.id,
            "type": "refresh",
            "exp": record.expires_at,
        }
        return TokenPair(
            access_token=jwt.encode(access_payload, self.jwt_secret, algorithm=self.jwt_algorithm),
            refresh_token=jwt.encode(refresh_payload, self.jwt_refresh_secret, algorithm=self.jwt_algorithm),
            expires_in=self.jwt_expiration_minutes * 60,
        )

    def _decode_refresh_token(self, token: str) -> Tuple[int, str]:
        try:
            payload = jwt.decode(token, self.jwt_refresh_secret, algorithms=[self.jwt_algorithm])
            if payload.get("type") != "refresh":
                raise InvalidRefreshToken(UNREADABLE_REFRESH_TOKEN)
            return int(payload["sub"]), str(payload["jti"])
        except (jwt.InvalidTokenError, KeyError, TypeError, ValueError) as exc:
            raise InvalidRefreshToken(UNREADABLE_REFRESH_TOKEN) from exc
