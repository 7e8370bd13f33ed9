"""Failures raised by the access gate and the session flows."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, Optional


class AuthError(Exception):
    """Base class of every access decision that denies a request."""

    kind = "AuthError"
    status_code = 401

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def payload(self) -> Dict[str, Any]:
        return {"detail": self.message, "kind": self.kind}


class MissingToken(AuthError):
    kind = "MissingToken"


class InvalidToken(AuthError):
    kind = "InvalidToken"


class TokenExpired(AuthError):
    kind = "TokenExpired"


class PrincipalNotFound(AuthError):
    kind = "PrincipalNotFound"


class InvalidCredentials(AuthError):
    kind = "InvalidCredentials"


class InvalidRefreshToken(AuthError):
    kind = "InvalidRefreshToken"


class RefreshTokenReused(AuthError):
    kind = "RefreshTokenReused"


class PasswordChanged(AuthError):
    kind = "PasswordChanged"


class AccountRestricted(AuthError):
    kind = "AccountRestricted"
    status_code = 403

    def __init__(
        self,
        message: str,
        *,
        status: str,
        reason: Optional[str],
        expiry: Optional[datetime],
    ) -> None:
        super().__init__(message)
        self.status = status
        self.reason = reason
        self.expiry = expiry

    def payload(self) -> Dict[str, Any]:
        data = super().payload()
        data.update(
            status=self.status,
            reason=self.reason,
            expiry=self.expiry.isoformat() if self.expiry else None,
        )
        return data


class AccountLocked(AuthError):
    kind = "AccountLocked"

    def __init__(self, message: str, *, until: datetime) -> None:
        super().__init__(message)
        self.until = until

    def payload(self) -> Dict[str, Any]:
        data = super().payload()
        data["until"] = self.until.isoformat()
        return data


class InsufficientRole(AuthError):
    kind = "InsufficientRole"
    status_code = 403

    def __init__(self, message: str, *, allowed: Iterable[str]) -> None:
        super().__init__(message)
        self.allowed = sorted(allowed)

    def payload(self) -> Dict[str, Any]:
        data = super().payload()
        data["allowed"] = self.allowed
        return data


class InsufficientPermission(AuthError):
    kind = "InsufficientPermission"
    status_code = 403

    def __init__(self, message: str, *, required: Iterable[str]) -> None:
        super().__init__(message)
        self.required = list(required)

    def payload(self) -> Dict[str, Any]:
        data = super().payload()
        data["required"] = self.required
        return data
