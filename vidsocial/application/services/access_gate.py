from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import partial
from typing import Callable, Collection, Generic, List, Optional, Protocol, Sequence, TypeVar

from ...domain.access import (
    DEFAULT_RESTRICTION_REASON,
    AdminRole,
    Locked,
    Permission,
    Restricted,
    RestrictionKind,
    Standing,
    evaluate,
    has_any_permission,
    utcnow,
)
from ...domain.errors import (
    AccountLocked,
    AccountRestricted,
    InsufficientPermission,
    InsufficientRole,
    InvalidToken,
    MissingToken,
    PasswordChanged,
    PrincipalNotFound,
    TokenExpired,
)

logger = logging.getLogger(__name__)

FORBIDDEN_MESSAGE = "You do not have permission to perform this action"


class Principal(Protocol):
    id: int

    def standing(self) -> Standing:
        ...


P = TypeVar("P", bound=Principal)


@dataclass(frozen=True, slots=True)
class TokenClaims:
    """What the gate reads from a verified access token."""

    subject: int
    issued_at: Optional[datetime] = None


@dataclass(frozen=True, slots=True)
class GateMessages:
    """Client-facing wording of gate failures for one audience."""

    missing_token: str
    invalid_token: str
    token_expired: str
    principal_not_found: str
    locked: str
    deactivated: str = "Your account has been deactivated"
    password_changed: str = "Password was changed after this token was issued. Please log in again."

    def restricted(self, state: Restricted) -> str:
        if state.kind is RestrictionKind.DEACTIVATED:
            return self.deactivated
        reason = state.reason or DEFAULT_RESTRICTION_REASON
        if state.expiry is None:
            return f"Your account has been {state.kind.value} permanently. Reason: {reason}"
        until = state.expiry.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M")
        return f"Your account has been {state.kind.value} until {until} UTC. Reason: {reason}"


USER_MESSAGES = GateMessages(
    missing_token="You are not logged in! Please log in to get access.",
    invalid_token="Invalid token. Please log in again!",
    token_expired="Your token has expired! Please log in again.",
    principal_not_found="The user belonging to this token does no longer exist.",
    locked="Your account is temporarily locked due to too many failed login attempts.",
    password_changed="User recently changed password! Please log in again.",
)

ADMIN_MESSAGES = GateMessages(
    missing_token="Admin authentication required. Please login.",
    invalid_token="Invalid authentication token",
    token_expired="Your session has expired. Please login again.",
    principal_not_found="Admin account no longer exists",
    locked="Admin account is temporarily locked due to too many failed login attempts",
    deactivated="Your admin account has been deactivated",
)


class AccessGate(Generic[P]):
    """Decides whether the bearer of an access token may proceed.

    Every check reloads state from the store; claims embedded in the token
    are only trusted for the subject id and the issue time.
    """

    def __init__(
        self,
        *,
        decode_claims: Callable[[str], TokenClaims],
        load_principal: Callable[[int], Optional[P]],
        messages: GateMessages,
        revert_expired: Optional[Callable[[int, datetime], bool]] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._decode_claims = decode_claims
        self._load_principal = load_principal
        self._messages = messages
        self._revert_expired = revert_expired
        self._clock = clock

    @property
    def messages(self) -> GateMessages:
        return self._messages

    def authenticate(self, token: Optional[str]) -> P:
        if not token:
            raise MissingToken(self._messages.missing_token)
        try:
            claims = self._decode_claims(token)
        except TokenExpired as exc:
            raise TokenExpired(self._messages.token_expired) from exc
        except InvalidToken as exc:
            raise InvalidToken(self._messages.invalid_token) from exc
        principal = self._load_principal(claims.subject)
        if principal is None:
            raise PrincipalNotFound(self._messages.principal_not_found)
        if _issued_before_password_change(principal, claims.issued_at):
            raise PasswordChanged(self._messages.password_changed)
        return principal

    def authorize_status(self, principal: P) -> P:
        """Raise unless ``principal`` is currently allowed in; returns the up-to-date record."""
        now = self._clock()
        evaluation = evaluate(principal.standing(), now)
        if evaluation.revert_expired and self._revert_expired is not None:
            if self._revert_expired(principal.id, now):
                logger.info("Restriction on principal %s expired; account reactivated.", principal.id)
            refreshed = self._load_principal(principal.id)
            if refreshed is None:
                raise PrincipalNotFound(self._messages.principal_not_found)
            principal = refreshed

        state = evaluation.state
        if isinstance(state, Restricted):
            raise AccountRestricted(
                self._messages.restricted(state),
                status=state.kind.value,
                reason=state.reason,
                expiry=state.expiry,
            )
        if isinstance(state, Locked):
            raise AccountLocked(self._messages.locked, until=state.until)
        return principal

    def authorize_role(self, principal: P, allowed_roles: Collection[AdminRole]) -> P:
        if getattr(principal, "role", None) not in allowed_roles:
            raise InsufficientRole(FORBIDDEN_MESSAGE, allowed=[role.value for role in allowed_roles])
        return principal

    def authorize_permission(self, principal: P, required_permissions: Sequence[Permission]) -> P:
        role = getattr(principal, "role", None)
        granted = getattr(principal, "permissions", frozenset())
        if role is None or not has_any_permission(role, granted, required_permissions):
            required = [permission.value for permission in required_permissions]
            raise InsufficientPermission(
                f"You need one of these permissions: {', '.join(required)}",
                required=required,
            )
        return principal

    def admit(
        self,
        token: Optional[str],
        *,
        roles: Optional[Collection[AdminRole]] = None,
        permissions: Optional[Sequence[Permission]] = None,
    ) -> P:
        """Run the full pipeline, stopping at the first failing check."""
        checks: List[Callable[[P], P]] = [self.authorize_status]
        if roles:
            checks.append(partial(self.authorize_role, allowed_roles=roles))
        if permissions:
            checks.append(partial(self.authorize_permission, required_permissions=permissions))

        principal = self.authenticate(token)
        for check in checks:
            principal = check(principal)
        return principal


def _issued_before_password_change(principal: Principal, issued_at: Optional[datetime]) -> bool:
    changed_at = getattr(principal, "password_changed_at", None)
    if changed_at is None or issued_at is None:
        return False
    # ``iat`` has whole-second precision.
    return issued_at < changed_at.replace(microsecond=0)
