from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, NoReturn, Optional

from ...domain.access import utcnow
from ...domain.errors import InvalidRefreshToken, RefreshTokenReused
from ...domain.models import PrincipalKind, RefreshTokenRecord
from ...domain.ports.persistence import RefreshTokenRepository

logger = logging.getLogger(__name__)

INVALID_REFRESH_TOKEN = "Invalid refresh token"
UNREADABLE_REFRESH_TOKEN = "Invalid or expired refresh token"
EXPIRED_REFRESH_TOKEN = "Refresh token has expired"
REUSED_REFRESH_TOKEN = "Refresh token has already been used. Please log in again."


@dataclass(frozen=True, slots=True)
class TokenPair:
    access_token: str
    refresh_token: str
    expires_in: int


class RefreshTokenLedger:
    """Issues single-use refresh token ids and rotates them within a login family.

    Presenting a token that was already rotated revokes every token of its
    family, so a replayed token also cuts off whoever holds its successor.
    """

    def __init__(
        self,
        store: RefreshTokenRepository,
        ttl_days: int = 7,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._ttl = timedelta(days=ttl_days)
        self._clock = clock

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    def issue(
        self,
        kind: PrincipalKind,
        principal_id: int,
        family_id: Optional[str] = None,
    ) -> RefreshTokenRecord:
        return self._store.create_refresh_token(
            token_id=secrets.token_urlsafe(24),
            principal_kind=kind,
            principal_id=principal_id,
            family_id=family_id or secrets.token_urlsafe(16),
            expires_at=self._clock() + self._ttl,
        )

    def consume(self, kind: PrincipalKind, token_id: str) -> RefreshTokenRecord:
        """Mark ``token_id`` used and return it; its successor is issued with ``issue(..., family_id=...)``."""
        record = self._store.get_refresh_token(token_id)
        if record is None or record.principal_kind is not kind:
            raise InvalidRefreshToken(INVALID_REFRESH_TOKEN)
        # Replays are reported as reuse even once the token has expired.
        if record.consumed:
            self._reject_reuse(record)
        if record.expires_at <= self._clock():
            raise InvalidRefreshToken(EXPIRED_REFRESH_TOKEN)
        if not self._store.consume_refresh_token(token_id):
            self._reject_reuse(record)
        return record

    def revoke_all(self, kind: PrincipalKind, principal_id: int) -> int:
        return self._store.revoke_refresh_tokens_for(kind, principal_id)

    def _reject_reuse(self, record: RefreshTokenRecord) -> NoReturn:
        revoked = self._store.revoke_refresh_token_family(record.family_id)
        logger.warning(
            "Refresh token reuse detected for %s %s; revoked %s token(s) in family.",
            record.principal_kind.value,
            record.principal_id,
            revoked,
        )
        raise RefreshTokenReused(REUSED_REFRESH_TOKEN)
