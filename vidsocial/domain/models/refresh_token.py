from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class PrincipalKind(str, Enum):
    USER = "user"
    ADMIN = "admin"


@dataclass(slots=True)
class RefreshTokenRecord:
    """Server-side half of a refresh token; ``family_id`` groups one login's rotations."""

    id: str
    principal_kind: PrincipalKind
    principal_id: int
    family_id: str
    consumed: bool
    expires_at: datetime
    created_at: datetime
