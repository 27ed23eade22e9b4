"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and the
session service do the work.

Layer rule: stdlib only.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

ACCESS_TOKEN = "access"
REFRESH_TOKEN = "refresh"  # noqa: S105 # nosec B105 -- token type label, not a secret


@dataclass
class User:
    """An identity that can log in with email and password.

    password_hash is a bcrypt hash. It must never be logged or returned by
    any API response. id is a UUID string assigned by UserStore.create_user().
    """

    email: str
    password_hash: str
    id: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass(frozen=True)
class TokenPair:
    """What a successful login or refresh hands back to the caller.

    expires_at is the refresh token's expiry (UTC). The access token carries
    its own exp claim.
    """

    access_token: str
    refresh_token: str
    expires_at: datetime


@dataclass
class RefreshTokenRecord:
    """A persisted refresh token.

    token_hash is HMAC-SHA256(SECRET_KEY, raw_token). The raw token is never
    stored, so a leaked table yields nothing a client can present.
    """

    user_id: str
    token_hash: str
    expires_at: datetime
    id: int | None = None
    created_at: str | None = None


@dataclass(frozen=True)
class Claims:
    """Trusted contents of a token that passed signature and expiry checks."""

    subject: str
    expires_at: datetime
    token_type: str
    token_id: str
