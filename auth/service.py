"""
auth/service.py -- Login, refresh-with-rotation, and logout.

SessionService is the only place with business rules. It composes:
  - UserStore          (identity lookup by email)
  - PasswordVerifier   (bcrypt, timing-equalized)
  - TokenCodec         (JWT issue/validate, refresh-token HMAC)
  - RefreshTokenStore  (hashed refresh tokens)

Refresh-token record states:
  absent  -- never issued, rotated away, or logged out
  live    -- stored and expires_at in the future
  expired -- stored but expires_at has passed; treated exactly like absent

Failure reporting is intentionally flat. login() raises InvalidCredentials
for every cause; refresh() raises a bare InvalidOrExpiredToken for every
cause. Storage errors propagate as StorageFailure so clients do not throw
away a session during an outage.

Logout leaves the paired access token valid until its own exp. Access tokens
are not tracked server-side.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from auth.errors import InvalidCredentials, InvalidOrExpiredToken
from auth.models import ACCESS_TOKEN, REFRESH_TOKEN, RefreshTokenRecord, TokenPair, User
from auth.passwords import PasswordVerifier
from auth.store import RefreshTokenStore, UserStore
from auth.tokens import TokenCodec

logger = logging.getLogger("authsession.auth")


class SessionService:
    def __init__(
        self,
        users: UserStore,
        refresh_tokens: RefreshTokenStore,
        codec: TokenCodec,
        verifier: PasswordVerifier,
        access_ttl: timedelta = timedelta(minutes=15),
        refresh_ttl: timedelta = timedelta(days=7),
    ) -> None:
        self.users = users
        self.refresh_tokens = refresh_tokens
        self.codec = codec
        self.verifier = verifier
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl

    def login(self, email: str, password: str) -> tuple[User, TokenPair]:
        """Verify email/password and start a new session.

        Always runs one bcrypt comparison, whether or not the email exists.
        Do NOT short-circuit before verify_unknown() -- that reintroduces the
        user-enumeration timing leak.
        """
        user = self.users.get_by_email(email)
        if user is None:
            self.verifier.verify_unknown(password)
            logger.info("Login failed")
            raise InvalidCredentials()
        if not self.verifier.verify(user.password_hash, password):
            logger.info("Login failed")
            raise InvalidCredentials()

        pair, record = self._issue_token_pair(user.id)
        self.refresh_tokens.put(record)
        logger.info("Login succeeded user_id=%s", user.id)
        return user, pair

    def refresh(self, raw_refresh_token: str) -> TokenPair:
        """Exchange a live refresh token for a new pair, consuming the old one.

        The presented token is unusable afterwards, even if replayed. When two
        calls race on the same token, rotate() lets exactly one through.
        """
        try:
            claims = self.codec.validate(raw_refresh_token, expected_type=REFRESH_TOKEN)
        except InvalidOrExpiredToken as exc:
            logger.info("Refresh rejected: %s", exc.__class__.__name__)
            raise InvalidOrExpiredToken() from None

        token_hash = self.codec.hash_token(raw_refresh_token)
        record = self.refresh_tokens.lookup(token_hash)
        if record is None or record.expires_at <= _now() or record.user_id != claims.subject:
            logger.info("Refresh rejected: no live record")
            raise InvalidOrExpiredToken()

        pair, new_record = self._issue_token_pair(claims.subject)
        if not self.refresh_tokens.rotate(token_hash, new_record):
            logger.warning("Refresh rejected: token already consumed user_id=%s", claims.subject)
            raise InvalidOrExpiredToken()

        logger.info("Refresh succeeded user_id=%s", claims.subject)
        return pair

    def logout(self, raw_refresh_token: str) -> None:
        """Revoke a refresh token. Succeeds whether or not a record existed."""
        removed = self.refresh_tokens.delete(self.codec.hash_token(raw_refresh_token))
        logger.info("Logout (record_removed=%s)", removed)

    def _issue_token_pair(self, user_id: str) -> tuple[TokenPair, RefreshTokenRecord]:
        access_token = self.codec.issue(user_id, self.access_ttl, token_type=ACCESS_TOKEN)
        refresh_token = self.codec.issue(user_id, self.refresh_ttl, token_type=REFRESH_TOKEN)
        expires_at = _now() + self.refresh_ttl
        pair = TokenPair(access_token=access_token, refresh_token=refresh_token, expires_at=expires_at)
        record = RefreshTokenRecord(
            user_id=user_id,
            token_hash=self.codec.hash_token(refresh_token),
            expires_at=expires_at,
        )
        return pair, record


def _now() -> datetime:
    return datetime.now(timezone.utc)
