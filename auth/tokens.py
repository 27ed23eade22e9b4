"""
auth/tokens.py -- JWT issue/validate and refresh-token hashing.

Security design decisions:
  JWT: python-jose with an HS* algorithm. TokenCodec is constructed with the
       signing secret explicitly -- there is no module-level key. Signature
       and exp are the only trust checks; revocation of refresh tokens is the
       store's job, and access tokens are not individually revocable (keep
       their TTL short).

  Claims: sub, exp, iat, jti, type. jti is random so two tokens issued for
       the same user in the same second never collide -- the refresh-token
       hash column is UNIQUE. type keeps a refresh token from being accepted
       as a bearer access token and vice versa.

  Refresh-token hashing: HMAC-SHA256(secret, raw_token). Refresh tokens are
       long signed strings, so bcrypt's slowness buys nothing here; a keyed
       fast hash gives O(1) lookup by UNIQUE index and a leaked table is
       useless without the secret.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import hashlib
import hmac
import uuid
from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError, jwt

from auth.errors import ConfigurationFailure, InvalidToken, TokenExpired
from auth.models import ACCESS_TOKEN, Claims

SUPPORTED_ALGORITHMS = ("HS256", "HS384", "HS512")


class TokenCodec:
    """Stateless signer/verifier for bearer tokens.

    Usage:
        codec = TokenCodec(settings.secret_key)
        token = codec.issue(user.id, timedelta(minutes=15))
        claims = codec.validate(token, expected_type="access")
    """

    def __init__(self, secret_key: str, algorithm: str = "HS256") -> None:
        if not secret_key:
            raise ConfigurationFailure("Token signing secret is not configured.")
        if algorithm not in SUPPORTED_ALGORITHMS:
            raise ConfigurationFailure(f"Unsupported signing algorithm: {algorithm!r}")
        self._secret_key = secret_key
        self.algorithm = algorithm

    def issue(self, subject: str, ttl: timedelta, token_type: str = ACCESS_TOKEN) -> str:
        """Encode a signed JWT for subject that expires ttl from now."""
        now = datetime.now(timezone.utc)
        payload = {
            "sub": subject,
            "exp": now + ttl,
            "iat": now,
            "jti": uuid.uuid4().hex,
            "type": token_type,
        }
        return jwt.encode(payload, self._secret_key, algorithm=self.algorithm)

    def validate(self, token: str, expected_type: str | None = None) -> Claims:
        """Verify signature and expiry and return the token's claims.

        Raises TokenExpired when exp has passed and InvalidToken for everything
        else (bad signature, garbage input, algorithm other than the configured
        one, missing claims, wrong type). Callers should catch the common base
        InvalidOrExpiredToken -- the distinction is for logs, not for clients.
        """
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[self.algorithm])
        except ExpiredSignatureError as exc:
            raise TokenExpired() from exc
        except JWTError as exc:
            raise InvalidToken() from exc

        subject = payload.get("sub")
        exp = payload.get("exp")
        if not isinstance(subject, str) or not subject or not isinstance(exp, (int, float)):
            raise InvalidToken()
        token_type = payload.get("type", "")
        if expected_type is not None and token_type != expected_type:
            raise InvalidToken()

        return Claims(
            subject=subject,
            expires_at=datetime.fromtimestamp(exp, tz=timezone.utc),
            token_type=token_type,
            token_id=str(payload.get("jti", "")),
        )

    def hash_token(self, raw_token: str) -> str:
        """Return HMAC-SHA256(secret, raw_token) as a hex string.

        Deterministic, so the store can find a record by hash alone.
        """
        return hmac.new(
            self._secret_key.encode(),
            raw_token.encode(),
            hashlib.sha256,
        ).hexdigest()
