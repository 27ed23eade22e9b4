"""
auth/passwords.py -- bcrypt password hashing and timing-equalized verification.

Using bcrypt directly rather than passlib[bcrypt] because passlib's internal
wrap-bug detection creates a password longer than 72 bytes, which bcrypt 4.x
rejects with an explicit error. bcrypt 5 also rejects long inputs in
hashpw()/checkpw(), so both paths truncate to 72 bytes first -- the same bytes
bcrypt would have used anyway.

PasswordVerifier owns a dummy hash computed once with the same cost factor as
real user hashes. When the email lookup fails, login still pays for exactly
one bcrypt comparison, so "unknown user" and "wrong password" take the same
time.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging

import bcrypt

logger = logging.getLogger("authsession.auth")

DEFAULT_ROUNDS = 12
_BCRYPT_MAX_BYTES = 72


def _encode(plain: str) -> bytes:
    return plain.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(plain: str, rounds: int = DEFAULT_ROUNDS) -> str:
    """Return a salted bcrypt hash of the given plaintext password."""
    return bcrypt.hashpw(_encode(plain), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


class PasswordVerifier:
    """Compare submitted passwords against stored bcrypt hashes.

    Usage:
        verifier = PasswordVerifier(rounds=settings.password_hash_rounds)
        if user is None:
            verifier.verify_unknown(password)   # always False, same cost
        elif verifier.verify(user.password_hash, password):
            ...
    """

    def __init__(self, rounds: int = DEFAULT_ROUNDS) -> None:
        self.rounds = rounds
        # Computed at construction so the first failed login is not slower
        # than later ones.
        self._dummy_hash = hash_password("authsession_timing_dummy", rounds=rounds)

    def verify(self, stored_hash: str, candidate: str) -> bool:
        """Return True if candidate matches stored_hash.

        A malformed stored hash means a corrupted user row, not a bad request.
        It is logged and reported as a mismatch so the caller's response stays
        a plain 401.
        """
        try:
            return bcrypt.checkpw(_encode(candidate), stored_hash.encode("utf-8"))
        except ValueError:
            logger.error("Stored password hash is malformed; treating as mismatch")
            return False

    def verify_unknown(self, candidate: str) -> bool:
        """Burn one bcrypt comparison for an identity that does not exist. Always False."""
        self.verify(self._dummy_hash, candidate)
        return False
