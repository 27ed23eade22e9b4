"""
auth/errors.py -- Exception taxonomy for the session core.

InvalidCredentials and InvalidOrExpiredToken are deliberately coarse. The
message never says whether the account exists or what was wrong with the
token; the route layer maps both to a plain 401.

StorageFailure is NOT an authorization outcome. Clients must not discard
their session on a 503 -- the same refresh token may work once the store is
back.

Layer rule: stdlib only.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for every error raised by auth/."""


class InvalidCredentials(AuthError):
    """Login failed. Unknown email and wrong password are indistinguishable."""

    def __init__(self, message: str = "Invalid email or password.") -> None:
        super().__init__(message)


class InvalidOrExpiredToken(AuthError):
    """A presented token cannot be used. Terminal for that token."""

    def __init__(self, message: str = "Invalid or expired token.") -> None:
        super().__init__(message)


class InvalidToken(InvalidOrExpiredToken):
    """Bad signature, malformed structure, wrong algorithm, or wrong token type."""


class TokenExpired(InvalidOrExpiredToken):
    """Signature is valid but the exp claim has passed."""


class StorageFailure(AuthError):
    """The durable store is unavailable or returned an error."""


class ConfigurationFailure(AuthError):
    """Startup-time misconfiguration, e.g. a missing signing secret."""
