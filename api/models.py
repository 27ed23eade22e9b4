"""
API request and response models for the session endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py, which own the
internal domain representation. Route handlers map between the two.

Password hashes and refresh tokens never appear in a response model. The
refresh token travels only in its httpOnly cookie.
"""

from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints

from auth.models import User

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login.

    max_length on password keeps inputs well below anything that would make
    bcrypt's 72-byte truncation matter for realistic passwords.
    """

    email: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]
    # Not stripped: leading/trailing spaces are part of the secret.
    password: str = Field(min_length=1, max_length=255)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class TokenResponse(BaseModel):
    """Body of a successful login or refresh."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    token_type: str = "bearer"
    expires_in: int = Field(description="Access token lifetime in seconds.")


class MeResponse(BaseModel):
    """Identity of the bearer of the current access token."""

    id: str
    email: str
    created_at: str

    @classmethod
    def from_user(cls, user: User) -> "MeResponse":
        return cls(id=user.id or "", email=user.email, created_at=user.created_at or "")


class HealthResponse(BaseModel):
    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)


class ErrorDetail(BaseModel):
    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Envelope for every error body: {"error": {"code", "message", "detail"}}."""

    error: ErrorDetail
