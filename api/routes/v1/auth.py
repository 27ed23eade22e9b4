"""
api/routes/v1/auth.py -- Session REST endpoints.

Routes:
  POST /api/v1/auth/login     -- email/password; access token in body, refresh token in cookie
  POST /api/v1/auth/refresh   -- rotate the refresh cookie; new access token in body
  POST /api/v1/auth/logout    -- revoke the refresh cookie; 204
  GET  /api/v1/auth/me        -- current user info (requires Bearer access token)

Security:
  POST /login is rate-limited per client IP (LOGIN_RATE_LIMIT).
  SessionService.login() provides timing equalization -- never inline the
  user lookup and password check here.
  Cache-Control: no-store on every response that carries a token.
  The refresh cookie is httpOnly, SameSite=Strict and scoped to /api/v1/auth,
  so it is only ever sent to these routes.
  401 bodies never say whether an email exists or why a token was rejected.
  StorageFailure is not caught here; the app-level handler turns it into a
  503 and the refresh cookie is left alone.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, LoginRequest, MeResponse, TokenResponse
from auth.dependencies import get_current_user
from auth.errors import InvalidCredentials, InvalidOrExpiredToken
from auth.models import TokenPair, User
from auth.service import SessionService
from core.config import get_settings

REFRESH_COOKIE = "refresh_token"  # noqa: S105 # nosec B105 -- cookie name, not a secret
REFRESH_COOKIE_PATH = "/api/v1/auth"

# Auth policy:
# - POST /api/v1/auth/login:    public
# - POST /api/v1/auth/refresh:  refresh cookie
# - POST /api/v1/auth/logout:   refresh cookie
# - GET  /api/v1/auth/me:       Bearer access token (get_current_user)
router = APIRouter()


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/login", response_model=TokenResponse)
@limiter.limit(get_settings().login_rate_limit)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password.

    Wrong password and unknown email get the same 401 body.
    """
    service: SessionService = request.app.state.session_service
    try:
        _user, pair = service.login(body.email, body.password)
    except InvalidCredentials as exc:
        return _error(401, "bad_credentials", str(exc))
    return _token_response(request, pair)


@router.post("/auth/refresh", response_model=TokenResponse)
def refresh(request: Request) -> JSONResponse:
    """Exchange the refresh cookie for a new access token and a rotated cookie.

    Any failure clears the cookie: the client must log in again rather than
    retry the same token.
    """
    raw_token = request.cookies.get(REFRESH_COOKIE)
    if not raw_token:
        return _error(401, "unauthorized", "Missing refresh token.")

    service: SessionService = request.app.state.session_service
    try:
        pair = service.refresh(raw_token)
    except InvalidOrExpiredToken as exc:
        resp = _error(401, "invalid_token", str(exc))
        _clear_refresh_cookie(request, resp)
        return resp
    return _token_response(request, pair)


@router.post("/auth/logout", status_code=204)
def logout(request: Request) -> Response:
    """Revoke the refresh cookie. 204 whether or not it was still live."""
    raw_token = request.cookies.get(REFRESH_COOKIE)
    if not raw_token:
        return _error(401, "unauthorized", "Missing refresh token.")

    service: SessionService = request.app.state.session_service
    service.logout(raw_token)
    resp = Response(status_code=204)
    _clear_refresh_cookie(request, resp)
    return resp


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=MeResponse)
def me(current_user: User = Depends(get_current_user)) -> MeResponse:
    """Return identity information for the bearer of the access token."""
    return MeResponse.from_user(current_user)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _token_response(request: Request, pair: TokenPair) -> JSONResponse:
    settings = request.app.state.settings
    resp = JSONResponse(
        status_code=200,
        content=TokenResponse(
            access_token=pair.access_token,
            token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
            expires_in=settings.access_token_expire_seconds,
        ).model_dump(),
    )
    resp.set_cookie(
        REFRESH_COOKIE,
        value=pair.refresh_token,
        max_age=settings.refresh_token_expire_seconds,
        path=REFRESH_COOKIE_PATH,
        httponly=True,
        secure=settings.secure_cookies,
        samesite="strict",
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


def _clear_refresh_cookie(request: Request, response: Response) -> None:
    response.delete_cookie(
        REFRESH_COOKIE,
        path=REFRESH_COOKIE_PATH,
        httponly=True,
        secure=request.app.state.settings.secure_cookies,
        samesite="strict",
    )


def _error(status_code: int, code: str, message: str) -> JSONResponse:
    resp = JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message)).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp
