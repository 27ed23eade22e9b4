"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Only one method is accepted: Authorization: Bearer <access token>. Refresh
tokens are rejected here by their type claim -- they live in an httpOnly
cookie scoped to the auth routes and are never valid on other endpoints.

get_current_user() resolves the token to a User and hands it to the route as
an explicit parameter. Nothing is stashed on the request for later lookup.

Layer rule: auth/dependencies.py may import from fastapi because this module
is part of the FastAPI dependency injection system. No imports from api/.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.errors import InvalidOrExpiredToken
from auth.models import ACCESS_TOKEN, User


def _unauthorized(message: str) -> HTTPException:
    return HTTPException(
        status_code=401,
        detail={"code": "unauthorized", "message": message},
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(request: Request) -> User:
    """Require a valid access token. Raises HTTP 401 otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(current_user: User = Depends(get_current_user)): ...
    """
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        raise _unauthorized("Missing or invalid authorization header.")
    token = auth_header[7:]

    try:
        claims = request.app.state.token_codec.validate(token, expected_type=ACCESS_TOKEN)
    except InvalidOrExpiredToken as exc:
        raise _unauthorized("Invalid or expired token.") from exc

    user = request.app.state.user_store.get_by_id(claims.subject)
    if user is None:
        raise _unauthorized("Invalid or expired token.")
    return user
