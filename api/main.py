"""
api/main.py -- FastAPI application entry point for the session service.

Run with:      uvicorn api.main:app --reload
               python main.py serve

Middleware stack (outermost to innermost):
  1. CORSMiddleware    -- adds CORS headers for allowed browser origins;
                          credentials allowed so the refresh cookie flows
  2. SlowAPIMiddleware -- enforces per-route rate limits from api.limiter

Lifespan builds the shared engine and every auth component onto app.state on
startup and disposes the engine on shutdown. Route handlers read their
collaborators from app.state; nothing in auth/ reads global configuration.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from auth.errors import AuthError, StorageFailure
from auth.passwords import PasswordVerifier
from auth.service import SessionService
from auth.store import RefreshTokenStore, UserStore, create_store_engine
from auth.tokens import TokenCodec
from core.config import Settings, get_settings

__version__ = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("authsession.api")


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------


def init_state(app: FastAPI, settings: Settings, engine: Engine) -> None:
    """Build every auth component from settings and attach it to app.state.

    Shared by the real lifespan and the test lifespan in tests/conftest.py so
    both wire the service identically. TokenCodec raises ConfigurationFailure
    here, at startup, if the signing secret is missing.
    """
    codec = TokenCodec(settings.secret_key, algorithm=settings.jwt_algorithm)
    user_store = UserStore(engine)
    refresh_store = RefreshTokenStore(engine)
    app.state.settings = settings
    app.state.engine = engine
    app.state.token_codec = codec
    app.state.user_store = user_store
    app.state.refresh_store = refresh_store
    app.state.session_service = SessionService(
        users=user_store,
        refresh_tokens=refresh_store,
        codec=codec,
        verifier=PasswordVerifier(rounds=settings.password_hash_rounds),
        access_ttl=timedelta(seconds=settings.access_token_expire_seconds),
        refresh_ttl=timedelta(seconds=settings.refresh_token_expire_seconds),
    )


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create the engine and auth components on startup; dispose on shutdown."""
    logger.info("Session API starting up")
    settings = get_settings()
    engine = create_store_engine(settings.database_url)
    init_state(app, settings, engine)
    logger.info(
        "Auth initialized (access_ttl=%ds, refresh_ttl=%ds)",
        settings.access_token_expire_seconds,
        settings.refresh_token_expire_seconds,
    )

    yield

    engine.dispose()
    logger.info("Session API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Session API",
    description="Password login with short-lived access tokens and rotating refresh tokens.",
    version=__version__,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Accept", "Authorization", "Content-Type"],
    max_age=300,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


# ---------------------------------------------------------------------------
# Request logging middleware
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error and Retry-After when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = JSONResponse(
        status_code=429,
        content=ErrorResponse(
            error=ErrorDetail(
                code="rate_limited",
                message="Too many requests.",
                detail=str(exc),
            )
        ).model_dump(),
    )
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when request body or query params fail validation."""
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(
            error=ErrorDetail(
                code="validation_error",
                message="Request validation failed.",
                detail=str(exc.errors()),
            )
        ).model_dump(),
    )


@app.exception_handler(StorageFailure)
async def storage_failure_handler(request: Request, exc: StorageFailure) -> JSONResponse:
    """Return 503, never 401: a store outage must not end the client's session."""
    logger.error("Storage failure on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=503,
        content=ErrorResponse(
            error=ErrorDetail(
                code="storage_unavailable",
                message="Service temporarily unavailable.",
            )
        ).model_dump(),
    )


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Any other auth error that escapes a route is a plain 401."""
    return JSONResponse(
        status_code=401,
        content=ErrorResponse(error=ErrorDetail(code="unauthorized", message="Unauthorized.")).model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    When detail is already a structured dict, use it directly as the error
    field rather than stringifying it.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=exc.headers,
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(
                code=f"http_{exc.status_code}",
                message=str(exc.detail),
            )
        ).model_dump(),
        headers=exc.headers,
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception goes to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error=ErrorDetail(
                code="internal_error",
                message="An unexpected error occurred.",
            )
        ).model_dump(),
    )


# ---------------------------------------------------------------------------
# Health endpoint
#
# No rate limit and no auth -- load balancers must be able to poll it.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return liveness, version, and a database round-trip check."""
    database = "ok"
    try:
        with request.app.state.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.warning("Health check: database unreachable")
        database = "error"
    return HealthResponse(
        status="healthy" if database == "ok" else "degraded",
        version=__version__,
        components={"app": "ok", "database": database},
    )
