"""
auth/store.py -- SQLAlchemy Core persistence layer for auth entities.

Pattern: Repository + Data Mapper.
UserStore and RefreshTokenStore are the repositories; _row_to_user /
_row_to_refresh_token are the mappers. Service and route code never touches
SQL directly.

Both stores share one Engine built by create_store_engine(). The engine's
connection pool is the only state shared between concurrent requests.

Security:
  All queries use bound parameters. No f-strings in SQL.

  refresh_tokens.token_hash holds HMAC-SHA256 of the raw token. The raw token
  never reaches this module.

Concurrency:
  RefreshTokenStore.rotate() deletes the old row and inserts the new one in a
  single transaction, and only inserts when the DELETE reported exactly one
  affected row. Two requests racing on the same refresh token both see the
  row on lookup, but only one DELETE can remove it; the loser gets False.

Timestamps are stored as UTC ISO 8601 strings with fixed microsecond
precision, so string comparison in SQL orders them correctly.

Errors:
  IntegrityError propagates unchanged (duplicate email is a caller concern).
  Every other SQLAlchemyError is re-raised as StorageFailure.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    event,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.errors import StorageFailure
from auth.models import RefreshTokenRecord, User

logger = logging.getLogger("authsession.store")

_DEFAULT_DB_URL = "sqlite:///./authsession.db"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(36), primary_key=True),  # uuid4 string
    Column("email", String(255), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),  # bcrypt
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_refresh_tokens = Table(
    "refresh_tokens",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("token_hash", String(64), nullable=False, unique=True),  # HMAC-SHA256 hex
    Column("expires_at", String(32), nullable=False),
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def create_store_engine(db_url: str = _DEFAULT_DB_URL) -> Engine:
    """Build the shared Engine and create the schema if it does not exist.

    SQLite needs check_same_thread=False because FastAPI runs sync handlers
    on a thread pool and the pool hands connections across threads.
    """
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    _metadata.create_all(engine)
    return engine


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _to_iso(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _from_iso(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _now_iso() -> str:
    return _to_iso(datetime.now(timezone.utc))


@contextmanager
def _storage_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except IntegrityError:
        raise
    except SQLAlchemyError as exc:
        logger.error("Storage error during %s: %s", operation, exc.__class__.__name__)
        raise StorageFailure(f"Storage unavailable during {operation}.") from exc


# ---------------------------------------------------------------------------
# Identity lookup
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records.

    Usage:
        engine = create_store_engine()
        users = UserStore(engine)
        users.create_user(User(email="a@x.com", password_hash=hash_password("secret123")))
        user = users.get_by_email("a@x.com")
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def create_user(self, user: User) -> str:
        """Insert a new user and return its generated id.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        """
        user_id = user.id or str(uuid.uuid4())
        now = _now_iso()
        with _storage_errors("create_user"), self.engine.begin() as conn:
            conn.execute(
                _users.insert().values(
                    id=user_id,
                    email=user.email,
                    password_hash=user.password_hash,
                    created_at=now,
                    updated_at=now,
                )
            )
        return user_id

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by exact email. Returns None if not found."""
        with _storage_errors("get_by_email"), self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: str) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with _storage_errors("get_by_id"), self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None


# ---------------------------------------------------------------------------
# Refresh tokens
# ---------------------------------------------------------------------------


class RefreshTokenStore:
    """Repository for hashed refresh tokens.

    The store never interprets expires_at on reads -- lookup() returns expired
    rows as-is and the session service decides. Expired rows linger until
    purge_expired() runs; nothing depends on that happening.
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def put(self, record: RefreshTokenRecord) -> None:
        """Insert a refresh-token record."""
        with _storage_errors("put"), self.engine.begin() as conn:
            conn.execute(_insert_refresh_token(record))

    def lookup(self, token_hash: str) -> RefreshTokenRecord | None:
        """Return the record for token_hash, or None. O(1) via UNIQUE index."""
        with _storage_errors("lookup"), self.engine.connect() as conn:
            row = conn.execute(
                _refresh_tokens.select().where(_refresh_tokens.c.token_hash == token_hash)
            ).fetchone()
        return _row_to_refresh_token(row) if row is not None else None

    def delete(self, token_hash: str) -> bool:
        """Delete the record for token_hash. Idempotent.

        Returns True if a row was removed, False if there was nothing to remove.
        """
        with _storage_errors("delete"), self.engine.begin() as conn:
            result = conn.execute(_refresh_tokens.delete().where(_refresh_tokens.c.token_hash == token_hash))
        return result.rowcount > 0

    def rotate(self, old_hash: str, new_record: RefreshTokenRecord) -> bool:
        """Atomically replace old_hash with new_record.

        The DELETE's rowcount gates the INSERT inside one transaction. If the
        old row is already gone -- a concurrent refresh won, or the user logged
        out -- nothing is inserted and False is returned.
        """
        with _storage_errors("rotate"), self.engine.begin() as conn:
            result = conn.execute(_refresh_tokens.delete().where(_refresh_tokens.c.token_hash == old_hash))
            if result.rowcount != 1:
                return False
            conn.execute(_insert_refresh_token(new_record))
        return True

    def purge_expired(self, now: datetime | None = None) -> int:
        """Delete every record whose expiry has passed. Returns number of rows removed."""
        cutoff = _to_iso(now or datetime.now(timezone.utc))
        with _storage_errors("purge_expired"), self.engine.begin() as conn:
            result = conn.execute(_refresh_tokens.delete().where(_refresh_tokens.c.expires_at <= cutoff))
        return result.rowcount


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _insert_refresh_token(record: RefreshTokenRecord):
    return _refresh_tokens.insert().values(
        user_id=record.user_id,
        token_hash=record.token_hash,
        expires_at=_to_iso(record.expires_at),
        created_at=_now_iso(),
    )


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        password_hash=row.password_hash,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_refresh_token(row) -> RefreshTokenRecord:
    return RefreshTokenRecord(
        id=row.id,
        user_id=row.user_id,
        token_hash=row.token_hash,
        expires_at=_from_iso(row.expires_at),
        created_at=row.created_at,
    )
