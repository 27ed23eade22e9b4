"""
tests/test_store.py -- Unit tests for auth/store.py.

Covers:
  - UserStore: create/get by email and id, duplicate email -> IntegrityError
  - RefreshTokenStore: put/lookup, expired rows still returned by lookup
  - delete() idempotent
  - rotate() replaces the row once; second rotate of the same hash is refused
    and inserts nothing
  - purge_expired() removes only expired rows
  - SQLAlchemy errors surface as StorageFailure
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import IntegrityError

from auth.errors import StorageFailure
from auth.models import RefreshTokenRecord, User
from auth.store import RefreshTokenStore, UserStore


def _record(user_id: str, token_hash: str, expires_in: timedelta = timedelta(days=1)) -> RefreshTokenRecord:
    return RefreshTokenRecord(
        user_id=user_id,
        token_hash=token_hash,
        expires_at=datetime.now(timezone.utc) + expires_in,
    )


# ---------------------------------------------------------------------------
# UserStore
# ---------------------------------------------------------------------------


class TestUserStore:
    def test_create_and_get_by_email(self, user_store: UserStore) -> None:
        user_id = user_store.create_user(User(email="b@x.com", password_hash="$2b$04$hash"))
        user = user_store.get_by_email("b@x.com")
        assert user is not None
        assert user.id == user_id
        assert user.password_hash == "$2b$04$hash"
        assert user.created_at
        assert user.updated_at

    def test_get_by_id(self, user_store: UserStore, registered_user: User) -> None:
        user = user_store.get_by_id(registered_user.id)
        assert user is not None
        assert user.email == registered_user.email

    def test_not_found(self, user_store: UserStore) -> None:
        assert user_store.get_by_email("nouser@x.com") is None
        assert user_store.get_by_id("00000000-0000-0000-0000-000000000000") is None

    def test_duplicate_email(self, user_store: UserStore, registered_user: User) -> None:
        with pytest.raises(IntegrityError):
            user_store.create_user(User(email=registered_user.email, password_hash="$2b$04$other"))


# ---------------------------------------------------------------------------
# RefreshTokenStore
# ---------------------------------------------------------------------------


class TestRefreshTokenStore:
    def test_put_and_lookup(self, refresh_store: RefreshTokenStore, registered_user: User) -> None:
        rec = _record(registered_user.id, "a" * 64)
        refresh_store.put(rec)
        found = refresh_store.lookup("a" * 64)
        assert found is not None
        assert found.user_id == registered_user.id
        assert found.expires_at.tzinfo is not None
        assert abs(found.expires_at - rec.expires_at) < timedelta(milliseconds=1)

    def test_lookup_missing(self, refresh_store: RefreshTokenStore) -> None:
        assert refresh_store.lookup("b" * 64) is None

    def test_lookup_returns_expired_rows(self, refresh_store: RefreshTokenStore, registered_user: User) -> None:
        """The store does not interpret expiry; the service does."""
        refresh_store.put(_record(registered_user.id, "c" * 64, expires_in=timedelta(hours=-1)))
        found = refresh_store.lookup("c" * 64)
        assert found is not None
        assert found.expires_at < datetime.now(timezone.utc)

    def test_duplicate_hash_rejected(self, refresh_store: RefreshTokenStore, registered_user: User) -> None:
        refresh_store.put(_record(registered_user.id, "d" * 64))
        with pytest.raises(IntegrityError):
            refresh_store.put(_record(registered_user.id, "d" * 64))

    def test_delete_is_idempotent(self, refresh_store: RefreshTokenStore, registered_user: User) -> None:
        refresh_store.put(_record(registered_user.id, "e" * 64))
        assert refresh_store.delete("e" * 64) is True
        assert refresh_store.delete("e" * 64) is False
        assert refresh_store.delete("never-existed") is False
        assert refresh_store.lookup("e" * 64) is None


class TestRotate:
    def test_rotate_replaces(self, refresh_store: RefreshTokenStore, registered_user: User) -> None:
        refresh_store.put(_record(registered_user.id, "old"))
        assert refresh_store.rotate("old", _record(registered_user.id, "new")) is True
        assert refresh_store.lookup("old") is None
        assert refresh_store.lookup("new") is not None

    def test_second_rotate_refused(self, refresh_store: RefreshTokenStore, registered_user: User) -> None:
        """Loser of a rotation race must not get a new record stored."""
        refresh_store.put(_record(registered_user.id, "old"))
        assert refresh_store.rotate("old", _record(registered_user.id, "winner")) is True
        assert refresh_store.rotate("old", _record(registered_user.id, "loser")) is False
        assert refresh_store.lookup("winner") is not None
        assert refresh_store.lookup("loser") is None

    def test_rotate_absent(self, refresh_store: RefreshTokenStore, registered_user: User) -> None:
        assert refresh_store.rotate("missing", _record(registered_user.id, "new")) is False
        assert refresh_store.lookup("new") is None


class TestPurgeExpired:
    def test_only_expired_removed(self, refresh_store: RefreshTokenStore, registered_user: User) -> None:
        refresh_store.put(_record(registered_user.id, "live", expires_in=timedelta(days=1)))
        refresh_store.put(_record(registered_user.id, "dead1", expires_in=timedelta(hours=-1)))
        refresh_store.put(_record(registered_user.id, "dead2", expires_in=timedelta(days=-3)))
        assert refresh_store.purge_expired() == 2
        assert refresh_store.lookup("live") is not None
        assert refresh_store.lookup("dead1") is None

    def test_explicit_now(self, refresh_store: RefreshTokenStore, registered_user: User) -> None:
        refresh_store.put(_record(registered_user.id, "soon", expires_in=timedelta(hours=1)))
        assert refresh_store.purge_expired(now=datetime.now(timezone.utc)) == 0
        assert refresh_store.purge_expired(now=datetime.now(timezone.utc) + timedelta(hours=2)) == 1


class TestStorageFailure:
    def test_missing_table_raises_storage_failure(self, engine) -> None:
        """A broken store must surface as StorageFailure, not a raw SQLAlchemy error."""
        store = RefreshTokenStore(engine)
        with engine.begin() as conn:
            conn.exec_driver_sql("DROP TABLE refresh_tokens")
        with pytest.raises(StorageFailure):
            store.lookup("x")
        with pytest.raises(StorageFailure):
            store.delete("x")
