"""
tests/test_cli.py -- Tests for the operator CLI in main.py.

Covers:
  - create-user stores a bcrypt hash that verifies
  - duplicate email and short password exit non-zero
  - purge-tokens removes only expired refresh-token rows

main.get_settings is patched to point DATABASE_URL at a temp file, so the
cached application settings are never touched.
"""

from __future__ import annotations

import io
from datetime import datetime, timedelta, timezone

import pytest

import main
from auth.models import RefreshTokenRecord
from auth.passwords import PasswordVerifier
from auth.store import RefreshTokenStore, UserStore, create_store_engine
from core.config import Settings


@pytest.fixture
def cli_settings(tmp_path, monkeypatch) -> Settings:
    settings = Settings(
        _env_file=None,
        secret_key="cli-test-secret-key-with-32-characters",
        database_url=f"sqlite:///{tmp_path / 'cli.db'}",
        password_hash_rounds=4,
    )
    monkeypatch.setattr(main, "get_settings", lambda: settings)
    return settings


def _run(monkeypatch, argv: list[str], stdin: str = "") -> int:
    monkeypatch.setattr("sys.stdin", io.StringIO(stdin))
    return main.main(argv)


class TestCreateUser:
    def test_creates_user(self, cli_settings: Settings, monkeypatch, capsys) -> None:
        assert _run(monkeypatch, ["create-user", "c@x.com", "--password-stdin"], "longenough1\n") == 0
        assert "Created user c@x.com" in capsys.readouterr().out

        engine = create_store_engine(cli_settings.database_url)
        try:
            user = UserStore(engine).get_by_email("c@x.com")
        finally:
            engine.dispose()
        assert user is not None
        assert PasswordVerifier(rounds=4).verify(user.password_hash, "longenough1")

    def test_duplicate_email(self, cli_settings: Settings, monkeypatch, capsys) -> None:
        assert _run(monkeypatch, ["create-user", "c@x.com", "--password-stdin"], "longenough1\n") == 0
        assert _run(monkeypatch, ["create-user", "c@x.com", "--password-stdin"], "longenough2\n") == 1
        assert "already exists" in capsys.readouterr().out

    def test_short_password(self, cli_settings: Settings, monkeypatch, capsys) -> None:
        assert _run(monkeypatch, ["create-user", "d@x.com", "--password-stdin"], "short\n") == 1
        assert "at least 8 characters" in capsys.readouterr().out


class TestPurgeTokens:
    def test_purges_expired_only(self, cli_settings: Settings, monkeypatch, capsys) -> None:
        assert _run(monkeypatch, ["create-user", "e@x.com", "--password-stdin"], "longenough1\n") == 0
        engine = create_store_engine(cli_settings.database_url)
        try:
            user_id = UserStore(engine).get_by_email("e@x.com").id
            store = RefreshTokenStore(engine)
            now = datetime.now(timezone.utc)
            store.put(RefreshTokenRecord(user_id=user_id, token_hash="live", expires_at=now + timedelta(days=1)))
            store.put(RefreshTokenRecord(user_id=user_id, token_hash="dead", expires_at=now - timedelta(days=1)))
        finally:
            engine.dispose()

        assert _run(monkeypatch, ["purge-tokens"]) == 0
        assert "Purged 1 expired" in capsys.readouterr().out
