#!/usr/bin/env python3
"""
Session service -- operator CLI.

Usage:
  python main.py create-user a@x.com                  # prompts for the password
  python main.py create-user a@x.com --password-stdin < secret.txt
  python main.py purge-tokens                         # drop expired refresh-token rows
  python main.py serve --host 0.0.0.0 --port 8085

Configuration comes from the environment / .env (see core/config.py).
DATABASE_URL selects the store; SECRET_KEY must be set unless DEBUG=true.
"""

import argparse
import getpass
import sys

from sqlalchemy.exc import IntegrityError

from auth.errors import StorageFailure
from auth.models import User
from auth.passwords import hash_password
from auth.store import RefreshTokenStore, UserStore, create_store_engine
from core.config import get_settings

_MIN_PASSWORD_LENGTH = 8


def _read_password(from_stdin: bool) -> str:
    """Read a new password from stdin or an interactive, confirmed prompt."""
    if from_stdin:
        return sys.stdin.readline().rstrip("\n")
    password = getpass.getpass("Password: ")
    if password != getpass.getpass("Confirm password: "):
        print("  [!] Passwords do not match.")
        return ""
    return password


def cmd_create_user(args: argparse.Namespace) -> int:
    settings = get_settings()
    email = args.email.strip()
    password = _read_password(args.password_stdin)
    if len(password) < _MIN_PASSWORD_LENGTH:
        print(f"  [!] Password must be at least {_MIN_PASSWORD_LENGTH} characters.")
        return 1

    engine = create_store_engine(settings.database_url)
    try:
        user_id = UserStore(engine).create_user(
            User(email=email, password_hash=hash_password(password, rounds=settings.password_hash_rounds))
        )
    except IntegrityError:
        print(f"  [!] A user with email '{email}' already exists.")
        return 1
    except StorageFailure as e:
        print(f"  [!] {e}")
        return 1
    finally:
        engine.dispose()

    print(f"  Created user {email} (id={user_id})")
    return 0


def cmd_purge_tokens(args: argparse.Namespace) -> int:
    settings = get_settings()
    engine = create_store_engine(settings.database_url)
    try:
        removed = RefreshTokenStore(engine).purge_expired()
    except StorageFailure as e:
        print(f"  [!] {e}")
        return 1
    finally:
        engine.dispose()
    print(f"  Purged {removed} expired refresh token(s)")
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("api.main:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="authsession",
        description="Password login with rotating refresh tokens.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_user = sub.add_parser("create-user", help="Register a user with email and password")
    p_user.add_argument("email", help="Login email (must be unique)")
    p_user.add_argument(
        "--password-stdin",
        action="store_true",
        help="Read the password from the first line of stdin instead of prompting",
    )
    p_user.set_defaults(func=cmd_create_user)

    p_purge = sub.add_parser("purge-tokens", help="Delete expired refresh-token records")
    p_purge.set_defaults(func=cmd_purge_tokens)

    p_serve = sub.add_parser("serve", help="Run the HTTP API with uvicorn")
    p_serve.add_argument("--host", default="127.0.0.1")
    p_serve.add_argument("--port", type=int, default=8085)
    p_serve.add_argument("--reload", action="store_true", help="Auto-reload on code changes (dev only)")
    p_serve.set_defaults(func=cmd_serve)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
