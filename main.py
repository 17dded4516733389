#!/usr/bin/env python3
"""
UserGate -- account registration, login, and bearer-token sessions.

Usage:
  python main.py init-db
  python main.py check
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8080
  python main.py serve --reload

Environment variables (see core/config.py for the full list):
  JWT_SECRET_KEY   HMAC signing key, at least 32 characters.
  DATABASE_URL     SQLAlchemy URL for the account store (default sqlite:///usergate.db).
  REDIS_URL        Session store URL (default redis://localhost:6379/0).
  DEBUG            true = auto-generate a throwaway JWT_SECRET_KEY.
"""

import argparse
import sys

from auth.store import AccountStore
from cache.store import SessionStore
from core.config import Settings, get_settings
from core.errors import StoreError


def _init_db(settings: Settings) -> int:
    print("Creating account schema...", end=" ", flush=True)
    try:
        store = AccountStore(settings.database_url, timeout=settings.store_timeout_seconds)
    except StoreError as e:
        print(f"\n  [!] {e}")
        return 1
    try:
        print(f"done. {store.count_users()} account(s) present.")
    finally:
        store.close()
    return 0


def _check(settings: Settings) -> int:
    """Ping both stores and report. Exit status 1 if either is unreachable."""
    failed = 0
    if not settings.jwt_secret_key:
        print("  [!] JWT_SECRET_KEY is not set -- tokens cannot be issued.")
        failed += 1

    try:
        accounts = AccountStore(settings.database_url, timeout=settings.store_timeout_seconds)
    except StoreError as e:
        print(f"  [!] database: {e}")
        failed += 1
    else:
        ok = accounts.ping()
        accounts.close()
        print(f"  database: {'ok' if ok else 'unreachable'}")
        failed += 0 if ok else 1

    sessions = SessionStore.from_url(settings.redis_url, timeout=settings.store_timeout_seconds)
    ok = sessions.ping()
    sessions.close()
    print(f"  cache:    {'ok' if ok else 'unreachable'}")
    failed += 0 if ok else 1

    return 1 if failed else 0


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("asgi:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="usergate",
        description="Account registration, login, and bearer-token session service.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py init-db
  DATABASE_URL=postgresql+psycopg://app@db/usergate python main.py check
  JWT_SECRET_KEY=... python main.py serve --port 8080
        """,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")
    sub.add_parser("init-db", help="Create the users table if it does not exist")
    sub.add_parser("check", help="Verify configuration and store connectivity")
    serve = sub.add_parser("serve", help="Run the HTTP API under uvicorn")
    serve.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000)")
    serve.add_argument("--reload", action="store_true", help="Restart on code changes (development only)")
    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        return

    if args.command == "serve":
        sys.exit(_serve(args))

    settings = get_settings()
    if args.command == "init-db":
        sys.exit(_init_db(settings))
    sys.exit(_check(settings))


if __name__ == "__main__":
    main()
