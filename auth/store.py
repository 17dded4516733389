"""
auth/store.py -- SQLAlchemy Core persistence layer for accounts.

Pattern: Repository + Data Mapper. AccountStore is the repository;
_row_to_profile is the mapper. Service and route code never touches SQL
directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

Transactions:
  Registration is the only write path. transaction() wraps engine.begin():
  the block commits on clean exit and rolls back on ANY exception, including
  non-database ones raised by the caller inside the block (e.g. a ConfigError
  while minting tokens). A committed insert is never retried.

Errors:
  SQLAlchemyError never escapes this module. It is wrapped as StoreError with
  the operation name; IntegrityError on insert becomes DuplicateAccountError
  so the service can turn a lost uniqueness race into a ValidationError.

Timeouts:
  The deadline is fixed per store at construction (the timeout argument,
  Settings.store_timeout_seconds in the composition roots), not passed per
  call: SQLAlchemy applies it through driver connect args, so every
  round-trip on this engine shares it. SQLite uses it as the busy timeout;
  PostgreSQL gets statement_timeout plus pool checkout timeout. A timeout
  surfaces as StoreError like any other driver failure.

Layer rule: no imports from api/ or cache/.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, or_, select, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from core.errors import DuplicateAccountError, StoreError
from core.models import Account, Profile

logger = logging.getLogger("usergate.store")

_DEFAULT_DB_URL = "sqlite:///usergate.db"
_DEFAULT_TIMEOUT = 5.0

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(22), nullable=False, unique=True),
    Column("email", String(80), nullable=False, unique=True),
    Column("password", Text, nullable=False),  # bcrypt hash
    Column("created_at", String(40), nullable=False),  # ISO 8601, UTC offset included
    Column("updated_at", String(40), nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _engine_options(db_url: str, timeout: float) -> dict:
    if db_url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False, "timeout": timeout}}
    options: dict = {"pool_timeout": timeout, "pool_pre_ping": True}
    if db_url.startswith("postgresql"):
        options["connect_args"] = {"options": f"-c statement_timeout={int(timeout * 1000)}"}
    return options


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class AccountStore:
    """Repository for Account rows.

    Usage:
        store = AccountStore("sqlite:///usergate.db")
        with store.transaction() as conn:
            user_id = store.insert_user(conn, account)
        profile = store.find_by_id(user_id)
        store.close()
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL, timeout: float = _DEFAULT_TIMEOUT) -> None:
        self.engine: Engine = create_engine(db_url, **_engine_options(db_url, timeout))
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        self.create_schema()

    def create_schema(self) -> None:
        """Create the users table if it does not exist. Idempotent."""
        try:
            _metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise StoreError(f"create schema: {exc}") from exc

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        """Yield a connection inside BEGIN; COMMIT on exit, ROLLBACK on error."""
        try:
            with self.engine.begin() as conn:
                yield conn
        except SQLAlchemyError as exc:
            raise StoreError(f"account transaction: {exc}") from exc

    def insert_user(self, conn: Connection, account: Account) -> int:
        """Insert an account inside the caller's transaction and return its id.

        Raises DuplicateAccountError if username or email is already taken.
        """
        try:
            result = conn.execute(
                _users.insert().values(
                    username=account.username,
                    email=account.email,
                    password=account.password,
                    created_at=account.created_at.isoformat(),
                    updated_at=account.updated_at.isoformat(),
                )
            )
        except IntegrityError as exc:
            raise DuplicateAccountError("insert user: unique constraint violated") from exc
        except SQLAlchemyError as exc:
            raise StoreError(f"insert user: {exc}") from exc
        return result.inserted_primary_key[0]

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    def find_collision(self, username: str, email: str) -> str | None:
        """Return "username" or "email" if either is already registered, else None.

        One query covers both columns. When a single row matches on both, the
        username collision is reported.
        """
        query = (
            select(_users.c.username, _users.c.email)
            .where(or_(_users.c.username == username, _users.c.email == email))
            .limit(1)
        )
        try:
            with self.engine.connect() as conn:
                row = conn.execute(query).fetchone()
        except SQLAlchemyError as exc:
            raise StoreError(f"find collision: {exc}") from exc
        if row is None:
            return None
        if row.username == username:
            return "username"
        return "email"

    def find_credentials(self, email: str) -> tuple[int, str] | None:
        """Return (id, password_hash) for email, or None if not registered."""
        query = select(_users.c.id, _users.c.password).where(_users.c.email == email).limit(1)
        try:
            with self.engine.connect() as conn:
                row = conn.execute(query).fetchone()
        except SQLAlchemyError as exc:
            raise StoreError(f"find credentials: {exc}") from exc
        return (row.id, row.password) if row is not None else None

    def find_by_id(self, user_id: int) -> Profile | None:
        """Look up a profile by primary key. Returns None if not found."""
        query = select(
            _users.c.id, _users.c.username, _users.c.email, _users.c.created_at, _users.c.updated_at
        ).where(_users.c.id == user_id)
        try:
            with self.engine.connect() as conn:
                row = conn.execute(query).fetchone()
        except SQLAlchemyError as exc:
            raise StoreError(f"find user {user_id}: {exc}") from exc
        return _row_to_profile(row) if row is not None else None

    def count_users(self) -> int:
        try:
            with self.engine.connect() as conn:
                return conn.execute(text("SELECT COUNT(*) FROM users")).scalar() or 0
        except SQLAlchemyError as exc:
            raise StoreError(f"count users: {exc}") from exc

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError:
            logger.warning("Account store ping failed", exc_info=True)
            return False
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_profile(row) -> Profile:
    return Profile(
        id=row.id,
        username=row.username,
        email=row.email,
        created_at=datetime.fromisoformat(row.created_at),
        updated_at=datetime.fromisoformat(row.updated_at),
    )
