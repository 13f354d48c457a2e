"""
auth/store.py -- SQLAlchemy Core persistence layer for accounts.

Pattern: Repository + Data Mapper.
AccountStore is the repository; _row_to_account is the mapper.
Route and service code never touches SQL directly.

Contract used by the rest of auth/:
  find_by_username, insert, delete_by_username, scan_expired_ephemeral
  (plus update_credentials for the rehash-on-login upgrade).

  delete_by_username() is idempotent and atomic: it reports whether *this*
  call removed the row. The expiry sweep relies on that to emit exactly one
  notification per account when several connections scan at once.

Security:
  All queries use bound parameters. No f-strings in SQL.

Timestamps are stored as fixed-width UTC strings (_to_db) so that string
comparison in SQL matches chronological order.

DB path default: fivechan_auth.db in the project root (see core.config).

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, Integer, MetaData, String, Table, Text, create_engine, event, false, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.errors import ConflictError, PersistenceFailure
from auth.models import Account, HashFormat

logger = logging.getLogger("fivechan.auth.store")

_TS_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(255), nullable=False, unique=True),
    Column("email", String(255), nullable=False, server_default=""),
    Column("password_hash", Text, nullable=False),
    Column("salt", Text, nullable=False),
    Column("hash_format", String(30), nullable=False),
    Column("is_ephemeral", Boolean, nullable=False, server_default=false(), index=True),
    Column("expires_at", String(32), index=True),  # NULL for standard accounts
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so scans do not block concurrent inserts.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _to_db(ts: datetime) -> str:
    if ts.tzinfo is None:
        raise ValueError("naive datetime; pass a timezone-aware UTC timestamp")
    return ts.astimezone(timezone.utc).strftime(_TS_FORMAT)


def _from_db(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.strptime(value, _TS_FORMAT).replace(tzinfo=timezone.utc)


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class AccountStore:
    """Repository for Account records.

    Usage:
        store = AccountStore("sqlite:///fivechan_auth.db")
        store.insert(Account(username="alice", password_hash=..., salt=...))
        account = store.find_by_username("alice")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def find_by_username(self, username: str) -> Account | None:
        """Look up an account by exact username (case-sensitive). None if not found."""
        try:
            with self.engine.connect() as conn:
                row = conn.execute(_users.select().where(_users.c.username == username)).fetchone()
        except SQLAlchemyError as exc:
            raise PersistenceFailure("account lookup failed") from exc
        if row is None:
            return None
        try:
            return _row_to_account(row)
        except ValueError as exc:
            raise PersistenceFailure("account record unreadable") from exc

    def scan_expired_ephemeral(self, now: datetime) -> list[Account]:
        """Return ephemeral accounts whose expires_at is at or before now, oldest first.

        Standard accounts are never returned, whatever their expires_at holds.
        """
        query = (
            _users.select()
            .where(_users.c.is_ephemeral.is_(True))
            .where(_users.c.expires_at.is_not(None))
            .where(_users.c.expires_at <= _to_db(now))
            .order_by(_users.c.expires_at, _users.c.id)
        )
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(query).fetchall()
        except SQLAlchemyError as exc:
            raise PersistenceFailure("expiry scan failed") from exc
        try:
            return [_row_to_account(r) for r in rows]
        except ValueError as exc:
            raise PersistenceFailure("expiry scan returned an unreadable record") from exc

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            with self.engine.connect() as conn:
                conn.execute(select(1))
        except SQLAlchemyError:
            logger.warning("Account store ping failed", exc_info=True)
            return False
        return True

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert(self, account: Account) -> None:
        """Insert a new account.

        Raises ConflictError if the username is taken (the existing record is
        left untouched) and PersistenceFailure on any other database error.
        """
        created_at = account.created_at or _now()
        try:
            with self.engine.connect() as conn:
                conn.execute(
                    _users.insert().values(
                        username=account.username,
                        email=account.email,
                        password_hash=account.password_hash,
                        salt=account.salt,
                        hash_format=HashFormat(account.hash_format).value,
                        is_ephemeral=account.is_ephemeral,
                        expires_at=_to_db(account.expires_at) if account.expires_at else None,
                        created_at=_to_db(created_at),
                    )
                )
                conn.commit()
        except IntegrityError as exc:
            raise ConflictError() from exc
        except SQLAlchemyError as exc:
            raise PersistenceFailure("account insert failed") from exc
        account.created_at = created_at

    def delete_by_username(self, username: str) -> bool:
        """Delete the account if it exists.

        Returns True if this call removed a row, False if there was nothing to
        delete. Deleting a missing account is not an error.
        """
        try:
            with self.engine.connect() as conn:
                result = conn.execute(_users.delete().where(_users.c.username == username))
                conn.commit()
        except SQLAlchemyError as exc:
            raise PersistenceFailure("account delete failed") from exc
        return result.rowcount > 0

    def update_credentials(self, username: str, password_hash: str, salt: str, hash_format: HashFormat) -> bool:
        """Replace hash, salt and format together. Returns True if a row was updated."""
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _users.update()
                    .where(_users.c.username == username)
                    .values(password_hash=password_hash, salt=salt, hash_format=HashFormat(hash_format).value)
                )
                conn.commit()
        except SQLAlchemyError as exc:
            raise PersistenceFailure("credential update failed") from exc
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _parse_format(value: str) -> HashFormat | str:
    # Unknown tags pass through as-is; verify_password treats them as a mismatch.
    try:
        return HashFormat(value)
    except ValueError:
        logger.warning("Unknown hash format %r in account record", value)
        return value


def _row_to_account(row) -> Account:
    return Account(
        username=row.username,
        email=row.email or "",
        password_hash=row.password_hash,
        salt=row.salt,
        hash_format=_parse_format(row.hash_format),
        is_ephemeral=bool(row.is_ephemeral),
        expires_at=_from_db(row.expires_at),
        created_at=_from_db(row.created_at),
    )
