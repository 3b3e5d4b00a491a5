"""SQLite-backed identity registry.

One short-lived connection per operation. Names and symbols are stored
alongside their folded forms so case-insensitive lookups hit an index and
behave the same for non-ASCII names. ``register`` runs under
``BEGIN IMMEDIATE`` so the conflict re-check and the insert are one
transaction; the ``subject`` UNIQUE constraint is the final backstop.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path

from tokengate.adapters.registry.base import (
    AbstractIdentityRegistry,
    ConflictPredicate,
    IdentityRegistration,
    fold_name,
    fold_symbol,
)
from tokengate.core.errors import IdentityTakenAppError, StoreUnavailableAppError

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS token_identities (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    subject TEXT NOT NULL UNIQUE,
    name TEXT NOT NULL,
    symbol TEXT NOT NULL,
    name_folded TEXT NOT NULL,
    symbol_folded TEXT NOT NULL,
    created_at REAL NOT NULL,
    graduated INTEGER NOT NULL DEFAULT 0,
    verified INTEGER,
    active INTEGER NOT NULL DEFAULT 1
);
CREATE INDEX IF NOT EXISTS idx_token_identities_folded
    ON token_identities (name_folded, symbol_folded);
"""

_COLUMNS = "subject, name, symbol, created_at, graduated, verified, active"
_PRECEDENCE = "ORDER BY graduated DESC, created_at DESC LIMIT 1"


def _row_to_registration(row: sqlite3.Row) -> IdentityRegistration:
    return IdentityRegistration(
        subject=row["subject"],
        name=row["name"],
        symbol=row["symbol"],
        created_at=datetime.fromtimestamp(row["created_at"], tz=timezone.utc),
        graduated=bool(row["graduated"]),
        verified=None if row["verified"] is None else bool(row["verified"]),
        active=bool(row["active"]),
    )


def _unavailable(exc: sqlite3.Error) -> StoreUnavailableAppError:
    logger.error(
        "registry.store_error",
        extra={"store": "sqlite", "error_type": type(exc).__name__, "error_msg": str(exc)},
    )
    return StoreUnavailableAppError(
        code="registry_unavailable",
        message="Token registry is unavailable",
        details={"store": "sqlite"},
    )


class SqliteIdentityRegistry(AbstractIdentityRegistry):
    """Identity registry stored in a single SQLite table."""

    def __init__(self, db_path: str | Path, *, timeout_seconds: float = 5.0) -> None:
        self._db_path = Path(db_path)
        self._timeout = timeout_seconds
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = self._connect()
        try:
            conn.executescript(_SCHEMA)
        finally:
            conn.close()

    def _connect(self) -> sqlite3.Connection:
        # isolation_level=None: transactions are opened explicitly
        conn = sqlite3.connect(self._db_path, timeout=self._timeout, isolation_level=None)
        conn.row_factory = sqlite3.Row
        return conn

    def _fetch_one(self, query: str, params: tuple) -> IdentityRegistration | None:
        try:
            conn = self._connect()
            try:
                row = conn.execute(query, params).fetchone()
            finally:
                conn.close()
        except sqlite3.Error as exc:
            raise _unavailable(exc) from exc
        return _row_to_registration(row) if row else None

    def find_identity(self, name: str, symbol: str | None = None) -> IdentityRegistration | None:
        if symbol:
            return self._fetch_one(
                f"SELECT {_COLUMNS} FROM token_identities "
                f"WHERE active = 1 AND name_folded = ? AND symbol_folded = ? {_PRECEDENCE}",
                (fold_name(name), fold_symbol(symbol)),
            )
        return self._fetch_one(
            f"SELECT {_COLUMNS} FROM token_identities "
            f"WHERE active = 1 AND name_folded = ? {_PRECEDENCE}",
            (fold_name(name),),
        )

    def find_subject(self, subject: str) -> IdentityRegistration | None:
        return self._fetch_one(
            f"SELECT {_COLUMNS} FROM token_identities WHERE subject = ?",
            (subject,),
        )

    def register(
        self,
        registration: IdentityRegistration,
        *,
        is_conflict: ConflictPredicate,
    ) -> IdentityRegistration:
        try:
            conn = self._connect()
        except sqlite3.Error as exc:
            raise _unavailable(exc) from exc

        try:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM token_identities "
                f"WHERE active = 1 AND name_folded = ? AND symbol_folded = ? {_PRECEDENCE}",
                (fold_name(registration.name), fold_symbol(registration.symbol)),
            ).fetchone()
            if row is not None and is_conflict(_row_to_registration(row)):
                conn.execute("ROLLBACK")
                raise IdentityTakenAppError(
                    code="identity_taken",
                    message="Token name and symbol are already taken",
                )

            conn.execute(
                "INSERT INTO token_identities "
                "(subject, name, symbol, name_folded, symbol_folded, created_at, graduated, verified, active) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    registration.subject,
                    registration.name,
                    registration.symbol,
                    fold_name(registration.name),
                    fold_symbol(registration.symbol),
                    registration.created_at.timestamp(),
                    int(registration.graduated),
                    None if registration.verified is None else int(registration.verified),
                    int(registration.active),
                ),
            )
            conn.execute("COMMIT")
        except sqlite3.IntegrityError as exc:
            conn.execute("ROLLBACK")
            raise IdentityTakenAppError(
                code="subject_taken",
                message="This token is already registered",
            ) from exc
        except sqlite3.Error as exc:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise _unavailable(exc) from exc
        finally:
            conn.close()

        return registration
