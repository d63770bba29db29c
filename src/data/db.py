"""
Experience Upgrades — Upgrade Record Database.

Per-upgrade view/snooze/completion state persists in SQLite across launches.
Callers open a read or write transaction and hand it to the finder; every
finder call runs entirely inside the transaction it was given.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Iterator

from src.data.models import UpgradeRecord
from src.ports.storage_port import UpgradeStorageError

logger = logging.getLogger(__name__)

_TABLE = "experience_upgrades"
_MUTABLE_COLUMNS = ("is_complete", "first_viewed_at", "last_snoozed_at")


def _to_text(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _from_text(value: str | None) -> datetime | None:
    """Parse a stored ISO timestamp; naive values are read as UTC."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class SQLiteReadTransaction:
    """Read side of an open SQLite transaction. Implements ReadTransaction."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> UpgradeRecord:
        return UpgradeRecord(
            unique_id=row["unique_id"],
            is_complete=bool(row["is_complete"]),
            first_viewed_at=_from_text(row["first_viewed_at"]),
            last_snoozed_at=_from_text(row["last_snoozed_at"]),
        )

    def fetch(self, unique_id: str) -> UpgradeRecord | None:
        """Fetch a single record by key, or None if no row exists."""
        try:
            row = self._conn.execute(
                f"SELECT * FROM {_TABLE} WHERE unique_id = ?", (unique_id,)
            ).fetchone()
        except sqlite3.Error as exc:
            raise UpgradeStorageError(f"Failed to fetch upgrade {unique_id!r}: {exc}") from exc
        if row is None:
            return None
        return self._row_to_record(row)

    def fetch_many(self, unique_ids: Iterable[str]) -> Iterator[UpgradeRecord]:
        """Return a one-shot iterator over the existing rows among unique_ids.

        Keys without a row are simply absent from the result.
        """
        ids = list(dict.fromkeys(unique_ids))
        if not ids:
            return iter(())

        placeholders = ", ".join("?" for _ in ids)
        try:
            cursor = self._conn.execute(
                f"SELECT * FROM {_TABLE} WHERE unique_id IN ({placeholders})", ids
            )
        except sqlite3.Error as exc:
            raise UpgradeStorageError(f"Failed to fetch upgrades: {exc}") from exc
        return self._iter_cursor(cursor)

    def _iter_cursor(self, cursor: sqlite3.Cursor) -> Iterator[UpgradeRecord]:
        try:
            for row in cursor:
                yield self._row_to_record(row)
        except sqlite3.Error as exc:
            raise UpgradeStorageError(f"Failed to read upgrade rows: {exc}") from exc


class SQLiteWriteTransaction(SQLiteReadTransaction):
    """Write side of an open SQLite transaction. Implements WriteTransaction."""

    def upsert(self, record: UpgradeRecord, fields: Iterable[str]) -> None:
        """Insert the record, or update only `fields` if the row exists.

        Columns not named in `fields` keep whatever the stored row holds.
        """
        fields = tuple(dict.fromkeys(fields))
        unknown = set(fields) - set(_MUTABLE_COLUMNS)
        if unknown:
            raise ValueError(f"Unknown upgrade fields: {sorted(unknown)}")

        if fields:
            assignments = ", ".join(f"{col} = excluded.{col}" for col in fields)
            conflict = f"DO UPDATE SET {assignments}"
        else:
            conflict = "DO NOTHING"

        try:
            self._conn.execute(
                f"""
                INSERT INTO {_TABLE}
                    (unique_id, is_complete, first_viewed_at, last_snoozed_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(unique_id) {conflict}
                """,
                (
                    record.unique_id,
                    int(record.is_complete),
                    _to_text(record.first_viewed_at),
                    _to_text(record.last_snoozed_at),
                ),
            )
        except sqlite3.Error as exc:
            raise UpgradeStorageError(f"Failed to upsert upgrade {record.unique_id!r}: {exc}") from exc
        logger.debug("Upserted upgrade %s (%s)", record.unique_id, ", ".join(fields) or "insert only")


class UpgradeDB:
    """SQLite-backed storage for experience upgrade records."""

    def __init__(self, db_path: str | None = None) -> None:
        if db_path is None:
            from src.config import settings
            db_path = settings.DATABASE_PATH

        self._db_path = db_path
        self._shared_conn: sqlite3.Connection | None = None
        if db_path == ":memory:":
            # Every new connection to :memory: is a separate empty database
            self._shared_conn = self._open()
        else:
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _open(self) -> sqlite3.Connection:
        # Autocommit mode: transactions are opened explicitly with BEGIN
        conn = sqlite3.connect(self._db_path, isolation_level=None)
        conn.row_factory = sqlite3.Row
        return conn

    def _connect(self) -> sqlite3.Connection:
        if self._shared_conn is not None:
            return self._shared_conn
        return self._open()

    def _release(self, conn: sqlite3.Connection) -> None:
        if conn is not self._shared_conn:
            conn.close()

    def _init_db(self) -> None:
        """Create the upgrades table if it doesn't exist, and migrate schema."""
        conn = self._connect()
        try:
            conn.execute(f"""
                CREATE TABLE IF NOT EXISTS {_TABLE} (
                    unique_id       TEXT    PRIMARY KEY,
                    is_complete     INTEGER NOT NULL DEFAULT 0,
                    first_viewed_at TEXT,
                    last_snoozed_at TEXT
                )
            """)
            # Migrate existing DBs: add new columns if missing
            existing_cols = {
                row[1] for row in conn.execute(f"PRAGMA table_info({_TABLE})").fetchall()
            }
            if "first_viewed_at" not in existing_cols:
                conn.execute(f"ALTER TABLE {_TABLE} ADD COLUMN first_viewed_at TEXT")
            if "last_snoozed_at" not in existing_cols:
                conn.execute(f"ALTER TABLE {_TABLE} ADD COLUMN last_snoozed_at TEXT")
        finally:
            self._release(conn)
        logger.debug("Upgrades table initialized at %s", self._db_path)

    @staticmethod
    def _rollback(conn: sqlite3.Connection) -> None:
        """Roll back an open transaction. A failed rollback is logged so the
        error that triggered it is the one the caller sees."""
        if not conn.in_transaction:
            return
        try:
            conn.execute("ROLLBACK")
        except sqlite3.Error as exc:
            logger.error("Failed to roll back upgrade transaction: %s", exc)

    @contextmanager
    def _transaction(self, begin: str, factory: type[SQLiteReadTransaction]):
        conn = self._connect()
        try:
            try:
                conn.execute(begin)
            except sqlite3.Error as exc:
                raise UpgradeStorageError(f"Failed to open transaction: {exc}") from exc

            try:
                yield factory(conn)
            except BaseException:
                self._rollback(conn)
                raise

            try:
                conn.execute("COMMIT")
            except sqlite3.Error as exc:
                self._rollback(conn)
                raise UpgradeStorageError(f"Failed to commit transaction: {exc}") from exc
        finally:
            self._release(conn)

    def read(self):
        """Open a read transaction: `with db.read() as txn: ...`."""
        return self._transaction("BEGIN", SQLiteReadTransaction)

    def write(self):
        """Open a write transaction; rolled back if the block raises."""
        return self._transaction("BEGIN IMMEDIATE", SQLiteWriteTransaction)

    def list_all(self) -> list[UpgradeRecord]:
        """Return every stored row, including ids the catalog no longer knows."""
        conn = self._connect()
        try:
            rows = conn.execute(f"SELECT * FROM {_TABLE} ORDER BY unique_id").fetchall()
        finally:
            self._release(conn)
        return [SQLiteReadTransaction._row_to_record(r) for r in rows]


if __name__ == "__main__":
    from src.config import settings

    logging.basicConfig(level=settings.log_level, format="%(levelname)s: %(message)s")

    db = UpgradeDB(db_path="data/test_upgrades.db")
    now = datetime.now(timezone.utc)
    with db.write() as txn:
        txn.upsert(UpgradeRecord("chatColors", first_viewed_at=now), ["first_viewed_at"])
        txn.upsert(UpgradeRecord("linkPreviews", last_snoozed_at=now), ["last_snoozed_at"])
        txn.upsert(UpgradeRecord("chatColors", is_complete=True), ["is_complete"])

    print(f"All upgrades: {db.list_all()}")
    with db.read() as txn:
        print(f"Fetched: {list(txn.fetch_many(['chatColors', 'missing']))}")
