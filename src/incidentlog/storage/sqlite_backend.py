"""
SQLite backend for the incident log.

Every primitive runs inside one explicit transaction. Writers take a
process-wide lock and `BEGIN IMMEDIATE`; readers open a deferred transaction
on their thread-local connection. The database runs in WAL journal mode, so
a reader sees exactly one committed snapshot for the whole scan and never
blocks a writer.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from incidentlog.core.types import IncidentRecord
from incidentlog.storage.errors import (
    IncidentStoreError,
    ReadCancelled,
    ReadFailure,
    StoreClosedError,
    WriteFailure,
)

logger = logging.getLogger(__name__)

# Largest value an SQLite INTEGER (and a LIMIT bound) can hold
SQLITE_MAX_INTEGER = 2**63 - 1


class SQLiteIncidentBackend:
    """
    SQLite-backed storage for incident records.

    Schema design:
    1. `id` is the primary key, so INSERT OR REPLACE gives full-row upsert
    2. (timestamp_millis, id) index serves both the ordered scan and eviction
    """

    SCHEMA = """
    CREATE TABLE IF NOT EXISTS incidents (
        id INTEGER PRIMARY KEY,
        timestamp_millis INTEGER NOT NULL,
        error_code TEXT NOT NULL,
        severity TEXT NOT NULL,
        message TEXT NOT NULL,
        screen_name TEXT,
        metadata_json TEXT NOT NULL
    );

    CREATE INDEX IF NOT EXISTS idx_incidents_order
        ON incidents(timestamp_millis, id);
    """

    _INSERT = """
        INSERT OR REPLACE INTO incidents
        (id, timestamp_millis, error_code, severity, message, screen_name, metadata_json)
        VALUES (?, ?, ?, ?, ?, ?, ?)
    """

    _CLEAR_ALL = "DELETE FROM incidents"

    # Ties on the boundary timestamp keep the higher id
    _DELETE_OLDEST = """
        DELETE FROM incidents
        WHERE id NOT IN (
            SELECT id FROM incidents
            ORDER BY timestamp_millis DESC, id DESC
            LIMIT ?
        )
    """

    _SELECT_ALL = """
        SELECT id, timestamp_millis, error_code, severity, message, screen_name, metadata_json
        FROM incidents
        ORDER BY timestamp_millis ASC, id ASC
    """

    _COUNT = "SELECT COUNT(*) FROM incidents"

    def __init__(
        self,
        db_path: str | Path,
        busy_timeout: float = 5.0,
        cached_statements: int = 128,
        read_batch_size: int = 256,
    ):
        """
        Initialize SQLite backend.

        Args:
            db_path: Path to the database file (parent directories are created)
            busy_timeout: Seconds a connection waits on a locked database
            cached_statements: Prepared statement cache size per connection
            read_batch_size: Rows fetched per batch during get_all
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._busy_timeout = busy_timeout
        self._cached_statements = cached_statements
        self._read_batch_size = read_batch_size

        self._local = threading.local()
        self._write_lock = threading.Lock()
        self._connections: list[sqlite3.Connection] = []
        self._connections_lock = threading.Lock()
        self._closed = False

        self._init_schema()

        logger.info(f"SQLiteIncidentBackend initialized: {self.db_path}")

    # -------------------------------------------------------------------------
    # Connection management
    # -------------------------------------------------------------------------

    def _get_conn(self) -> sqlite3.Connection:
        """Get thread-local connection."""
        conn = getattr(self._local, "conn", None)
        if conn is None:
            conn = sqlite3.connect(
                str(self.db_path),
                timeout=self._busy_timeout,
                isolation_level=None,  # transactions are issued explicitly
                check_same_thread=False,
                cached_statements=self._cached_statements,
            )
            conn.row_factory = sqlite3.Row
            with self._connections_lock:
                self._connections.append(conn)
            self._local.conn = conn
        return conn

    def _init_schema(self) -> None:
        """Initialize database schema and journal mode."""
        try:
            conn = self._get_conn()
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=FULL")
            conn.executescript(self.SCHEMA)
        except sqlite3.Error as e:
            logger.error(f"Failed to initialize incident schema at {self.db_path}: {e}")
            raise WriteFailure("initialize", str(e)) from e

    def _check_open(self, operation: str) -> None:
        if self._closed:
            raise StoreClosedError(operation)

    @contextmanager
    def transaction(self, mode: str = "IMMEDIATE") -> Iterator[sqlite3.Cursor]:
        """
        Context manager for a single transaction.

        Commits when the block exits normally, rolls back on any exception.
        `mode` is DEFERRED for reads and IMMEDIATE for writes.
        """
        conn = self._get_conn()
        cursor = conn.cursor()
        try:
            cursor.execute(f"BEGIN {mode}")
            try:
                yield cursor
                cursor.execute("COMMIT")
            except BaseException:
                self._rollback(conn)
                raise
        finally:
            cursor.close()

    @staticmethod
    def _rollback(conn: sqlite3.Connection) -> None:
        if not conn.in_transaction:
            return
        try:
            conn.execute("ROLLBACK")
        except sqlite3.Error as e:
            # The original failure is what the caller needs to see
            logger.error(f"Rollback failed: {e}")

    @contextmanager
    def _translate_errors(
        self,
        operation: str,
        failure: type[IncidentStoreError],
    ) -> Iterator[None]:
        """Convert medium-level sqlite3 errors into the store's failure types."""
        try:
            yield
        except (sqlite3.Error, OverflowError) as e:
            logger.error(f"Incident store {operation} failed: {e}")
            raise failure(operation, str(e)) from e

    # -------------------------------------------------------------------------
    # Write primitives
    # -------------------------------------------------------------------------

    def insert(self, record: IncidentRecord) -> None:
        """Insert a record, replacing any existing row with the same id."""
        self._check_open("insert")
        with self._write_lock, self._translate_errors("insert", WriteFailure):
            with self.transaction() as cursor:
                cursor.execute(self._INSERT, (
                    record.id,
                    record.timestamp_millis,
                    record.error_code,
                    record.severity,
                    record.message,
                    record.screen_name,
                    record.metadata_json,
                ))
        logger.debug(f"Stored incident {record.id} ({record.error_code})")

    def clear_all(self) -> int:
        """Delete every record."""
        self._check_open("clear_all")
        with self._write_lock, self._translate_errors("clear_all", WriteFailure):
            with self.transaction() as cursor:
                cursor.execute(self._CLEAR_ALL)
                removed = cursor.rowcount
        logger.info(f"Cleared {removed} incidents")
        return removed

    def delete_oldest(self, keep_count: int) -> int:
        """Keep the keep_count most recent records and delete the rest."""
        if keep_count < 0:
            raise ValueError(f"keep_count must be >= 0, got {keep_count}")
        self._check_open("delete_oldest")
        with self._write_lock, self._translate_errors("delete_oldest", WriteFailure):
            with self.transaction() as cursor:
                cursor.execute(self._DELETE_OLDEST, (min(keep_count, SQLITE_MAX_INTEGER),))
                removed = cursor.rowcount
        if removed:
            logger.info(f"Evicted {removed} incidents (keep_count={keep_count})")
        return removed

    # -------------------------------------------------------------------------
    # Read primitives
    # -------------------------------------------------------------------------

    def get_all(self, cancel: threading.Event | None = None) -> list[IncidentRecord]:
        """Return a materialized, ordered snapshot of all records."""
        self._check_open("get_all")
        records: list[IncidentRecord] = []
        with self._translate_errors("get_all", ReadFailure):
            with self.transaction("DEFERRED") as cursor:
                cursor.execute(self._SELECT_ALL)
                while True:
                    if cancel is not None and cancel.is_set():
                        raise ReadCancelled("get_all")
                    rows = cursor.fetchmany(self._read_batch_size)
                    if not rows:
                        break
                    records.extend(IncidentRecord(**dict(row)) for row in rows)
        return records

    def get_count(self, cancel: threading.Event | None = None) -> int:
        """Return the number of stored records."""
        self._check_open("get_count")
        if cancel is not None and cancel.is_set():
            raise ReadCancelled("get_count")
        with self._translate_errors("get_count", ReadFailure):
            with self.transaction("DEFERRED") as cursor:
                cursor.execute(self._COUNT)
                (count,) = cursor.fetchone()
        return count

    def close(self) -> None:
        """Close every connection opened by this backend."""
        with self._write_lock:
            self._closed = True
            with self._connections_lock:
                connections, self._connections = self._connections, []
            for conn in connections:
                try:
                    conn.close()
                except sqlite3.Error as e:
                    logger.warning(f"Error closing incident store connection: {e}")
        logger.info(f"SQLiteIncidentBackend closed: {self.db_path}")
