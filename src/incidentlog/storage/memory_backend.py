"""
In-memory backend for the incident log.

Same contract as the SQLite backend without durability. Useful for tests
and for hosts that only need incidents for the lifetime of the process.
"""

import logging
import threading

from incidentlog.core.types import IncidentRecord
from incidentlog.storage.errors import ReadCancelled, StoreClosedError

logger = logging.getLogger(__name__)


def _order_key(record: IncidentRecord) -> tuple[int, int]:
    return (record.timestamp_millis, record.id)


class MemoryIncidentBackend:
    """
    Thread-safe in-memory incident storage.

    Mutations build a new mapping and swap it in under the lock, so a
    reader holding the previous mapping keeps a consistent snapshot.
    """

    def __init__(self):
        self._records: dict[int, IncidentRecord] = {}
        self._lock = threading.Lock()
        self._closed = False

    def _check_open(self, operation: str) -> None:
        if self._closed:
            raise StoreClosedError(operation)

    def insert(self, record: IncidentRecord) -> None:
        """Insert or replace by id."""
        self._check_open("insert")
        with self._lock:
            records = dict(self._records)
            records[record.id] = record
            self._records = records

    def clear_all(self) -> int:
        """Remove every record."""
        self._check_open("clear_all")
        with self._lock:
            removed = len(self._records)
            self._records = {}
        return removed

    def delete_oldest(self, keep_count: int) -> int:
        """Keep the keep_count most recent records; ties keep the higher id."""
        if keep_count < 0:
            raise ValueError(f"keep_count must be >= 0, got {keep_count}")
        self._check_open("delete_oldest")
        with self._lock:
            if len(self._records) <= keep_count:
                return 0
            newest = sorted(self._records.values(), key=_order_key, reverse=True)
            kept = newest[:keep_count]
            removed = len(self._records) - len(kept)
            self._records = {r.id: r for r in kept}
        logger.debug(f"Evicted {removed} in-memory incidents (keep_count={keep_count})")
        return removed

    def get_all(self, cancel: threading.Event | None = None) -> list[IncidentRecord]:
        """Return all records ordered by (timestamp_millis, id)."""
        self._check_open("get_all")
        with self._lock:
            snapshot = self._records
        if cancel is not None and cancel.is_set():
            raise ReadCancelled("get_all")
        return sorted(snapshot.values(), key=_order_key)

    def get_count(self, cancel: threading.Event | None = None) -> int:
        self._check_open("get_count")
        if cancel is not None and cancel.is_set():
            raise ReadCancelled("get_count")
        with self._lock:
            return len(self._records)

    def close(self) -> None:
        with self._lock:
            self._closed = True
            self._records = {}
