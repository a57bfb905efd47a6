"""
Protocol definitions for incidentlog.

Backends implement the synchronous storage primitives; the async engine
dispatches them onto worker threads.
"""

import threading
from abc import abstractmethod
from typing import Protocol, runtime_checkable

from incidentlog.core.types import IncidentRecord


@runtime_checkable
class IncidentBackend(Protocol):
    """Protocol for durable incident storage backends."""

    @abstractmethod
    def insert(self, record: IncidentRecord) -> None:
        """Insert or fully replace the record with the same id."""
        ...

    @abstractmethod
    def clear_all(self) -> int:
        """Remove every record. Returns the number removed."""
        ...

    @abstractmethod
    def delete_oldest(self, keep_count: int) -> int:
        """Keep the keep_count most recent records. Returns the number removed."""
        ...

    @abstractmethod
    def get_all(self, cancel: threading.Event | None = None) -> list[IncidentRecord]:
        """Return all records ordered by (timestamp_millis, id) ascending."""
        ...

    @abstractmethod
    def get_count(self, cancel: threading.Event | None = None) -> int:
        """Return the number of stored records."""
        ...

    @abstractmethod
    def close(self) -> None:
        """Release connections held by the backend."""
        ...
