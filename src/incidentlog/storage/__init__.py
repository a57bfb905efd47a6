"""Storage providers for incidentlog.

SQLite is the durable default; the in-memory backend shares its contract.
"""

from incidentlog.storage.engine import IncidentStorageEngine
from incidentlog.storage.errors import (
    IncidentStoreError,
    ReadCancelled,
    ReadFailure,
    StoreClosedError,
    WriteFailure,
)
from incidentlog.storage.memory_backend import MemoryIncidentBackend
from incidentlog.storage.queries import IncidentQueryLayer
from incidentlog.storage.retention import RetentionEnforcer
from incidentlog.storage.sqlite_backend import SQLiteIncidentBackend
from incidentlog.storage.store import IncidentStore, create_backend, create_store

__all__ = [
    # Backends
    "SQLiteIncidentBackend",
    "MemoryIncidentBackend",
    # Components
    "IncidentStorageEngine",
    "RetentionEnforcer",
    "IncidentQueryLayer",
    "IncidentStore",
    "create_backend",
    "create_store",
    # Errors
    "IncidentStoreError",
    "WriteFailure",
    "ReadFailure",
    "ReadCancelled",
    "StoreClosedError",
]
