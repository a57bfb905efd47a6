"""
incidentlog - capacity-bounded, durable incident log.

Keeps the most recent N diagnostic incidents in SQLite, evicting the
oldest once capacity is exceeded.

Quick Start:
    from incidentlog import IncidentRecord, create_store

    async with create_store() as store:
        await store.insert(IncidentRecord(
            id=1, timestamp_millis=1700000000000,
            error_code="E1", severity="HIGH", message="boom",
        ))
        await store.enforce(max_retained=500)
        records = await store.get_all()
"""

__version__ = "0.1.0"

from incidentlog.core.config import (
    IncidentConfig,
    Settings,
    StorageType,
    get_settings,
    reset_settings,
)
from incidentlog.core.types import (
    Incident,
    IncidentRecord,
    IncidentSummary,
    Severity,
    TimestampWithScreen,
)
from incidentlog.repository import IncidentRepository
from incidentlog.storage import (
    IncidentStore,
    IncidentStoreError,
    ReadFailure,
    StoreClosedError,
    WriteFailure,
    create_store,
)
from incidentlog.tracker import (
    IncidentTracker,
    TrackerNotInitializedError,
    get_tracker,
    set_tracker,
)

__all__ = [
    # Config
    "IncidentConfig",
    "Settings",
    "StorageType",
    "get_settings",
    "reset_settings",
    # Types
    "Incident",
    "IncidentRecord",
    "IncidentSummary",
    "Severity",
    "TimestampWithScreen",
    # Store
    "IncidentStore",
    "create_store",
    "IncidentStoreError",
    "WriteFailure",
    "ReadFailure",
    "StoreClosedError",
    # Tracking
    "IncidentRepository",
    "IncidentTracker",
    "TrackerNotInitializedError",
    "get_tracker",
    "set_tracker",
]
