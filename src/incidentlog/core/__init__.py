"""Core types, configuration and serialization for incidentlog."""

from incidentlog.core.config import (
    IncidentConfig,
    Settings,
    StorageType,
    get_settings,
    reset_settings,
)
from incidentlog.core.protocols import IncidentBackend
from incidentlog.core.serialization import IncidentMapper
from incidentlog.core.types import (
    Incident,
    IncidentRecord,
    IncidentSummary,
    Severity,
    TimestampWithScreen,
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
    # Protocols / serialization
    "IncidentBackend",
    "IncidentMapper",
]
