"""
Core data types for the incident log.

Two layers of representation:
- IncidentRecord: the persisted row, opaque strings only
- Incident: the domain view with a Severity enum and decoded metadata
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Severity(str, Enum):
    """Incident severity levels."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class IncidentRecord(BaseModel):
    """
    A single stored incident row.

    The store treats `severity` as an opaque label and never parses
    `metadata_json`. Records are immutable; an upsert replaces the row in full.
    """

    model_config = ConfigDict(frozen=True)

    id: int = Field(..., description="Caller-supplied primary key")
    timestamp_millis: int = Field(..., description="Milliseconds since epoch, retention order key")
    error_code: str
    severity: str
    message: str
    screen_name: str | None = None
    metadata_json: str = "{}"


class Incident(BaseModel):
    """Domain view of an incident with typed severity and decoded metadata."""

    model_config = ConfigDict(frozen=True)

    id: int
    timestamp_millis: int
    error_code: str
    severity: Severity
    message: str
    screen_name: str | None = None
    metadata: dict[str, str] = Field(default_factory=dict)


class TimestampWithScreen(BaseModel):
    """Timestamp paired with the screen an incident was reported on."""

    timestamp_millis: int
    screen_name: str | None = None


class IncidentSummary(BaseModel):
    """Aggregated view over all retained incidents."""

    total_incidents: int = 0
    incidents_by_screen: dict[str, int] = Field(default_factory=dict)
    incidents_by_severity: dict[Severity, int] = Field(default_factory=dict)
    incident_timestamps: list[int] = Field(default_factory=list)  # newest first
    timestamps_with_screen: list[TimestampWithScreen] = Field(default_factory=list)
