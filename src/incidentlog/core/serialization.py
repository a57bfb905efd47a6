"""
Conversion between domain incidents and stored records.

The store only ever sees IncidentRecord; metadata encoding and severity
parsing happen here, at the edge.
"""

from __future__ import annotations

import json
import logging

from incidentlog.core.types import Incident, IncidentRecord, Severity

logger = logging.getLogger(__name__)


class IncidentMapper:
    """Maps Incident <-> IncidentRecord."""

    @staticmethod
    def encode_metadata(metadata: dict[str, str]) -> str:
        """Serialize metadata to a stable JSON string."""
        return json.dumps(metadata, sort_keys=True)

    @staticmethod
    def decode_metadata(metadata_json: str) -> dict[str, str]:
        """Parse metadata JSON, returning {} when it cannot be decoded."""
        try:
            value = json.loads(metadata_json)
        except (TypeError, ValueError):
            logger.warning("Undecodable incident metadata, using empty mapping")
            return {}
        if not isinstance(value, dict):
            return {}
        return {str(k): str(v) for k, v in value.items()}

    @staticmethod
    def parse_severity(label: str) -> Severity:
        """Parse a stored severity label; unknown labels fall back to LOW."""
        try:
            return Severity(label)
        except ValueError:
            return Severity.LOW

    @classmethod
    def to_record(cls, incident: Incident) -> IncidentRecord:
        return IncidentRecord(
            id=incident.id,
            timestamp_millis=incident.timestamp_millis,
            error_code=incident.error_code,
            severity=incident.severity.value,
            message=incident.message,
            screen_name=incident.screen_name,
            metadata_json=cls.encode_metadata(incident.metadata),
        )

    @classmethod
    def to_incident(cls, record: IncidentRecord) -> Incident:
        return Incident(
            id=record.id,
            timestamp_millis=record.timestamp_millis,
            error_code=record.error_code,
            severity=cls.parse_severity(record.severity),
            message=record.message,
            screen_name=record.screen_name,
            metadata=cls.decode_metadata(record.metadata_json),
        )
