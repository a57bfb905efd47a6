"""
Incident repository: turns reported incidents into stored records and
aggregates them into summaries.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import Counter
from collections.abc import Callable

from incidentlog.core.serialization import IncidentMapper
from incidentlog.core.types import (
    Incident,
    IncidentSummary,
    Severity,
    TimestampWithScreen,
)
from incidentlog.storage.store import IncidentStore

logger = logging.getLogger(__name__)

UNKNOWN_SCREEN = "unknown"


def _now_millis() -> int:
    return time.time_ns() // 1_000_000


class IncidentRepository:
    """
    Records incidents and keeps the store within capacity.

    Ids are assigned from the clock and forced strictly increasing, so two
    incidents reported within the same millisecond never overwrite each other.
    """

    def __init__(
        self,
        store: IncidentStore,
        max_stored_incidents: int,
        clock: Callable[[], int] = _now_millis,
    ):
        if max_stored_incidents < 0:
            raise ValueError(
                f"max_stored_incidents must be >= 0, got {max_stored_incidents}"
            )
        self._store = store
        self._max_stored = max_stored_incidents
        self._clock = clock
        self._last_id = 0
        self._id_lock = threading.Lock()

    def _next_id(self, now_millis: int) -> int:
        with self._id_lock:
            self._last_id = max(now_millis, self._last_id + 1)
            return self._last_id

    async def record_incident(
        self,
        error_code: str,
        severity: Severity,
        message: str,
        screen_name: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> Incident:
        """Persist a new incident, then evict the oldest beyond capacity."""
        now = self._clock()
        incident = Incident(
            id=self._next_id(now),
            timestamp_millis=now,
            error_code=error_code,
            severity=severity,
            message=message,
            screen_name=screen_name,
            metadata=metadata or {},
        )
        await self._store.insert(IncidentMapper.to_record(incident))
        await self._store.retention.enforce_if_needed(self._max_stored)
        logger.debug(f"Recorded incident {incident.id}: {error_code} [{severity.value}]")
        return incident

    async def get_incidents(self) -> list[Incident]:
        """All retained incidents, oldest first."""
        records = await self._store.get_all()
        return [IncidentMapper.to_incident(r) for r in records]

    async def get_summary(self) -> IncidentSummary:
        """Aggregate retained incidents by screen and severity."""
        incidents = await self.get_incidents()

        by_screen = Counter(i.screen_name or UNKNOWN_SCREEN for i in incidents)
        by_severity = Counter(i.severity for i in incidents)
        newest_first = sorted(incidents, key=lambda i: i.timestamp_millis, reverse=True)

        return IncidentSummary(
            total_incidents=len(incidents),
            incidents_by_screen=dict(by_screen),
            incidents_by_severity=dict(by_severity),
            incident_timestamps=[i.timestamp_millis for i in newest_first],
            timestamps_with_screen=[
                TimestampWithScreen(
                    timestamp_millis=i.timestamp_millis,
                    screen_name=i.screen_name,
                )
                for i in newest_first
            ],
        )

    async def clear(self) -> int:
        """Remove every incident."""
        return await self._store.clear_all()
