"""Read-only queries over the incident log."""

from incidentlog.core.types import IncidentRecord
from incidentlog.storage.engine import IncidentStorageEngine


class IncidentQueryLayer:
    """
    Snapshot reads; never mutates state.

    Both operations may be cancelled by cancelling the awaiting task.
    """

    def __init__(self, engine: IncidentStorageEngine):
        self._engine = engine

    async def get_all(self) -> list[IncidentRecord]:
        """All records, ascending by timestamp_millis then id. Empty store gives []."""
        return await self._engine.run_read("get_all", self._engine.backend.get_all)

    async def get_count(self) -> int:
        """Number of stored records."""
        return await self._engine.run_read("get_count", self._engine.backend.get_count)
