"""Retention policy: keep only the most recent N incidents."""

import logging

from incidentlog.storage.engine import IncidentStorageEngine

logger = logging.getLogger(__name__)


class RetentionEnforcer:
    """
    Stateless shim over the engine's eviction primitive.

    Carries no scheduling; callers decide when to enforce (after each
    insert, periodically, at startup).
    """

    def __init__(
        self,
        engine: IncidentStorageEngine,
        default_max_retained: int | None = None,
    ):
        if default_max_retained is not None and default_max_retained < 0:
            raise ValueError(
                f"default_max_retained must be >= 0, got {default_max_retained}"
            )
        self._engine = engine
        self.default_max_retained = default_max_retained

    def _resolve(self, max_retained: int | None) -> int:
        if max_retained is None:
            max_retained = self.default_max_retained
        if max_retained is None:
            raise ValueError("max_retained is required when no default is configured")
        return max_retained

    async def enforce(self, max_retained: int | None = None) -> int:
        """
        Evict everything outside the max_retained most recent incidents.

        Returns:
            Number of incidents evicted
        """
        return await self._engine.delete_oldest(self._resolve(max_retained))

    async def enforce_if_needed(self, max_retained: int | None = None) -> int:
        """Evict only when the current count exceeds max_retained."""
        limit = self._resolve(max_retained)
        backend = self._engine.backend
        count = await self._engine.run_read("get_count", backend.get_count)
        if count <= limit:
            return 0
        evicted = await self._engine.delete_oldest(limit)
        logger.debug(f"Retention trimmed {evicted} incidents (count={count}, limit={limit})")
        return evicted
