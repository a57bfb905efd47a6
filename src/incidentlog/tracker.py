"""
IncidentTracker - process-wide entry point for reporting incidents.

Usage:
======

    from incidentlog import IncidentConfig, Severity, get_tracker

    tracker = get_tracker()
    tracker.init(IncidentConfig(app_version="1.4.0", environment="production"))

    tracker.track_screen("Checkout")
    await tracker.track_incident("PAY-502", Severity.HIGH, "Gateway timeout")

    summary = await tracker.get_summary()
    await tracker.shutdown()
"""

from __future__ import annotations

import logging
import threading

from incidentlog.core.config import IncidentConfig, get_settings
from incidentlog.core.types import Incident, IncidentSummary, Severity
from incidentlog.repository import IncidentRepository
from incidentlog.storage.store import IncidentStore, create_store

logger = logging.getLogger(__name__)


class TrackerNotInitializedError(RuntimeError):
    """Raised when the tracker is used before init()."""

    def __init__(self):
        super().__init__(
            "IncidentTracker has not been initialized. "
            "Call IncidentTracker.init(config) first, typically at application startup."
        )


class IncidentTracker:
    """
    Tracks the current screen and records incidents enriched with
    application metadata (appVersion, environment).
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._initialized = False
        self._config: IncidentConfig | None = None
        self._store: IncidentStore | None = None
        self._repository: IncidentRepository | None = None
        self._current_screen: str | None = None

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def current_screen(self) -> str | None:
        return self._current_screen

    def init(self, config: IncidentConfig, store: IncidentStore | None = None) -> None:
        """
        Initialize the tracker. Subsequent calls are no-ops.

        Args:
            config: Tracker options
            store: Store to use; built from settings and config.storage_type if omitted
        """
        with self._lock:
            if self._initialized:
                return

            if store is None:
                store = create_store(get_settings(), storage_type=config.storage_type)

            self._config = config
            self._store = store
            self._repository = IncidentRepository(store, config.max_stored_incidents)
            self._current_screen = None
            self._initialized = True

        logger.info(
            f"IncidentTracker initialized: version={config.app_version}, "
            f"environment={config.environment}, max_stored={config.max_stored_incidents}"
        )

    def _require(self) -> IncidentRepository:
        if not self._initialized or self._repository is None:
            raise TrackerNotInitializedError()
        return self._repository

    def track_screen(self, screen_name: str) -> None:
        """Remember the screen subsequent incidents are attributed to."""
        self._require()
        self._current_screen = screen_name

    async def track_incident(
        self,
        error_code: str,
        severity: Severity,
        message: str,
        screen_name: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> Incident:
        """
        Record an incident.

        Falls back to the last tracked screen when screen_name is not given.
        appVersion and environment from the config override user metadata keys.
        """
        repository = self._require()

        effective_screen = screen_name if screen_name is not None else self._current_screen
        # With no screen known, current_screen stays None rather than ""
        if effective_screen is not None:
            self._current_screen = effective_screen

        enriched = dict(metadata or {})
        enriched["appVersion"] = self._config.app_version
        enriched["environment"] = self._config.environment

        return await repository.record_incident(
            error_code=error_code,
            severity=severity,
            message=message,
            screen_name=effective_screen,
            metadata=enriched,
        )

    async def get_summary(self) -> IncidentSummary:
        return await self._require().get_summary()

    async def get_incidents(self) -> list[Incident]:
        return await self._require().get_incidents()

    async def shutdown(self) -> None:
        """Close the store and return to the uninitialized state."""
        store = self._store
        self.reset()
        if store is not None:
            await store.close()

    def reset(self) -> None:
        """Forget all state without touching stored incidents. Intended for tests."""
        with self._lock:
            self._initialized = False
            self._config = None
            self._store = None
            self._repository = None
            self._current_screen = None


_global_tracker: IncidentTracker | None = None


def get_tracker() -> IncidentTracker:
    """
    Get the global tracker, creating an uninitialized one on first use.

    Returns:
        The global IncidentTracker
    """
    global _global_tracker
    if _global_tracker is None:
        _global_tracker = IncidentTracker()
    return _global_tracker


def set_tracker(tracker: IncidentTracker | None) -> None:
    """
    Set the global tracker instance.

    Args:
        tracker: The IncidentTracker to use globally, or None to clear
    """
    global _global_tracker
    _global_tracker = tracker
