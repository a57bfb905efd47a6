"""
IncidentStore - single entry point over engine, retention and queries.

Usage:
======

    from incidentlog.storage import create_store

    store = create_store()
    await store.insert(record)
    await store.enforce(max_retained=500)
    records = await store.get_all()
    await store.close()
"""

from __future__ import annotations

import logging

from incidentlog.core.config import Settings, StorageType, get_settings
from incidentlog.core.protocols import IncidentBackend
from incidentlog.core.types import IncidentRecord
from incidentlog.observability.logging import log_operation
from incidentlog.storage.engine import IncidentStorageEngine
from incidentlog.storage.memory_backend import MemoryIncidentBackend
from incidentlog.storage.queries import IncidentQueryLayer
from incidentlog.storage.retention import RetentionEnforcer
from incidentlog.storage.sqlite_backend import SQLiteIncidentBackend

logger = logging.getLogger(__name__)


def _record_fields(_store: IncidentStore, record: IncidentRecord) -> dict:
    return {"incident_id": record.id, "error_code": record.error_code}


def _keep_count_fields(_store: IncidentStore, keep_count: int) -> dict:
    return {"keep_count": keep_count}


def _retention_fields(store: IncidentStore, max_retained: int | None = None) -> dict:
    if max_retained is None:
        max_retained = store.retention.default_max_retained
    return {"keep_count": max_retained}


class IncidentStore:
    """
    Capacity-bounded incident log.

    Composes the three components:
    - engine: atomic insert / clear_all / delete_oldest
    - retention: enforce(max_retained) policy shim
    - queries: get_all / get_count snapshots
    """

    def __init__(
        self,
        backend: IncidentBackend,
        max_workers: int = 4,
        max_retained: int | None = None,
    ):
        self.engine = IncidentStorageEngine(backend, max_workers=max_workers)
        self.retention = RetentionEnforcer(self.engine, default_max_retained=max_retained)
        self.queries = IncidentQueryLayer(self.engine)

    @log_operation("insert", fields=_record_fields, level=logging.DEBUG)
    async def insert(self, record: IncidentRecord) -> None:
        await self.engine.insert(record)

    @log_operation("clear_all", result_field="removed")
    async def clear_all(self) -> int:
        return await self.engine.clear_all()

    @log_operation("delete_oldest", fields=_keep_count_fields, result_field="removed")
    async def delete_oldest(self, keep_count: int) -> int:
        return await self.engine.delete_oldest(keep_count)

    @log_operation("enforce", fields=_retention_fields, result_field="removed")
    async def enforce(self, max_retained: int | None = None) -> int:
        return await self.retention.enforce(max_retained)

    async def get_all(self) -> list[IncidentRecord]:
        return await self.queries.get_all()

    async def get_count(self) -> int:
        return await self.queries.get_count()

    async def close(self) -> None:
        await self.engine.close()

    async def __aenter__(self) -> IncidentStore:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


def create_backend(
    settings: Settings | None = None,
    storage_type: StorageType | None = None,
) -> IncidentBackend:
    """Build the backend selected by settings (or an explicit storage_type)."""
    settings = settings or get_settings()
    storage_type = storage_type or settings.storage_type

    if storage_type == StorageType.MEMORY:
        return MemoryIncidentBackend()

    return SQLiteIncidentBackend(
        settings.db_path,
        busy_timeout=settings.busy_timeout_seconds,
        cached_statements=settings.cached_statements,
        read_batch_size=settings.read_batch_size,
    )


def create_store(
    settings: Settings | None = None,
    storage_type: StorageType | None = None,
) -> IncidentStore:
    """Create an IncidentStore wired from settings."""
    settings = settings or get_settings()
    backend = create_backend(settings, storage_type)
    logger.info(
        f"Incident store created: backend={type(backend).__name__}, "
        f"max_retained={settings.max_stored_incidents}"
    )
    return IncidentStore(
        backend,
        max_workers=settings.worker_threads,
        max_retained=settings.max_stored_incidents,
    )
