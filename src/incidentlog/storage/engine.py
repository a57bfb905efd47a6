"""
Async storage engine for the incident log.

Dispatches backend primitives onto a thread pool so callers never block:

    caller task ──await──> asyncio future ──> ThreadPoolExecutor ──> backend
                                                  │
                              writes: backend lock + one transaction each
                              reads:  one snapshot transaction each

Writes are shielded: once submitted they run to commit or rollback even if
the awaiting task is cancelled. Reads carry a cancel event that the worker
checks between fetch batches, so an abandoned scan releases its cursor
without the caller waiting for it.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from typing import Any, TypeVar

from incidentlog.core.protocols import IncidentBackend
from incidentlog.core.types import IncidentRecord
from incidentlog.storage.errors import StoreClosedError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _report_detached_write(operation: str, future: asyncio.Future) -> None:
    """Surface the outcome of a write whose caller stopped waiting."""
    if future.cancelled():
        return
    exc = future.exception()
    if exc is not None:
        logger.error(f"Detached {operation} failed: {exc}")
    else:
        logger.debug(f"Detached {operation} committed")


class IncidentStorageEngine:
    """
    Owns the backend and the worker pool.

    Provides atomic insert-or-replace, delete-all and delete-except-top-K,
    plus the read dispatch used by the query layer.
    """

    def __init__(self, backend: IncidentBackend, max_workers: int = 4):
        """
        Initialize engine.

        Args:
            backend: Storage backend implementing IncidentBackend
            max_workers: Worker threads servicing operations
        """
        self._backend = backend
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="incidentlog",
        )
        self._closed = False

    @property
    def backend(self) -> IncidentBackend:
        return self._backend

    @property
    def is_closed(self) -> bool:
        return self._closed

    def _check_open(self, operation: str) -> None:
        if self._closed:
            raise StoreClosedError(operation)

    async def _write(self, operation: str, fn: Callable[..., T], *args: Any) -> T:
        """Run a write primitive to completion, regardless of caller cancellation."""
        self._check_open(operation)
        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(self._executor, functools.partial(fn, *args))
        try:
            return await asyncio.shield(future)
        except asyncio.CancelledError:
            future.add_done_callback(functools.partial(_report_detached_write, operation))
            raise

    async def run_read(
        self,
        operation: str,
        fn: Callable[[threading.Event], T],
    ) -> T:
        """
        Run a read primitive with cooperative cancellation.

        If the awaiting task is cancelled, the worker's cancel event is set
        and CancelledError propagates immediately.
        """
        self._check_open(operation)
        loop = asyncio.get_running_loop()
        cancel = threading.Event()
        future = loop.run_in_executor(self._executor, fn, cancel)
        try:
            return await future
        except asyncio.CancelledError:
            cancel.set()
            logger.debug(f"Incident store {operation} abandoned by caller")
            raise

    # -------------------------------------------------------------------------
    # Write operations
    # -------------------------------------------------------------------------

    async def insert(self, record: IncidentRecord) -> None:
        """Insert a record, replacing any prior record with the same id."""
        await self._write("insert", self._backend.insert, record)

    async def clear_all(self) -> int:
        """Remove every record. Returns the number removed."""
        return await self._write("clear_all", self._backend.clear_all)

    async def delete_oldest(self, keep_count: int) -> int:
        """
        Retain the keep_count most recent records.

        Returns:
            Number of records removed

        Raises:
            ValueError: If keep_count is negative
            WriteFailure: If the medium could not commit
        """
        if keep_count < 0:
            raise ValueError(f"keep_count must be >= 0, got {keep_count}")
        return await self._write("delete_oldest", self._backend.delete_oldest, keep_count)

    async def close(self) -> None:
        """Drain in-flight operations and release the backend."""
        if self._closed:
            return
        self._closed = True
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, functools.partial(self._executor.shutdown, wait=True))
        self._backend.close()
        logger.info("Incident storage engine closed")
