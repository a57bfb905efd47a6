"""
Tests for the async storage engine: dispatch, serialization of writes,
snapshot reads and cooperative cancellation.
"""

import asyncio
import threading

import pytest

from incidentlog.storage.engine import IncidentStorageEngine
from incidentlog.storage.errors import ReadCancelled, StoreClosedError
from incidentlog.storage.memory_backend import MemoryIncidentBackend
from incidentlog.storage.queries import IncidentQueryLayer
from incidentlog.storage.sqlite_backend import SQLiteIncidentBackend


class BlockingBackend(MemoryIncidentBackend):
    """Memory backend whose scan parks until released."""

    def __init__(self):
        super().__init__()
        self.started = threading.Event()
        self.release = threading.Event()
        self.observed_cancel = threading.Event()

    def get_all(self, cancel=None):
        self.started.set()
        self.release.wait(5)
        if cancel is not None and cancel.is_set():
            self.observed_cancel.set()
            raise ReadCancelled("get_all")
        return super().get_all(cancel)


class SlowWriteBackend(MemoryIncidentBackend):
    """Memory backend whose insert parks until released."""

    def __init__(self):
        super().__init__()
        self.started = threading.Event()
        self.release = threading.Event()

    def insert(self, record):
        self.started.set()
        self.release.wait(5)
        super().insert(record)


async def _wait_event(event: threading.Event, timeout: float = 5.0) -> bool:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, event.wait, timeout)


class TestEngineWrites:
    """Tests for write dispatch."""

    @pytest.mark.asyncio
    async def test_insert_and_count(self, store, make_record):
        await store.insert(make_record(1, 100))
        await store.insert(make_record(2, 200))

        assert await store.get_count() == 2

    @pytest.mark.asyncio
    async def test_delete_oldest_rejects_negative_without_dispatch(self, store):
        with pytest.raises(ValueError):
            await store.delete_oldest(-1)

    @pytest.mark.asyncio
    async def test_delete_oldest_returns_removed(self, store, make_record):
        for i in range(5):
            await store.insert(make_record(i, i))

        assert await store.delete_oldest(2) == 3
        assert await store.get_count() == 2

    @pytest.mark.asyncio
    async def test_write_completes_when_caller_cancels(self, make_record):
        backend = SlowWriteBackend()
        engine = IncidentStorageEngine(backend, max_workers=2)
        try:
            task = asyncio.create_task(engine.insert(make_record(1, 1)))
            assert await _wait_event(backend.started)

            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

            backend.release.set()
            queries = IncidentQueryLayer(engine)
            for _ in range(50):
                if await queries.get_count() == 1:
                    break
                await asyncio.sleep(0.05)
            assert await queries.get_count() == 1
        finally:
            backend.release.set()
            await engine.close()


class TestConcurrency:
    """Concurrent callers against the SQLite engine."""

    @pytest.mark.asyncio
    async def test_concurrent_inserts_all_commit(self, sqlite_store, make_record):
        await asyncio.gather(*(
            sqlite_store.insert(make_record(i, 1000 + i)) for i in range(50)
        ))

        records = await sqlite_store.get_all()
        assert len(records) == 50
        assert [r.id for r in records] == list(range(50))

    @pytest.mark.asyncio
    async def test_concurrent_upserts_leave_one_row(self, sqlite_store, make_record):
        await asyncio.gather(*(
            sqlite_store.insert(make_record(7, ts, error_code=f"V{ts}")) for ts in range(20)
        ))

        records = await sqlite_store.get_all()
        assert len(records) == 1
        # Winner is unspecified, but the row is one complete version
        assert records[0].error_code == f"V{records[0].timestamp_millis}"

    @pytest.mark.asyncio
    async def test_readers_never_see_partial_clear(self, sqlite_store, make_record):
        for i in range(50):
            await sqlite_store.insert(make_record(i, i))

        readers = [sqlite_store.get_all() for _ in range(8)]
        results = await asyncio.gather(sqlite_store.clear_all(), *readers)

        assert results[0] == 50
        for snapshot in results[1:]:
            assert len(snapshot) in (0, 50)

    @pytest.mark.asyncio
    async def test_readers_never_see_partial_eviction(self, sqlite_store, make_record):
        for i in range(40):
            await sqlite_store.insert(make_record(i, i * 10))

        counts = [sqlite_store.get_count() for _ in range(8)]
        results = await asyncio.gather(sqlite_store.delete_oldest(10), *counts)

        assert results[0] == 30
        for count in results[1:]:
            assert count in (10, 40)

    @pytest.mark.asyncio
    async def test_snapshots_are_ordered_during_writes(self, sqlite_store, make_record):
        async def writer():
            for i in range(30):
                await sqlite_store.insert(make_record(i, (i * 37) % 100))

        async def reader():
            seen = []
            for _ in range(10):
                seen.append(await sqlite_store.get_all())
            return seen

        _, snapshots = await asyncio.gather(writer(), reader())
        for snapshot in snapshots:
            keys = [(r.timestamp_millis, r.id) for r in snapshot]
            assert keys == sorted(keys)
            assert len({r.id for r in snapshot}) == len(snapshot)


class TestCancellation:
    """Cooperative cancellation of reads."""

    @pytest.mark.asyncio
    async def test_cancel_returns_immediately_and_releases(self, make_record):
        backend = BlockingBackend()
        engine = IncidentStorageEngine(backend, max_workers=2)
        queries = IncidentQueryLayer(engine)
        try:
            backend.insert(make_record(1, 1))
            task = asyncio.create_task(queries.get_all())
            assert await _wait_event(backend.started)

            task.cancel()
            # Worker is still parked; cancellation must not wait for it
            with pytest.raises(asyncio.CancelledError):
                await asyncio.wait_for(task, timeout=1.0)

            backend.release.set()
            assert await _wait_event(backend.observed_cancel)
            assert await queries.get_count() == 1
        finally:
            backend.release.set()
            await engine.close()

    @pytest.mark.asyncio
    async def test_cancelled_sqlite_scan_does_not_mutate(self, sqlite_store, make_record):
        for i in range(20):
            await sqlite_store.insert(make_record(i, i))

        task = asyncio.create_task(sqlite_store.get_all())
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert await sqlite_store.get_count() == 20


class TestLifecycle:
    """Tests for close()."""

    @pytest.mark.asyncio
    async def test_operations_after_close(self, db_path, make_record):
        engine = IncidentStorageEngine(SQLiteIncidentBackend(db_path))
        await engine.close()

        assert engine.is_closed
        with pytest.raises(StoreClosedError):
            await engine.insert(make_record(1, 1))
        with pytest.raises(StoreClosedError):
            await IncidentQueryLayer(engine).get_all()

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self):
        engine = IncidentStorageEngine(MemoryIncidentBackend())
        await engine.close()
        await engine.close()
