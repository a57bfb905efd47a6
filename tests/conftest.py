"""
Pytest Configuration for incidentlog Tests.

Provides fixtures for async tests, temporary databases, and settings
isolation.
"""

import sys
from pathlib import Path

import pytest
import pytest_asyncio
from dotenv import load_dotenv

# Load .env file for environment variables (integration tests)
env_path = Path(__file__).parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from incidentlog.core.types import IncidentRecord  # noqa: E402
from incidentlog.storage.memory_backend import MemoryIncidentBackend  # noqa: E402
from incidentlog.storage.sqlite_backend import SQLiteIncidentBackend  # noqa: E402
from incidentlog.storage.store import IncidentStore  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "asyncio: mark test as async"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow (deselect with '-m \"not slow\"')"
    )


@pytest.fixture(autouse=True, scope="function")
def isolate_settings(monkeypatch, tmp_path):
    """
    Give every test fresh settings pointing at a private database.

    Clears the settings cache and the global tracker before and after.
    """
    from incidentlog.core.config import reset_settings
    from incidentlog.tracker import set_tracker

    monkeypatch.setenv("INCIDENTLOG_DB_PATH", str(tmp_path / "settings" / "incidents.db"))
    reset_settings()
    set_tracker(None)
    yield
    reset_settings()
    set_tracker(None)


def _make_record(
    id: int,
    ts: int,
    error_code: str | None = None,
    severity: str = "HIGH",
    message: str = "test incident",
    screen_name: str | None = "Home",
    metadata_json: str = "{}",
) -> IncidentRecord:
    return IncidentRecord(
        id=id,
        timestamp_millis=ts,
        error_code=error_code or f"E{id}",
        severity=severity,
        message=message,
        screen_name=screen_name,
        metadata_json=metadata_json,
    )


@pytest.fixture
def make_record():
    """Factory for IncidentRecord test values."""
    return _make_record


@pytest.fixture
def db_path(tmp_path) -> Path:
    return tmp_path / "data" / "incidents.db"


@pytest.fixture
def sqlite_backend(db_path):
    backend = SQLiteIncidentBackend(db_path)
    yield backend
    backend.close()


@pytest.fixture
def memory_backend():
    backend = MemoryIncidentBackend()
    yield backend
    backend.close()


@pytest.fixture(params=["sqlite", "memory"])
def backend(request, db_path):
    """Run a test against both backends."""
    if request.param == "sqlite":
        b = SQLiteIncidentBackend(db_path)
    else:
        b = MemoryIncidentBackend()
    yield b
    b.close()


@pytest_asyncio.fixture
async def store(backend):
    """IncidentStore over each backend."""
    s = IncidentStore(backend, max_workers=4)
    yield s
    await s.close()


@pytest_asyncio.fixture
async def sqlite_store(db_path):
    s = IncidentStore(SQLiteIncidentBackend(db_path), max_workers=4)
    yield s
    await s.close()
