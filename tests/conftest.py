"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from arvil.training.models import DAY_MS  # noqa: E402
from arvil.training.scheduler import SM2Scheduler  # noqa: E402
from arvil.training.state_store import MemoryStateStore, SQLiteStateStore  # noqa: E402

# 2024-03-14 12:00:00 UTC
FROZEN_NOW = 1_710_417_600_000


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (real SQLite file)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        path = str(item.fspath)
        if "unit" in path:
            item.add_marker(pytest.mark.unit)
        elif "integration" in path:
            item.add_marker(pytest.mark.integration)
        elif "smoke" in path:
            item.add_marker(pytest.mark.smoke)


class FrozenClock:
    """Manually advanced clock returning epoch milliseconds."""

    def __init__(self, start: int = FROZEN_NOW):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance_days(self, days: float) -> None:
        self.now += int(days * DAY_MS)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def clock():
    """Frozen clock starting at FROZEN_NOW."""
    return FrozenClock()


@pytest.fixture
def memory_store(tmp_path):
    """Empty in-memory store with a temp backup directory."""
    return MemoryStateStore(backup_dir=tmp_path / "backups")


@pytest.fixture
def sqlite_store(tmp_path):
    """SQLite store on a temp file."""
    store = SQLiteStateStore(tmp_path / "state.db")
    yield store
    store.close()


@pytest.fixture(params=["memory", "sqlite"])
def any_store(request, tmp_path):
    """Each store implementation in turn."""
    if request.param == "memory":
        yield MemoryStateStore(backup_dir=tmp_path / "backups")
    else:
        store = SQLiteStateStore(tmp_path / "state.db")
        yield store
        store.close()


@pytest.fixture
def scheduler(memory_store, clock):
    """SM-2 scheduler over the memory store with a frozen clock."""
    return SM2Scheduler(memory_store, clock=clock)


@pytest.fixture
def sample_result_data():
    """Provide a drill result in export format."""
    return {
        "id": "1710417600000-abc1234",
        "type": "reg-plate",
        "timestamp": FROZEN_NOW,
        "accuracy": 80.0,
        "speedMs": 4200.0,
        "difficulty": 2,
        "details": {"flashDuration": 2, "delayDuration": 10, "reverseMode": False},
    }
