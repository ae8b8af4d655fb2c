import os
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Settings are read at import time, so configure before importing the app
_TMP_DIR = Path(tempfile.mkdtemp(prefix="water-ledger-tests-"))
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TMP_DIR / 'ledger.db'}"
os.environ["STORE_BACKEND"] = "sql"
os.environ["LEDGER_TIMEZONE"] = "UTC"
os.environ["LOGIN_USERNAME"] = "driver"
os.environ["LOGIN_PASSWORD"] = "s3cret-pass"
os.environ.pop("LOGIN_PASSWORD_HASH", None)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from db.store import MemoryKeyValueStore, get_store  # noqa: E402
from main import app  # noqa: E402


class TickingClock:
    """Deterministic clock: each call is one second after the previous one."""

    def __init__(self, start: datetime, step: timedelta = timedelta(seconds=1)):
        self.now = start
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + self.step
        return current


@pytest.fixture
def clock():
    return TickingClock(datetime(2026, 10, 18, 8, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def memory_store():
    return MemoryKeyValueStore()


@pytest.fixture
def client():
    with TestClient(app) as c:
        c.delete("/api/clear")
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def use_store():
    """Route the API to a given store for one test."""
    def _use(store):
        app.dependency_overrides[get_store] = lambda: store
        return store
    yield _use
    app.dependency_overrides.pop(get_store, None)
