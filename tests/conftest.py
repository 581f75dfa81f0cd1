"""Shared fixtures: a controllable clock, both store implementations and a cheap argon2 context."""
import threading
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from database import init_db, make_engine, make_session_factory
from encryption import CryptoBox
from errors import StoreError
from file_service import FileService
from inmemory import InMemoryShareStore
from main import create_app
from security import make_password_context
from share_store import SqlShareStore


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start=None):
        self._now = start or datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)
        self._lock = threading.Lock()

    def __call__(self):
        with self._lock:
            return self._now

    def advance(self, **kwargs):
        with self._lock:
            self._now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def crypto():
    return CryptoBox(make_password_context(memory_cost=1024, rounds=1))


@pytest.fixture
def memory_store():
    return InMemoryShareStore()


@pytest.fixture
def sql_store():
    engine = make_engine("sqlite://")
    init_db(engine)
    yield SqlShareStore(make_session_factory(engine))
    engine.dispose()


@pytest.fixture
def file_sql_store(tmp_path):
    """SQLite on disk: a real connection pool instead of one shared connection."""
    engine = make_engine(f"sqlite:///{tmp_path / 'shares.db'}")
    init_db(engine)
    yield SqlShareStore(make_session_factory(engine))
    engine.dispose()


@pytest.fixture(params=["memory", "sql", "file_sql"])
def store(request):
    """Runs the test once per ShareStore implementation (and per SQLite pool mode)."""
    return request.getfixturevalue(f"{request.param}_store")


@pytest.fixture
def make_file(clock):
    def _make(store, name="report.pdf", data=b"\x00nonce-and-ciphertext", size=None, **kwargs):
        return store.create_file(
            name=name,
            size=len(data) if size is None else size,
            encryption_key="a2V5LWhhbmRsZQ==",
            ciphertext=data,
            created_at=clock(),
            **kwargs,
        )
    return _make


@pytest.fixture
def service(store, crypto, clock):
    return FileService(store, crypto=crypto, clock=clock)


@pytest.fixture
def memory_service(memory_store, crypto, clock):
    return FileService(memory_store, crypto=crypto, clock=clock)


@pytest.fixture
def client(memory_service):
    return TestClient(create_app(memory_service))


class BrokenLogStore(InMemoryShareStore):
    """Business data works, every log append fails."""

    def append_log(self, *args, **kwargs):
        raise StoreError(detail="logs table unavailable")


@pytest.fixture
def broken_log_store():
    return BrokenLogStore()
