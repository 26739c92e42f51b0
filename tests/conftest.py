"""Global test fixtures for the Thesis test suite."""

from __future__ import annotations

import os
from datetime import UTC, datetime, timedelta

import pytest

from thesis.core.config import CoreSettings, clear_config_cache
from thesis.core.directory import InMemoryDebateDirectory
from thesis.core.engine import OpinionEngine, create_engine
from thesis.core.store import InMemoryEngineStore

# ============================================================================
# PostgreSQL Availability Detection
# ============================================================================


def _check_postgres_available() -> tuple[bool, str | None]:
    """Check if PostgreSQL is available for integration tests.

    Returns:
        Tuple of (is_available, error_message)
    """
    import psycopg2

    try:
        conn = psycopg2.connect(
            host=os.environ.get("THESIS_DB_HOST", "localhost"),
            port=int(os.environ.get("THESIS_DB_PORT", "5432")),
            dbname=os.environ.get("THESIS_DB_NAME", "thesis"),
            user=os.environ.get("THESIS_DB_USER", "thesis"),
            password=os.environ.get("THESIS_DB_PASSWORD", ""),
            connect_timeout=3,
        )
        conn.close()
        return True, None
    except psycopg2.OperationalError as e:
        return False, f"PostgreSQL connection failed: {e}"


POSTGRES_AVAILABLE, POSTGRES_ERROR = _check_postgres_available()


def pytest_collection_modifyitems(config, items):
    """Skip tests marked requires_postgres when the DB is unavailable."""
    if POSTGRES_AVAILABLE:
        return

    skip_postgres = pytest.mark.skip(reason=f"PostgreSQL not available: {POSTGRES_ERROR}")
    for item in items:
        if "requires_postgres" in item.keywords:
            item.add_marker(skip_postgres)


# ============================================================================
# Environment Fixtures
# ============================================================================


@pytest.fixture
def clean_env(monkeypatch):
    """Remove all THESIS_ environment variables and the cached config."""
    for key in list(os.environ.keys()):
        if key.startswith("THESIS_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(os.path.dirname(__file__))
    clear_config_cache()
    yield
    clear_config_cache()


@pytest.fixture
def env_with_db_vars(monkeypatch):
    """Set up database environment variables."""
    monkeypatch.setenv("THESIS_DB_HOST", "db.example.com")
    monkeypatch.setenv("THESIS_DB_PORT", "6543")
    monkeypatch.setenv("THESIS_DB_NAME", "thesis_test")
    monkeypatch.setenv("THESIS_DB_USER", "tester")
    monkeypatch.setenv("THESIS_DB_PASSWORD", "testpass")


# ============================================================================
# Engine Fixtures
# ============================================================================


class FrozenClock:
    """Deterministic clock; call to read, ``advance()`` to move forward."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2026, 3, 1, 12, 0, tzinfo=UTC))


@pytest.fixture
def settings(clean_env) -> CoreSettings:
    return CoreSettings()


@pytest.fixture
def store() -> InMemoryEngineStore:
    return InMemoryEngineStore()


@pytest.fixture
def directory() -> InMemoryDebateDirectory:
    """Directory with one debate (two debaters) and three arguments."""
    directory = InMemoryDebateDirectory()
    directory.add_debate(
        "debate-1",
        resolution="Cities should ban private cars downtown",
        debaters=("alice", "bob"),
    )
    directory.add_debate("debate-2", resolution="Homework should be optional", status="concluded")
    directory.add_argument("arg-1", "debate-1")
    directory.add_argument("arg-2", "debate-1")
    directory.add_argument("arg-9", "debate-2")
    return directory


@pytest.fixture
def engine(store, directory, settings, clock) -> OpinionEngine:
    return create_engine(store=store, directory=directory, settings=settings, clock=clock)
