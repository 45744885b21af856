"""Shared test fixtures for snapforge.

Provides in-memory SQLite engine, session and repository fixtures, plus
a session-wide sandbox environment (spawning the worker is slow).
"""

import pytest
from sqlalchemy.orm import Session, sessionmaker

from snapforge.models.config import ForgeConfig
from snapforge.sandbox.environment import ExecutionEnvironment
from snapforge.storage.engine import create_forge_engine, init_db
from snapforge.storage.sqlite import SqliteSnapshotRepository


@pytest.fixture
def engine():
    """In-memory SQLite engine with all tables created."""
    eng = create_forge_engine(":memory:")
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session(engine):
    """Session with automatic rollback after each test."""
    SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)
    sess = SessionLocal()
    yield sess
    sess.rollback()
    sess.close()


@pytest.fixture
def snapshot_repo(session: Session) -> SqliteSnapshotRepository:
    return SqliteSnapshotRepository(session)


@pytest.fixture
def fast_config() -> ForgeConfig:
    """Config with no backoff so retry tests do not sleep."""
    return ForgeConfig(backoff_seconds=0.0, execution_timeout=10.0)


@pytest.fixture(scope="session")
def environment():
    """One sandbox worker shared by every test that needs it."""
    env = ExecutionEnvironment(timeout=10.0)
    env.start()
    yield env
    env.close()
