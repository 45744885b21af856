"""Snapshot persistence: SQLAlchemy schema, engine helpers, repository."""

from snapforge.storage.engine import create_forge_engine, create_session_factory, init_db
from snapforge.storage.repositories import SnapshotRepository
from snapforge.storage.sqlite import SqliteSnapshotRepository

__all__ = [
    "create_forge_engine",
    "create_session_factory",
    "init_db",
    "SnapshotRepository",
    "SqliteSnapshotRepository",
]
