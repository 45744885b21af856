"""Abstract repository interface for the snapshot store.

No SQLAlchemy imports here. The concrete implementation is in sqlite.py.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from snapforge.models.snapshot import PipelineState, Snapshot


class SnapshotRepository(ABC):
    """Persistence for Snapshots and their audit logs."""

    @abstractmethod
    def add(self, snapshot: Snapshot) -> None:
        """Insert a new Snapshot."""
        ...

    @abstractmethod
    def get(self, snapshot_id: str) -> Snapshot | None:
        """Load a Snapshot by id, or None."""
        ...

    @abstractmethod
    def get_by_prefix(self, prefix: str) -> Snapshot | None:
        """Load the single Snapshot whose id starts with ``prefix``.

        Raises:
            ValueError: If the prefix matches more than one Snapshot.
        """
        ...

    @abstractmethod
    def save(self, snapshot: Snapshot) -> None:
        """Persist state, extractor source, and newly appended audit entries."""
        ...

    @abstractmethod
    def next_eligible(self) -> Snapshot | None:
        """Oldest ANNOTATED Snapshot, or None."""
        ...

    @abstractmethod
    def list(self, state: PipelineState | None = None, limit: int | None = None) -> list[Snapshot]:
        """Snapshots oldest first, optionally filtered by state."""
        ...
