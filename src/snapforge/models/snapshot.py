"""Snapshot domain models.

A Snapshot is one captured document plus its extraction lifecycle.
Audit entries are append-only; a Candidate is one generated extractor tied
to the attempt that produced it.
"""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PipelineState(str, enum.Enum):
    """Lifecycle state of a Snapshot.

    NEW belongs to the upstream capture step. The Forge consumes
    ANNOTATED and produces VERIFIED or EXTRACTED, both terminal.
    """

    NEW = "NEW"
    ANNOTATED = "ANNOTATED"
    VERIFIED = "VERIFIED"
    EXTRACTED = "EXTRACTED"


class LogLevel(str, enum.Enum):
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"


class LogPhase(str, enum.Enum):
    """Pipeline phase that wrote an audit entry."""

    MINER = "MINER"
    ORACLE = "ORACLE"
    FORGE = "FORGE"
    RUNTIME = "RUNTIME"


@dataclass(frozen=True)
class AuditEntry:
    """One append-only audit log line."""

    phase: LogPhase
    level: LogLevel
    message: str
    timestamp: datetime = field(default_factory=_utcnow)


@dataclass(frozen=True)
class Candidate:
    """Generated extractor source produced by one attempt.

    Attributes:
        source: Python source defining the entry point.
        attempt: 1-based attempt index within the Snapshot's retry sequence.
        turns: Backend turns the generation loop used to produce it.
    """

    source: str
    attempt: int
    turns: int = 0


@dataclass
class Snapshot:
    """A captured document moving through the extraction pipeline.

    ``ground_truth`` is input only; nothing in the Forge writes to it.
    ``logs`` must only be appended to, use :meth:`log`.
    """

    raw_document: str
    ground_truth: dict[str, Any] | None = None
    state: PipelineState = PipelineState.NEW
    logs: list[AuditEntry] = field(default_factory=list)
    extractor_source: str | None = None
    snapshot_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def log(
        self,
        level: LogLevel,
        message: str,
        phase: LogPhase = LogPhase.FORGE,
    ) -> AuditEntry:
        """Append an audit entry and return it."""
        entry = AuditEntry(phase=phase, level=level, message=message)
        self.logs.append(entry)
        self.updated_at = entry.timestamp
        return entry

    def entries(self, level: LogLevel | None = None) -> list[AuditEntry]:
        """Return audit entries, optionally filtered by level."""
        if level is None:
            return list(self.logs)
        return [e for e in self.logs if e.level == level]
