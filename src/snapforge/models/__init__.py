"""Domain and configuration models."""

from snapforge.models.config import ForgeConfig
from snapforge.models.snapshot import (
    AuditEntry,
    Candidate,
    LogLevel,
    LogPhase,
    PipelineState,
    Snapshot,
)

__all__ = [
    "ForgeConfig",
    "AuditEntry",
    "Candidate",
    "LogLevel",
    "LogPhase",
    "PipelineState",
    "Snapshot",
]
