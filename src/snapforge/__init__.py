"""snapforge: turn captured documents into verified extraction code.

Given a raw document and the record it should yield, the Forge explores
the document through bounded tools, asks a generative backend for an
``extract()`` function, runs it in a sandbox, and keeps it only once its
output matches the record.
"""

from snapforge._version import __version__

# Orchestration
from snapforge.forge import AttemptOutcome, Forge, ForgeResult, ForgeState, OutcomeKind
from snapforge.gauntlet import Gauntlet, GauntletResult
from snapforge.generation import CodeGenerator, extract_code, validate_syntax
from snapforge.service import ForgeService

# Domain models and configuration
from snapforge.models import (
    AuditEntry,
    Candidate,
    ForgeConfig,
    LogLevel,
    LogPhase,
    PipelineState,
    Snapshot,
)

# Document exploration
from snapforge.document import DocumentIndex, ExplorationToolProvider

# Sandbox
from snapforge.sandbox import ExecutionContext, ExecutionEnvironment

# Validation
from snapforge.validation import DiffResult, diff_against_ground_truth

# Backend
from snapforge.llm import LLMCallable, LLMClient, OpenAIClient

# Storage
from snapforge.storage import (
    SnapshotRepository,
    SqliteSnapshotRepository,
    create_forge_engine,
    create_session_factory,
    init_db,
)

# Exceptions
from snapforge.exceptions import (
    AttemptFailure,
    ConfigError,
    EnvironmentClosedError,
    ExecutionFault,
    ExecutionTimeout,
    ForgeError,
    GenerationExhausted,
    GenerationFailed,
    InvalidStateError,
    ParseError,
    RangeError,
    SandboxViolation,
    SyntaxFault,
    ValidationFailure,
)

__all__ = [
    "__version__",
    # Orchestration
    "AttemptOutcome",
    "Forge",
    "ForgeResult",
    "ForgeState",
    "OutcomeKind",
    "Gauntlet",
    "GauntletResult",
    "CodeGenerator",
    "extract_code",
    "validate_syntax",
    "ForgeService",
    # Models
    "AuditEntry",
    "Candidate",
    "ForgeConfig",
    "LogLevel",
    "LogPhase",
    "PipelineState",
    "Snapshot",
    # Document
    "DocumentIndex",
    "ExplorationToolProvider",
    # Sandbox
    "ExecutionContext",
    "ExecutionEnvironment",
    # Validation
    "DiffResult",
    "diff_against_ground_truth",
    # Backend
    "LLMCallable",
    "LLMClient",
    "OpenAIClient",
    # Storage
    "SnapshotRepository",
    "SqliteSnapshotRepository",
    "create_forge_engine",
    "create_session_factory",
    "init_db",
    # Exceptions
    "AttemptFailure",
    "ConfigError",
    "EnvironmentClosedError",
    "ExecutionFault",
    "ExecutionTimeout",
    "ForgeError",
    "GenerationExhausted",
    "GenerationFailed",
    "InvalidStateError",
    "ParseError",
    "RangeError",
    "SandboxViolation",
    "SyntaxFault",
    "ValidationFailure",
]
