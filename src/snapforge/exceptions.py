"""Forge exception hierarchy.

All snapforge-specific exceptions inherit from ForgeError.

Attempt failures (the things that can go wrong during one
generate -> execute -> validate cycle) share the AttemptFailure base so
the retry orchestrator can map them to audit severities without a
type switch.
"""

from __future__ import annotations


class ForgeError(Exception):
    """Base exception for all snapforge errors."""


class ConfigError(ForgeError):
    """Raised when configuration values are missing or invalid."""


class InvalidStateError(ForgeError):
    """Raised when a Snapshot is not in a state the Forge can consume."""

    def __init__(self, snapshot_id: str, state: str) -> None:
        self.snapshot_id = snapshot_id
        self.state = state
        super().__init__(
            f"Snapshot {snapshot_id} is {state}; only ANNOTATED snapshots "
            f"can be processed"
        )


class RangeError(ForgeError):
    """Raised when a requested line range falls outside the document."""

    def __init__(self, start: int, end: int, total_lines: int) -> None:
        self.start = start
        self.end = end
        self.total_lines = total_lines
        super().__init__(
            f"Invalid line range: {start}-{end} (valid range: 1-{total_lines})"
        )


# ---------------------------------------------------------------------------
# Attempt failures
# ---------------------------------------------------------------------------


class AttemptFailure(ForgeError):
    """Base for failures that end a single attempt.

    Attributes:
        severity: Audit level the Forge records for the attempt ("WARN"
            for candidate faults, "ERROR" when the backend never produced
            a usable candidate).
    """

    severity: str = "WARN"


class GenerationExhausted(AttemptFailure):
    """The generation loop hit its turn cap without emitting code."""

    severity = "ERROR"

    def __init__(self, turns: int) -> None:
        self.turns = turns
        super().__init__(
            f"Generation exhausted after {turns} turns without producing code"
        )


class ParseError(AttemptFailure):
    """A backend response contained no extractable candidate code."""

    severity = "ERROR"


class GenerationFailed(AttemptFailure):
    """The generative backend could not be reached or answered badly."""

    severity = "ERROR"


class SyntaxFault(AttemptFailure):
    """The candidate failed static parsing."""

    def __init__(self, message: str, lineno: int | None = None, offset: int | None = None) -> None:
        self.lineno = lineno
        self.offset = offset
        location = f" (line {lineno}, column {offset})" if lineno is not None else ""
        super().__init__(f"Syntax error: {message}{location}")


class ExecutionFault(AttemptFailure):
    """The candidate raised, timed out, or broke the contract in the sandbox."""

    def __init__(self, message: str, stack: str | None = None) -> None:
        self.stack = stack
        super().__init__(message)


class ExecutionTimeout(ExecutionFault):
    """A sandbox request exceeded its timeout; the worker was replaced."""

    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(f"Execution timed out after {timeout:g}s")


class SandboxViolation(ExecutionFault):
    """The candidate uses constructs the sandbox policy forbids."""

    def __init__(self, violations: list[str]) -> None:
        self.violations = violations
        super().__init__("Sandbox policy violation: " + "; ".join(violations))


class ValidationFailure(AttemptFailure):
    """The captured result did not match the ground truth."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__("Validation failed: " + ", ".join(self.errors))


# ---------------------------------------------------------------------------
# Harness lifecycle
# ---------------------------------------------------------------------------


class EnvironmentClosedError(ForgeError):
    """Raised when leasing a context from a closed execution environment."""

    def __init__(self) -> None:
        super().__init__("Execution environment is closed")
