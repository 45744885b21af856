"""The Forge: bounded retry orchestrator.

Takes an ANNOTATED Snapshot through generate -> syntax check -> sandbox
run -> diff, up to ``max_retries`` times, and leaves it VERIFIED (with
the passing source stored) or EXTRACTED (with the last candidate stored
for audit). Each failed attempt appends exactly one audit entry; each
Snapshot gets exactly one terminal entry.

Failures of a single Snapshot never escape :meth:`Forge.process`; the
audit log is where they are reported.
"""

from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable

from snapforge.exceptions import (
    AttemptFailure,
    ExecutionFault,
    InvalidStateError,
    SyntaxFault,
    ValidationFailure,
)
from snapforge.generation.loop import validate_syntax
from snapforge.models.snapshot import LogLevel, PipelineState
from snapforge.validation import diff_against_ground_truth

if TYPE_CHECKING:
    from snapforge.gauntlet import Gauntlet, GauntletResult
    from snapforge.generation.loop import CodeGenerator
    from snapforge.models.config import ForgeConfig
    from snapforge.models.snapshot import Candidate, Snapshot
    from snapforge.storage.repositories import SnapshotRepository

logger = logging.getLogger(__name__)

NO_GROUND_TRUTH_MESSAGE = "No ground truth found - cannot generate extractor"


class ForgeState(str, enum.Enum):
    """Where the orchestrator is within one Snapshot's run."""

    ANNOTATED = "ANNOTATED"
    GENERATING = "GENERATING"
    EXECUTING = "EXECUTING"
    VALIDATING = "VALIDATING"
    VERIFIED = "VERIFIED"
    EXTRACTED = "EXTRACTED"


class OutcomeKind(str, enum.Enum):
    """Classification of one attempt's outcome."""

    VERIFIED = "verified"
    GENERATION_FAILED = "generation_failed"
    SYNTAX_FAULT = "syntax_fault"
    EXECUTION_FAULT = "execution_fault"
    VALIDATION_FAILURE = "validation_failure"


# Most specific class first; anything else is a generation failure.
_OUTCOME_KINDS: tuple[tuple[type[AttemptFailure], OutcomeKind], ...] = (
    (SyntaxFault, OutcomeKind.SYNTAX_FAULT),
    (ValidationFailure, OutcomeKind.VALIDATION_FAILURE),
    (ExecutionFault, OutcomeKind.EXECUTION_FAULT),
)


def _outcome_kind(exc: AttemptFailure) -> OutcomeKind:
    for cls, kind in _OUTCOME_KINDS:
        if isinstance(exc, cls):
            return kind
    return OutcomeKind.GENERATION_FAILED


def _attempt_message(attempt: int, exc: AttemptFailure, level: LogLevel) -> str:
    """Audit text for a failed attempt; the wording follows the severity."""
    if isinstance(exc, SyntaxFault):
        return f"Attempt {attempt} - Syntax validation failed: {exc}"
    verb = "error" if level is LogLevel.ERROR else "failed"
    return f"Attempt {attempt} {verb}: {exc}"


@dataclass(frozen=True)
class AttemptOutcome:
    """Record of one attempt.

    ``candidate`` is None when generation failed before code existed.
    """

    attempt: int
    kind: OutcomeKind
    message: str
    candidate: Candidate | None = None
    execution_time_ms: float | None = None

    @property
    def succeeded(self) -> bool:
        return self.kind is OutcomeKind.VERIFIED


@dataclass(frozen=True)
class ForgeResult:
    """Terminal result of processing one Snapshot."""

    snapshot_id: str
    state: PipelineState
    attempts: int
    outcomes: list[AttemptOutcome] = field(default_factory=list)
    extractor_source: str | None = None

    @property
    def verified(self) -> bool:
        return self.state is PipelineState.VERIFIED


class Forge:
    """Coordinates generator, sandbox and diff across bounded attempts.

    Usage::

        forge = Forge(CodeGenerator(client), Gauntlet(env), config=ForgeConfig())
        result = forge.process(snapshot)
    """

    def __init__(
        self,
        generator: CodeGenerator,
        gauntlet: Gauntlet,
        config: ForgeConfig | None = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        from snapforge.models.config import ForgeConfig as _ForgeConfig

        self._generator = generator
        self._gauntlet = gauntlet
        self._config = config or _ForgeConfig()
        self._sleep = sleep
        self._state = ForgeState.ANNOTATED

    @property
    def state(self) -> ForgeState:
        return self._state

    @property
    def config(self) -> ForgeConfig:
        return self._config

    def close(self) -> None:
        """Release the generator's backend client.

        The Gauntlet's environment belongs to the caller and stays open.
        """
        self._generator.close()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def process(self, snapshot: Snapshot) -> ForgeResult:
        """Run the retry loop for one Snapshot and update it in place.

        Raises:
            InvalidStateError: If the Snapshot is not ANNOTATED. Nothing else
                is raised; attempt failures go to the audit log.
        """
        if snapshot.state is not PipelineState.ANNOTATED:
            raise InvalidStateError(snapshot.snapshot_id, snapshot.state.value)
        self._state = ForgeState.ANNOTATED

        if snapshot.ground_truth is None:
            snapshot.log(LogLevel.ERROR, NO_GROUND_TRUTH_MESSAGE)
            return self._finish(snapshot, PipelineState.EXTRACTED, [])

        max_retries = self._config.max_retries
        outcomes: list[AttemptOutcome] = []
        last_error: str | None = None
        latest_candidate: Candidate | None = None

        for attempt in range(1, max_retries + 1):
            logger.info("Snapshot %s attempt %d/%d", snapshot.snapshot_id, attempt, max_retries)
            outcome = self._attempt(snapshot, attempt, last_error)
            outcomes.append(outcome)
            if outcome.candidate is not None:
                latest_candidate = outcome.candidate

            if outcome.succeeded:
                snapshot.extractor_source = outcome.candidate.source
                snapshot.log(
                    LogLevel.INFO,
                    f"Code verified on attempt {attempt} "
                    f"(execution time: {outcome.execution_time_ms:.0f}ms)",
                )
                return self._finish(snapshot, PipelineState.VERIFIED, outcomes)

            last_error = outcome.message
            if attempt < max_retries and self._config.backoff_seconds > 0:
                self._sleep(self._config.backoff_seconds)

        if latest_candidate is not None:
            snapshot.extractor_source = latest_candidate.source
        snapshot.log(
            LogLevel.ERROR,
            f"Failed after {max_retries} attempts. Last error: {last_error}",
        )
        return self._finish(snapshot, PipelineState.EXTRACTED, outcomes)

    def process_next(self, repository: SnapshotRepository) -> bool:
        """Process the oldest eligible Snapshot and save it.

        Returns:
            True if a Snapshot was processed to a terminal state, False if
            none was eligible.
        """
        snapshot = repository.next_eligible()
        if snapshot is None:
            return False
        logger.info("Forge processing snapshot %s", snapshot.snapshot_id)
        self.process(snapshot)
        repository.save(snapshot)
        return True

    # ------------------------------------------------------------------
    # Internal methods
    # ------------------------------------------------------------------

    def _attempt(self, snapshot: Snapshot, attempt: int, previous_error: str | None) -> AttemptOutcome:
        """One generate -> check -> execute -> validate cycle.

        Appends exactly one audit entry unless the attempt succeeds.
        """
        candidate: Candidate | None = None
        run: GauntletResult | None = None
        try:
            self._state = ForgeState.GENERATING
            candidate = self._generator.generate(
                snapshot.raw_document,
                snapshot.ground_truth,
                previous_error=previous_error,
                attempt=attempt,
            )
            validate_syntax(candidate.source)

            self._state = ForgeState.EXECUTING
            run = self._gauntlet.execute(snapshot.raw_document, candidate.source)
            if not run.success:
                raise ExecutionFault(run.error or "Unknown execution error", run.stack)

            self._state = ForgeState.VALIDATING
            diff = diff_against_ground_truth(run.extracted_data, snapshot.ground_truth)
            if not diff.valid:
                raise ValidationFailure(diff.errors)

        except AttemptFailure as exc:
            message = str(exc)
            level = LogLevel(exc.severity)
            if level is LogLevel.ERROR:
                logger.warning("Snapshot %s attempt %d error: %s", snapshot.snapshot_id, attempt, message)
            else:
                logger.info("Snapshot %s attempt %d failed: %s", snapshot.snapshot_id, attempt, message)
            snapshot.log(level, _attempt_message(attempt, exc, level))
            elapsed = run.execution_time_ms if run is not None else None
            return AttemptOutcome(attempt, _outcome_kind(exc), message, candidate, elapsed)

        except Exception as exc:
            message = f"{type(exc).__name__}: {exc}"
            logger.exception("Snapshot %s attempt %d crashed", snapshot.snapshot_id, attempt)
            snapshot.log(LogLevel.ERROR, f"Attempt {attempt} error: {message}")
            return AttemptOutcome(attempt, OutcomeKind.GENERATION_FAILED, message, candidate)

        return AttemptOutcome(
            attempt, OutcomeKind.VERIFIED, "verified", candidate, run.execution_time_ms
        )

    def _finish(
        self,
        snapshot: Snapshot,
        state: PipelineState,
        outcomes: list[AttemptOutcome],
    ) -> ForgeResult:
        snapshot.state = state
        self._state = ForgeState(state.value)
        logger.info(
            "Snapshot %s %s after %d attempt(s)", snapshot.snapshot_id, state.value, len(outcomes)
        )
        return ForgeResult(
            snapshot_id=snapshot.snapshot_id,
            state=state,
            attempts=len(outcomes),
            outcomes=outcomes,
            extractor_source=snapshot.extractor_source,
        )
