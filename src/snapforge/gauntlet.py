"""The Gauntlet: run one candidate against one document in the sandbox.

``execute()`` is the bare harness: lease a context, inject the runtime and
the candidate, invoke the entry point, capture value or fault and timing.
``run()`` adds the ground-truth diff on top.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from snapforge.exceptions import AttemptFailure, ExecutionFault
from snapforge.validation import diff_against_ground_truth

if TYPE_CHECKING:
    from snapforge.models.config import ForgeConfig
    from snapforge.sandbox.environment import ExecutionEnvironment

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GauntletResult:
    """What one sandboxed run produced."""

    success: bool
    extracted_data: dict[str, Any] | None = None
    error: str | None = None
    stack: str | None = None
    execution_time_ms: float = 0.0
    validation_errors: list[str] = field(default_factory=list)
    console: list[str] = field(default_factory=list)


class Gauntlet:
    """Runs candidates through a shared :class:`ExecutionEnvironment`."""

    def __init__(self, environment: ExecutionEnvironment, config: ForgeConfig | None = None) -> None:
        from snapforge.models.config import ForgeConfig as _ForgeConfig

        self._env = environment
        self._config = config or _ForgeConfig()

    @property
    def environment(self) -> ExecutionEnvironment:
        return self._env

    def execute(self, raw_document: str, source: str) -> GauntletResult:
        """Run ``source`` against ``raw_document``; never raises for candidate faults."""
        entry = self._config.entry_point
        start = time.perf_counter()
        try:
            with self._env.open_context(raw_document) as ctx:
                ctx.inject_runtime()
                ctx.inject(source)
                invocation = ctx.invoke(entry)
        except AttemptFailure as exc:
            elapsed = _elapsed_ms(start)
            logger.debug("Candidate faulted after %.1fms: %s", elapsed, exc)
            return GauntletResult(
                success=False,
                error=str(exc),
                stack=getattr(exc, "stack", None),
                execution_time_ms=elapsed,
            )

        elapsed = _elapsed_ms(start)
        value = invocation.value
        if not isinstance(value, dict):
            fault = ExecutionFault(f"{entry}() must return a dict, got {_type_name(value)}")
            return GauntletResult(
                success=False,
                error=str(fault),
                execution_time_ms=elapsed,
                console=invocation.console,
            )
        return GauntletResult(
            success=True,
            extracted_data=value,
            execution_time_ms=elapsed,
            console=invocation.console,
        )

    def run(
        self,
        raw_document: str,
        source: str,
        ground_truth: dict[str, Any] | None = None,
    ) -> GauntletResult:
        """Execute, then diff against ``ground_truth`` when one is given."""
        result = self.execute(raw_document, source)
        if not result.success or ground_truth is None:
            return result
        diff = diff_against_ground_truth(result.extracted_data, ground_truth)
        if diff.valid:
            return result
        return GauntletResult(
            success=False,
            extracted_data=result.extracted_data,
            error="Validation failed: " + ", ".join(diff.errors),
            execution_time_ms=result.execution_time_ms,
            validation_errors=diff.errors,
            console=result.console,
        )


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


def _type_name(value: Any) -> str:
    return type(value).__name__
