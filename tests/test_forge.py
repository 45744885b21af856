"""Tests for the Forge retry orchestrator.

Generation is scripted with ScriptedGenerator (or a mock LLM for the
end-to-end case); execution goes through the real sandbox worker.
"""

from __future__ import annotations

import copy

import pytest

from snapforge.exceptions import (
    AttemptFailure,
    GenerationExhausted,
    GenerationFailed,
    InvalidStateError,
)
from snapforge.forge import NO_GROUND_TRUTH_MESSAGE, Forge, ForgeState, OutcomeKind
from snapforge.gauntlet import Gauntlet
from snapforge.generation import CodeGenerator
from snapforge.models.config import ForgeConfig
from snapforge.models.snapshot import LogLevel, LogPhase, PipelineState, Snapshot
from tests.helpers import (
    PASSING_SOURCE,
    SAMPLE_DOCUMENT,
    SAMPLE_TRUTH,
    WRONG_SOURCE,
    ScriptedGenerator,
    code_response,
    make_mock_llm,
    tool_call_response,
)

pytestmark = pytest.mark.sandbox

RAISING_SOURCE = "def extract():\n    raise ValueError('boom')\n"


def _annotated(ground_truth=SAMPLE_TRUTH, document=SAMPLE_DOCUMENT) -> Snapshot:
    return Snapshot(
        raw_document=document,
        ground_truth=copy.deepcopy(ground_truth),
        state=PipelineState.ANNOTATED,
    )


@pytest.fixture
def make_forge(environment, fast_config):
    def _make(script, config=None, **kwargs):
        generator = ScriptedGenerator(script)
        cfg = config or fast_config
        return Forge(generator, Gauntlet(environment, cfg), cfg, **kwargs), generator

    return _make


def _messages(snapshot: Snapshot, level: LogLevel) -> list[str]:
    return [e.message for e in snapshot.entries(level)]


class TestPreconditions:
    def test_rejects_non_annotated(self, make_forge):
        forge, _ = make_forge([PASSING_SOURCE])
        snapshot = Snapshot(raw_document=SAMPLE_DOCUMENT, ground_truth=SAMPLE_TRUTH)
        with pytest.raises(InvalidStateError):
            forge.process(snapshot)
        assert snapshot.state is PipelineState.NEW
        assert snapshot.logs == []

    def test_missing_ground_truth(self, make_forge):
        forge, generator = make_forge([PASSING_SOURCE])
        snapshot = _annotated(ground_truth=None)

        result = forge.process(snapshot)

        assert result.state is PipelineState.EXTRACTED
        assert result.attempts == 0
        assert snapshot.state is PipelineState.EXTRACTED
        assert snapshot.extractor_source is None
        assert _messages(snapshot, LogLevel.ERROR) == [NO_GROUND_TRUTH_MESSAGE]
        assert generator.calls == []


class TestRetryLoop:
    def test_verified_first_attempt(self, make_forge):
        forge, generator = make_forge([PASSING_SOURCE])
        snapshot = _annotated()

        result = forge.process(snapshot)

        assert result.verified
        assert result.attempts == 1
        assert snapshot.state is PipelineState.VERIFIED
        assert snapshot.extractor_source == PASSING_SOURCE
        assert _messages(snapshot, LogLevel.WARN) == []
        assert _messages(snapshot, LogLevel.ERROR) == []
        info = _messages(snapshot, LogLevel.INFO)
        assert len(info) == 1
        assert info[0].startswith("Code verified on attempt 1 (execution time: ")
        assert info[0].endswith("ms)")
        assert all(e.phase is LogPhase.FORGE for e in snapshot.logs)
        assert generator.calls == [{"previous_error": None, "attempt": 1}]
        assert forge.state is ForgeState.VERIFIED

    def test_verified_on_last_attempt(self, make_forge):
        forge, generator = make_forge([WRONG_SOURCE, RAISING_SOURCE, PASSING_SOURCE])
        snapshot = _annotated()

        result = forge.process(snapshot)

        assert result.verified
        assert result.attempts == 3
        assert [o.kind for o in result.outcomes] == [
            OutcomeKind.VALIDATION_FAILURE,
            OutcomeKind.EXECUTION_FAULT,
            OutcomeKind.VERIFIED,
        ]
        warnings = _messages(snapshot, LogLevel.WARN)
        assert len(warnings) == 2
        assert warnings[0].startswith('Attempt 1 failed: Validation failed: Field name: expected "Ann Smith"')
        assert warnings[1] == "Attempt 2 failed: ValueError: boom"
        assert _messages(snapshot, LogLevel.INFO)[0].startswith("Code verified on attempt 3")

    def test_previous_error_is_fed_forward(self, make_forge):
        forge, generator = make_forge([RAISING_SOURCE, PASSING_SOURCE])
        forge.process(_annotated())
        assert generator.calls[0]["previous_error"] is None
        assert generator.calls[1] == {"previous_error": "ValueError: boom", "attempt": 2}

    def test_all_attempts_fail(self, make_forge):
        forge, _ = make_forge([WRONG_SOURCE] * 3)
        snapshot = _annotated()

        result = forge.process(snapshot)

        assert not result.verified
        assert result.state is PipelineState.EXTRACTED
        assert result.attempts == 3
        assert snapshot.extractor_source == WRONG_SOURCE
        assert len(_messages(snapshot, LogLevel.WARN)) == 3
        errors = _messages(snapshot, LogLevel.ERROR)
        assert len(errors) == 1
        assert errors[0].startswith("Failed after 3 attempts. Last error: Validation failed: ")
        assert forge.state is ForgeState.EXTRACTED

    def test_ground_truth_untouched(self, make_forge):
        truth = {"name": "Ann Smith", "dob": "1985-03-14", "meds": [{"name": "Aspirin"}]}
        forge, _ = make_forge([WRONG_SOURCE] * 3)
        snapshot = _annotated(ground_truth=truth)
        forge.process(snapshot)
        assert snapshot.ground_truth == truth


class TestFailureKinds:
    def test_syntax_fault_is_warning(self, make_forge):
        forge, generator = make_forge(["def extract(:\n    return {}", PASSING_SOURCE])
        snapshot = _annotated()

        result = forge.process(snapshot)

        assert result.verified
        assert result.outcomes[0].kind is OutcomeKind.SYNTAX_FAULT
        warnings = _messages(snapshot, LogLevel.WARN)
        assert len(warnings) == 1
        assert warnings[0].startswith("Attempt 1 - Syntax validation failed: Syntax error: ")
        assert generator.calls[1]["previous_error"].startswith("Syntax error: ")

    def test_generation_failure_is_error(self, make_forge):
        forge, _ = make_forge([GenerationFailed("Code generation failed: backend down"), PASSING_SOURCE])
        snapshot = _annotated()

        result = forge.process(snapshot)

        assert result.verified
        assert result.outcomes[0].kind is OutcomeKind.GENERATION_FAILED
        assert result.outcomes[0].candidate is None
        assert _messages(snapshot, LogLevel.ERROR) == [
            "Attempt 1 error: Code generation failed: backend down"
        ]

    def test_exhausted_generation_is_error(self, make_forge):
        forge, _ = make_forge([GenerationExhausted(10)] * 3)
        snapshot = _annotated()

        result = forge.process(snapshot)

        assert result.state is PipelineState.EXTRACTED
        assert snapshot.extractor_source is None
        errors = _messages(snapshot, LogLevel.ERROR)
        assert len(errors) == 4
        assert errors[0] == "Attempt 1 error: Generation exhausted after 10 turns without producing code"
        assert errors[-1].startswith("Failed after 3 attempts.")

    def test_unexpected_exception_is_contained(self, make_forge):
        forge, _ = make_forge([RuntimeError("kaboom"), PASSING_SOURCE])
        snapshot = _annotated()

        result = forge.process(snapshot)

        assert result.verified
        assert _messages(snapshot, LogLevel.ERROR) == ["Attempt 1 error: RuntimeError: kaboom"]

    def test_latest_candidate_kept_after_generation_failure(self, make_forge):
        forge, _ = make_forge([WRONG_SOURCE, RAISING_SOURCE, GenerationFailed("Code generation failed: x")])
        snapshot = _annotated()
        forge.process(snapshot)
        assert snapshot.extractor_source == RAISING_SOURCE

    @pytest.mark.parametrize("severity, level, text", [
        ("WARN", LogLevel.WARN, "Attempt 1 failed: quota reached"),
        ("ERROR", LogLevel.ERROR, "Attempt 1 error: quota reached"),
    ])
    def test_severity_sets_audit_level(self, make_forge, severity, level, text):
        class QuotaReached(AttemptFailure):
            pass

        QuotaReached.severity = severity
        forge, _ = make_forge([QuotaReached("quota reached"), PASSING_SOURCE])
        snapshot = _annotated()

        result = forge.process(snapshot)

        assert result.verified
        assert result.outcomes[0].kind is OutcomeKind.GENERATION_FAILED
        assert _messages(snapshot, level) == [text]

    def test_document_node_return_never_verifies(self, make_forge):
        node_source = "def extract():\n    return {'name': query_deep('.patient-name')}\n"
        forge, _ = make_forge([node_source] * 3)
        snapshot = _annotated(ground_truth={"name": "Ann Smith"})

        result = forge.process(snapshot)

        assert result.state is PipelineState.EXTRACTED
        assert result.outcomes[0].kind is OutcomeKind.EXECUTION_FAULT
        warnings = _messages(snapshot, LogLevel.WARN)
        assert warnings[0].startswith("Attempt 1 failed: extract() returned a non-plain value: ")


class TestBackoff:
    def test_sleeps_between_attempts_only(self, environment):
        sleeps: list[float] = []
        config = ForgeConfig(max_retries=3, backoff_seconds=1.5)
        forge = Forge(
            ScriptedGenerator([WRONG_SOURCE] * 3),
            Gauntlet(environment, config),
            config,
            sleep=sleeps.append,
        )
        forge.process(_annotated())
        assert sleeps == [1.5, 1.5]

    def test_no_sleep_on_success(self, environment):
        sleeps: list[float] = []
        config = ForgeConfig(max_retries=3, backoff_seconds=1.5)
        forge = Forge(
            ScriptedGenerator([PASSING_SOURCE]),
            Gauntlet(environment, config),
            config,
            sleep=sleeps.append,
        )
        forge.process(_annotated())
        assert sleeps == []


class TestProcessNext:
    def test_processes_and_saves(self, make_forge, snapshot_repo):
        forge, _ = make_forge([PASSING_SOURCE])
        snapshot = _annotated()
        snapshot_repo.add(snapshot)

        assert forge.process_next(snapshot_repo) is True

        stored = snapshot_repo.get(snapshot.snapshot_id)
        assert stored.state is PipelineState.VERIFIED
        assert stored.extractor_source == PASSING_SOURCE
        assert [e.level for e in stored.logs] == [LogLevel.INFO]

    def test_nothing_eligible(self, make_forge, snapshot_repo):
        forge, generator = make_forge([PASSING_SOURCE])
        snapshot_repo.add(Snapshot(raw_document="<p></p>", state=PipelineState.NEW))
        assert forge.process_next(snapshot_repo) is False
        assert generator.calls == []


class TestEndToEnd:
    def test_mock_backend_to_verified(self, environment, fast_config):
        source = "def extract():\n    return {'name': get_text_deep(query_deep('#n'))}"
        llm = make_mock_llm([
            tool_call_response("search_html", {"query": "#n"}),
            code_response(source),
        ])
        forge = Forge(
            CodeGenerator(llm_callable=llm, config=fast_config),
            Gauntlet(environment, fast_config),
            fast_config,
        )
        snapshot = _annotated(ground_truth={"name": "Ann"}, document="<div id='n'>Ann</div>")

        result = forge.process(snapshot)

        assert result.verified
        assert result.attempts == 1
        assert result.outcomes[0].candidate.turns == 2
        assert snapshot.extractor_source == source
