"""Tool-calling code generation loop.

One ``generate()`` call is one bounded exchange with the backend: the model
explores the document through the exploration tools, then replies with a
fenced code block holding ``def extract():``. The exchange is an explicit
``GenerationState`` value driven by a plain ``for`` loop.
"""

from __future__ import annotations

import copy
import json
import logging
import re
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import httpx

from snapforge.document.tools import ExplorationToolProvider
from snapforge.exceptions import GenerationExhausted, GenerationFailed, ParseError, SyntaxFault
from snapforge.generation.prompts import NUDGE_PROMPT, SYSTEM_PROMPT, build_task_prompt
from snapforge.llm.client import extract_message
from snapforge.llm.errors import BackendConfigError, BackendError
from snapforge.models.snapshot import Candidate
from snapforge.toolkit.executor import ToolExecutor
from snapforge.toolkit.models import ToolCall

if TYPE_CHECKING:
    from snapforge.llm.protocols import LLMCallable, LLMClient
    from snapforge.models.config import ForgeConfig
    from snapforge.toolkit.models import ToolResult

logger = logging.getLogger(__name__)

_FENCED_BLOCK = re.compile(r"```(?:python|py)?[ \t]*\n(.+?)\n[ \t]*```", re.DOTALL)
_ENTRY_TEMPLATE = r"^def\s+{name}\s*\([^)]*\)\s*(?:->\s*[^:]+)?:.*"


# ---------------------------------------------------------------------------
# Code extraction and static checks
# ---------------------------------------------------------------------------


def extract_code(text: str, entry_point: str = "extract") -> str:
    """Pull candidate source out of a backend reply.

    Prefers the first fenced block; falls back to everything from
    ``def <entry_point>(`` to the end of the text.

    Raises:
        ParseError: If neither form is present.
    """
    match = _FENCED_BLOCK.search(text or "")
    if match and match.group(1).strip():
        return match.group(1).strip()

    pattern = re.compile(_ENTRY_TEMPLATE.format(name=re.escape(entry_point)), re.DOTALL | re.MULTILINE)
    match = pattern.search(text or "")
    if match:
        return match.group(0).strip()

    raise ParseError("Could not extract a valid Python function from the model response")


def validate_syntax(source: str) -> None:
    """Compile the candidate without running it.

    Raises:
        SyntaxFault: With line and column of the first syntax error.
    """
    try:
        compile(source, "<candidate>", "exec", dont_inherit=True)
    except SyntaxError as exc:
        raise SyntaxFault(exc.msg or "invalid syntax", exc.lineno, exc.offset) from exc
    except ValueError as exc:
        # e.g. null bytes in source
        raise SyntaxFault(str(exc)) from exc


# ---------------------------------------------------------------------------
# Generation state
# ---------------------------------------------------------------------------


@dataclass
class GenerationState:
    """Accumulated conversation and counters for one exchange."""

    messages: list[dict[str, Any]]
    max_turns: int
    turn: int = 0
    nudged: bool = False
    tool_calls: list[ToolCall] = field(default_factory=list)


class CodeGenerator:
    """Drives the tool-calling exchange that produces one Candidate.

    Exactly one of ``client`` or ``llm_callable`` must be given. The
    callable is invoked as ``llm_callable(messages=..., tools=...)`` and
    must return an OpenAI-format chat completion dict.

    Usage::

        generator = CodeGenerator(OpenAIClient(), config=ForgeConfig())
        candidate = generator.generate(html, {"name": "Ann"})
    """

    def __init__(
        self,
        client: LLMClient | None = None,
        *,
        llm_callable: LLMCallable | None = None,
        config: ForgeConfig | None = None,
        system_prompt: str | None = None,
    ) -> None:
        from snapforge.models.config import ForgeConfig as _ForgeConfig

        if client is None and llm_callable is None:
            raise BackendConfigError("CodeGenerator needs an LLM client or an llm_callable")
        self._client = client
        self._llm = llm_callable
        self._config = config or _ForgeConfig()
        self._system_prompt = system_prompt or SYSTEM_PROMPT

    @property
    def config(self) -> ForgeConfig:
        return self._config

    def close(self) -> None:
        """Close the backend client, if one was given. Callables own nothing."""
        if self._client is not None:
            self._client.close()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def generate(
        self,
        raw_document: str,
        ground_truth: dict[str, Any],
        previous_error: str | None = None,
        attempt: int = 1,
    ) -> Candidate:
        """Run one bounded exchange and return the emitted Candidate.

        Args:
            raw_document: The captured document the candidate will run against.
            ground_truth: Expected output shape. Read only.
            previous_error: Failure text from the preceding attempt, if any.
            attempt: 1-based attempt index recorded on the Candidate.

        Raises:
            GenerationExhausted: If ``max_turns`` pass without code.
            ParseError: If a text reply contains no extractable code.
            GenerationFailed: If the backend cannot be reached or answers badly.
        """
        provider = ExplorationToolProvider(raw_document, self._config)
        executor = ToolExecutor(provider.tools(), max_output_chars=self._config.tool_result_max_chars)
        tools = executor.openai_tools()

        state = GenerationState(
            messages=[
                {"role": "system", "content": self._system_prompt},
                {
                    "role": "user",
                    "content": build_task_prompt(
                        ground_truth, provider.index.total_lines, previous_error
                    ),
                },
            ],
            max_turns=self._config.max_turns,
        )

        for _ in range(state.max_turns):
            state.turn += 1
            response = self._call_llm(state.messages, tools)
            message = self._message(response)
            calls = self._extract_tool_calls(message)

            if not calls:
                source = extract_code(message.get("content") or "", self._config.entry_point)
                logger.info(
                    "Attempt %d: candidate emitted on turn %d after %d tool calls",
                    attempt, state.turn, len(state.tool_calls),
                )
                return Candidate(source=source, attempt=attempt, turns=state.turn)

            results = []
            for call in calls:
                logger.debug("Turn %d tool call %s(%s)", state.turn, call.name, call.arguments)
                results.append(executor.execute(call.name, call.arguments))
                state.tool_calls.append(call)
            state.messages.extend(self._format_tool_results(message, calls, results))

            if state.turn >= self._config.nudge_after_turn and not state.nudged:
                logger.debug("Turn %d without code, nudging", state.turn)
                state.messages.append({"role": "user", "content": NUDGE_PROMPT})
                state.nudged = True

        raise GenerationExhausted(state.max_turns)

    # ------------------------------------------------------------------
    # Internal methods
    # ------------------------------------------------------------------

    def _call_llm(self, messages: list[dict[str, Any]], tools: list[dict]) -> dict:
        try:
            if self._llm is not None:
                return self._llm(messages=messages, tools=tools)

            kwargs: dict[str, Any] = {"tools": tools}
            if self._config.model:
                kwargs["model"] = self._config.model
            if self._config.temperature is not None:
                kwargs["temperature"] = self._config.temperature
            if self._config.max_tokens is not None:
                kwargs["max_tokens"] = self._config.max_tokens
            return self._client.chat(messages, **kwargs)
        except (BackendError, httpx.HTTPError) as exc:
            raise GenerationFailed(f"Code generation failed: {exc}") from exc

    @staticmethod
    def _message(response: dict) -> dict:
        try:
            return extract_message(response)
        except BackendError as exc:
            raise GenerationFailed(f"Code generation failed: {exc}") from exc

    @staticmethod
    def _extract_tool_calls(message: dict) -> list[ToolCall]:
        """Parse ``message["tool_calls"]`` into ToolCall values."""
        calls: list[ToolCall] = []
        for raw in message.get("tool_calls") or []:
            func = raw.get("function") or {}
            name = func.get("name", "")
            raw_args = func.get("arguments") or "{}"
            try:
                arguments = json.loads(raw_args) if isinstance(raw_args, str) else dict(raw_args)
            except (json.JSONDecodeError, TypeError, ValueError):
                logger.warning("Malformed JSON in tool call arguments for %s", name)
                arguments = {}
            if not isinstance(arguments, dict):
                arguments = {}
            call_id = raw.get("id") or f"call_{uuid.uuid4().hex[:8]}"
            calls.append(ToolCall(id=call_id, name=name, arguments=arguments))
        return calls

    @staticmethod
    def _format_tool_results(
        message: dict,
        calls: list[ToolCall],
        results: list[ToolResult],
    ) -> list[dict[str, Any]]:
        """The assistant message followed by one ``tool`` message per call."""
        formatted: list[dict[str, Any]] = [copy.deepcopy(message)]
        for call, result in zip(calls, results):
            formatted.append({
                "role": "tool",
                "tool_call_id": call.id,
                "content": result.as_message_content(),
            })
        return formatted
