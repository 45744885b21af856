"""Generative backend protocols.

The generation loop accepts either an object implementing ``LLMClient`` or
a bare callable implementing ``LLMCallable``. Both must return an
OpenAI-style chat completion dict.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class LLMClient(Protocol):
    """Protocol for pluggable chat clients.

    The built-in OpenAIClient implements this protocol. Any object with
    matching ``chat()`` and ``close()`` methods works.
    """

    def chat(
        self,
        messages: list[dict[str, Any]],
        *,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        **kwargs: Any,
    ) -> dict:
        """Send messages (and optional ``tools=``), return the response dict."""
        ...

    def close(self) -> None:
        """Release underlying resources."""
        ...


@runtime_checkable
class LLMCallable(Protocol):
    """A plain function standing in for a full client.

    Called as ``fn(messages=..., tools=...)``. Tests use this to script
    backend responses turn by turn.
    """

    def __call__(self, *, messages: list[dict[str, Any]], tools: list[dict]) -> dict:
        ...
