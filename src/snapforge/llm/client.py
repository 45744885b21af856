"""OpenAI-compatible chat client used as the default generative backend.

Sync httpx client with tenacity retry. Configuration comes from
constructor arguments or ``SNAPFORGE_*`` environment variables.
"""

from __future__ import annotations

import logging
import os
from typing import Any

import httpx
import tenacity

from snapforge.llm.errors import (
    BackendConfigError,
    BackendResponseError,
    BackendStatusError,
    error_for_status,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-4o"

TRANSIENT_TRANSPORT_ERRORS = (httpx.ConnectError, httpx.ConnectTimeout, httpx.ReadTimeout)


def _should_retry(exc: BaseException) -> bool:
    if isinstance(exc, BackendStatusError):
        return exc.transient
    return isinstance(exc, TRANSIENT_TRANSPORT_ERRORS)


def _retry_after(response: httpx.Response) -> float | None:
    raw = response.headers.get("Retry-After")
    if raw is None:
        return None
    try:
        return float(raw)
    except ValueError:
        return None


def _raise_for_backend_status(response: httpx.Response) -> None:
    if response.is_success:
        return
    raise error_for_status(response.status_code, response.text, _retry_after(response))


def extract_message(response: dict) -> dict:
    """Return the first choice's message dict from a completion response.

    Raises:
        BackendResponseError: If the response has no usable first choice.
    """
    try:
        message = response["choices"][0]["message"]
    except (KeyError, IndexError, TypeError) as exc:
        raise BackendResponseError(
            f"Cannot extract message from response: {exc}. Response: {response}"
        ) from exc
    if not isinstance(message, dict):
        raise BackendResponseError(f"Message is not an object: {message!r}")
    return message


class OpenAIClient:
    """Chat-completions client for any OpenAI-compatible endpoint.

    Implements the LLMClient protocol. 429, 5xx and connection failures are
    retried with jittered exponential backoff; any other failure status
    raises at once.

    Usage::

        with OpenAIClient(api_key="sk-...") as client:
            response = client.chat(messages, tools=executor.openai_tools())
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        default_model: str | None = None,
        timeout: float = 120.0,
        max_retries: int = 3,
    ) -> None:
        """Initialize the client.

        Args:
            api_key: Falls back to SNAPFORGE_OPENAI_API_KEY.
            base_url: Falls back to SNAPFORGE_OPENAI_BASE_URL, then the
                public OpenAI endpoint.
            default_model: Used when chat() gets none. Falls back to
                SNAPFORGE_MODEL.
            timeout: Per-request timeout in seconds.
            max_retries: Total attempts for a retryable failure.

        Raises:
            BackendConfigError: If no API key is given or set.
        """
        key = api_key or os.environ.get("SNAPFORGE_OPENAI_API_KEY", "")
        if not key:
            raise BackendConfigError(
                "No API key provided. Pass api_key= or set SNAPFORGE_OPENAI_API_KEY."
            )
        self._api_key = key
        root = base_url or os.environ.get("SNAPFORGE_OPENAI_BASE_URL") or DEFAULT_BASE_URL
        self._base_url = root.rstrip("/")
        self._default_model = default_model or os.environ.get("SNAPFORGE_MODEL") or DEFAULT_MODEL
        self._max_retries = max_retries
        self._client = httpx.Client(
            timeout=httpx.Timeout(timeout),
            headers={"Authorization": f"Bearer {key}"},
        )

    @property
    def default_model(self) -> str:
        return self._default_model

    def chat(
        self,
        messages: list[dict[str, Any]],
        *,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        **kwargs: Any,
    ) -> dict:
        """POST one chat completion, retrying transient failures.

        Extra keyword arguments (``tools``, ``tool_choice``...) go into the
        payload. With tools and no explicit ``tool_choice`` the model is
        left to decide (``"auto"``).

        Raises:
            BackendStatusError: On a failure status; transient ones (429,
                5xx) only once retries run out.
            BackendResponseError: When the payload has no ``choices``.
        """
        payload: dict[str, Any] = {
            "model": model or self._default_model,
            "messages": messages,
            **{k: v for k, v in (("temperature", temperature), ("max_tokens", max_tokens)) if v is not None},
        }
        if kwargs.get("tools") and "tool_choice" not in kwargs:
            payload["tool_choice"] = "auto"
        payload.update(kwargs)

        for attempt in tenacity.Retrying(
            retry=tenacity.retry_if_exception(_should_retry),
            wait=tenacity.wait_exponential(multiplier=1, min=1, max=30) + tenacity.wait_random(0, 2),
            stop=tenacity.stop_after_attempt(self._max_retries),
            before_sleep=tenacity.before_sleep_log(logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                data = self._post(payload)
        return data

    def _post(self, payload: dict[str, Any]) -> dict:
        response = self._client.post(f"{self._base_url}/chat/completions", json=payload)
        _raise_for_backend_status(response)

        data = response.json()
        if not isinstance(data, dict) or "choices" not in data:
            raise BackendResponseError(
                f"Unexpected response format: missing 'choices' key. Response: {data}"
            )
        usage = data.get("usage") or {}
        if usage:
            logger.debug(
                "Completion used %s prompt / %s completion tokens",
                usage.get("prompt_tokens"),
                usage.get("completion_tokens"),
            )
        return data

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> OpenAIClient:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
