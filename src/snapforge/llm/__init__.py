"""Generative backend access for the code generation loop."""

from snapforge.llm.client import OpenAIClient, extract_message
from snapforge.llm.errors import (
    BackendAuthError,
    BackendConfigError,
    BackendError,
    BackendRateLimitError,
    BackendResponseError,
    BackendStatusError,
    BackendUnavailableError,
    error_for_status,
)
from snapforge.llm.protocols import LLMCallable, LLMClient

__all__ = [
    "OpenAIClient",
    "extract_message",
    "LLMClient",
    "LLMCallable",
    "BackendError",
    "BackendConfigError",
    "BackendRateLimitError",
    "BackendAuthError",
    "BackendResponseError",
    "BackendStatusError",
    "BackendUnavailableError",
    "error_for_status",
]
