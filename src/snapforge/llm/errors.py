"""Errors raised while talking to the generative backend.

Every backend error is a ForgeError; the generation loop turns them into
GenerationFailed attempt outcomes. HTTP failures are classified here, not
in the client: each ``BackendStatusError`` subclass claims the status
codes it stands for and says whether a retry could help.
"""

from __future__ import annotations

from snapforge.exceptions import ForgeError


class BackendError(ForgeError):
    """Base for all generative backend errors."""


class BackendConfigError(BackendError):
    """The backend cannot be used as configured (no API key, no client)."""


class BackendResponseError(BackendError):
    """A 2xx answer whose payload is not a chat completion."""


# ---------------------------------------------------------------------------
# HTTP status failures
# ---------------------------------------------------------------------------


class BackendStatusError(BackendError):
    """The backend answered with a failure status.

    Attributes:
        status: The HTTP status code.
        body: Response text, kept for the audit message.
        transient: True when the same request may succeed later.
    """

    status_codes: frozenset[int] = frozenset()
    transient: bool = False
    label = "Backend request failed"

    def __init__(self, status: int, body: str = "") -> None:
        self.status = status
        self.body = body
        detail = f" - {body}" if body else ""
        super().__init__(f"{self.label}: HTTP {status}{detail}")


class BackendAuthError(BackendStatusError):
    """Credentials were rejected. Never retried."""

    status_codes = frozenset({401, 403})
    label = "Authentication failed"


class BackendRateLimitError(BackendStatusError):
    """The backend is throttling us.

    Attributes:
        retry_after: Seconds from the Retry-After header, if one was sent.
    """

    status_codes = frozenset({429})
    transient = True
    label = "Rate limited"

    def __init__(self, status: int = 429, body: str = "", retry_after: float | None = None) -> None:
        self.retry_after = retry_after
        super().__init__(status, body)
        if retry_after is not None:
            self.args = (f"{self.args[0]} (retry after {retry_after:g}s)",)


class BackendUnavailableError(BackendStatusError):
    """Gateway or server failure on the backend side."""

    status_codes = frozenset({500, 502, 503, 504})
    transient = True
    label = "Backend unavailable"


def error_for_status(
    status: int, body: str = "", retry_after: float | None = None
) -> BackendStatusError:
    """Build the error that represents ``status``.

    Codes no subclass claims map to a plain, non-transient
    BackendStatusError.
    """
    if status in BackendRateLimitError.status_codes:
        return BackendRateLimitError(status, body, retry_after=retry_after)
    for cls in (BackendAuthError, BackendUnavailableError):
        if status in cls.status_codes:
            return cls(status, body)
    return BackendStatusError(status, body)
