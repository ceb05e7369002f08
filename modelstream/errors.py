"""Exception types raised by modelstream.

Cancellation (``AbortError``) is kept separate from transport failures
(``ApiCallError``) so callers can tell "stopped on purpose" apart from
"broke". Observer failures never surface here; the event source isolates
them.
"""

from __future__ import annotations

from typing import Any


class ModelStreamError(RuntimeError):
    """Base class for errors raised by modelstream itself."""


class AbortError(ModelStreamError):
    """Raised when a call is aborted through its abort signal."""

    def __init__(self, message: str = "Aborted") -> None:
        super().__init__(message)


class ApiCallError(ModelStreamError):
    """Raised when the provider transport fails.

    Carries the HTTP details when the provider exposes them, and whether a
    retry of the same request could succeed.
    """

    def __init__(
        self,
        message: str,
        *,
        url: str = "",
        status_code: int | None = None,
        response_body: str | None = None,
        is_retryable: bool = False,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code
        self.response_body = response_body
        self.is_retryable = is_retryable
        self.cause = cause

    @classmethod
    def from_litellm(cls, error: Exception, model: str) -> ApiCallError:
        """Wrap a litellm exception, keeping its status code and body."""
        status_code: Any = getattr(error, "status_code", None)
        body = getattr(error, "message", None)
        retryable = status_code in (408, 409, 429) or (
            isinstance(status_code, int) and status_code >= 500
        )
        return cls(
            f"Call to {model} failed: {error}",
            status_code=status_code if isinstance(status_code, int) else None,
            response_body=body if isinstance(body, str) else None,
            is_retryable=retryable,
            cause=error,
        )


class StructureParseError(ModelStreamError):
    """Raised when a finished structure stream contains no usable JSON."""

    def __init__(self, text: str) -> None:
        super().__init__(f"Generated text is not JSON: {text[:80]!r}")
        self.text = text


class StructureValidationError(ModelStreamError):
    """Raised when the final structure fails schema validation."""

    def __init__(self, value: Any, cause: Exception) -> None:
        super().__init__(f"Structure does not match schema: {cause}")
        self.value = value
        self.cause = cause
