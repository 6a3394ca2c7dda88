"""Exception hierarchy shared by the webhook pipeline."""

from __future__ import annotations

from typing import Any


class PRLineCounterError(RuntimeError):
    """Base class for errors raised by the pipeline."""


class AuthError(PRLineCounterError):
    """Raised when a request or credential cannot be authenticated."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class UpstreamError(PRLineCounterError):
    """Raised when an external service call fails."""

    def __init__(self, message: str, status_code: int = 0, response_body: Any | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class MalformedResponseError(PRLineCounterError):
    """Raised when the review service replies with unusable output."""


class PipelineError(PRLineCounterError):
    """Raised when a pull request pipeline step fails."""

    def __init__(self, message: str, step: str, original_error: Exception | None = None):
        super().__init__(message)
        self.step = step
        self.original_error = original_error

    @property
    def is_auth_failure(self) -> bool:
        return isinstance(self.original_error, AuthError)
