"""
Typed application errors.

Every error carries a ``recoverable`` tag set where it is raised. Callers
branch on the tag (or the class) instead of inspecting message text:

- recoverable errors are expected, transient conditions (an unreadable session
  cookie, a malformed LLM reply that has a deterministic fallback, a chat send
  the user may simply retry);
- fatal errors are real faults (missing configuration, an upstream provider
  refusing the call) and are surfaced to the caller as structured JSON.
"""

from typing import Any, Optional


class AppError(Exception):
    """Base class for errors raised by the application."""

    recoverable: bool = False
    status_code: int = 500

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        details: Any = None,
        recoverable: Optional[bool] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details
        if status_code is not None:
            self.status_code = status_code
        if recoverable is not None:
            self.recoverable = recoverable

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class ConfigurationError(AppError):
    """A required API key or environment variable is missing."""


class UpstreamError(AppError):
    """A third-party API answered with a non-2xx status or could not be reached."""


class SessionCookieError(AppError):
    """The session cookie could not be parsed. Treated as 'no session'."""

    recoverable = True
    status_code = 401


class ExerciseParseError(AppError):
    """An LLM reply did not match the exercise schema."""

    recoverable = True
    status_code = 502


class ExerciseGenerationError(AppError):
    """No usable exercise could be built from the LLM reply."""

    status_code = 502


class ChatSendError(AppError):
    """A chat message could not be delivered after all attempts."""

    recoverable = True
    status_code = 503


class InvalidTransitionError(AppError):
    """The exercise timer was asked to make a transition its state forbids."""

    status_code = 409
