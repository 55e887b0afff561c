"""Tagged error type shared by the agent loop, the stores and the HTTP layer.

Every failure that crosses a component boundary is an :class:`AgentError`
carrying an :class:`ErrorKind`. Callers branch on ``err.kind`` rather than on
exception subclasses; the HTTP layer maps the kind to a status code through
``HTTP_STATUS``.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    EXTERNAL_SERVICE = "external_service"
    TIMEOUT = "timeout"
    CONFLICT = "conflict"
    RATE_LIMIT = "rate_limit"


HTTP_STATUS: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.RATE_LIMIT: 429,
    ErrorKind.EXTERNAL_SERVICE: 502,
    ErrorKind.TIMEOUT: 504,
}

DEFAULT_STATUS = 500


class AgentError(Exception):
    """An error with a ``kind`` tag and a structured ``details`` payload."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.kind = ErrorKind(kind)
        self.message = message
        self.details = details or {}

    @property
    def status_code(self) -> int:
        return HTTP_STATUS.get(self.kind, DEFAULT_STATUS)

    def to_dict(self) -> dict:
        data: dict[str, Any] = {"kind": self.kind.value, "message": self.message}
        if self.details:
            data["details"] = self.details
        return data

    @classmethod
    def wrap(
        cls,
        exc: BaseException,
        kind: ErrorKind = ErrorKind.EXTERNAL_SERVICE,
        message: str | None = None,
    ) -> "AgentError":
        """Return ``exc`` unchanged if it is already tagged, else wrap it."""
        if isinstance(exc, AgentError):
            return exc
        return cls(
            kind,
            message or str(exc) or type(exc).__name__,
            {"cause": type(exc).__name__},
        )

    def __repr__(self) -> str:
        return f"AgentError({self.kind.value!r}, {self.message!r})"


def validation_error(message: str, **details) -> AgentError:
    return AgentError(ErrorKind.VALIDATION, message, details)


def not_found(message: str, **details) -> AgentError:
    return AgentError(ErrorKind.NOT_FOUND, message, details)


def external_service_error(message: str, **details) -> AgentError:
    return AgentError(ErrorKind.EXTERNAL_SERVICE, message, details)


def timeout_error(message: str, **details) -> AgentError:
    return AgentError(ErrorKind.TIMEOUT, message, details)


def conflict(message: str, **details) -> AgentError:
    return AgentError(ErrorKind.CONFLICT, message, details)


def rate_limited(message: str, **details) -> AgentError:
    return AgentError(ErrorKind.RATE_LIMIT, message, details)


def status_for(exc: BaseException) -> int:
    """HTTP status for any exception; untagged exceptions map to 500."""
    if isinstance(exc, AgentError):
        return exc.status_code
    return DEFAULT_STATUS
