"""Error taxonomy shared by the orchestration layer and its callers.

Each exception carries a stable ``kind`` tag. Callers render messages by
looking the kind up; the core itself attaches no user-facing prose.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    INVALID_INPUT = "invalid_input"
    SERVICE_UNAVAILABLE = "service_unavailable"
    MALFORMED_RESPONSE = "malformed_response"
    ABORTED = "aborted"
    NOT_FOUND = "not_found"


class PRScribeError(Exception):
    """Base class for every tagged error raised by prscribe_core."""

    kind: ErrorKind = ErrorKind.SERVICE_UNAVAILABLE

    def __init__(self, message: str = "", cause: BaseException | None = None):
        super().__init__(message or self.kind.value)
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause


class InvalidInputError(PRScribeError):
    kind = ErrorKind.INVALID_INPUT


class ServiceUnavailableError(PRScribeError):
    kind = ErrorKind.SERVICE_UNAVAILABLE


class MalformedResponseError(PRScribeError):
    kind = ErrorKind.MALFORMED_RESPONSE


class AbortedError(PRScribeError):
    kind = ErrorKind.ABORTED


class NotFoundError(PRScribeError):
    kind = ErrorKind.NOT_FOUND


def wrap_unavailable(exc: Exception, message: str = "") -> PRScribeError:
    """Return ``exc`` if already tagged, else a ServiceUnavailableError around it."""
    if isinstance(exc, PRScribeError):
        return exc
    return ServiceUnavailableError(message or f"{type(exc).__name__}: {exc}", cause=exc)
