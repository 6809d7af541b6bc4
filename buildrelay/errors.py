"""Error taxonomy shared by the translator, registry, submitter and server."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    INVALID_INPUT = "invalid_input"
    NOT_FOUND = "not_found"
    DISPATCH_FAILURE = "dispatch_failure"
    PERSISTENCE_FAILURE = "persistence_failure"
    UNSUPPORTED_OPERATION = "unsupported_operation"
    CONFIG_UNAVAILABLE = "config_unavailable"


class BuildRelayError(Exception):
    kind: ErrorKind = ErrorKind.INVALID_INPUT

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidInput(BuildRelayError):
    """Malformed URI, wrong parameter multiplicity, bad pull request id."""

    kind = ErrorKind.INVALID_INPUT

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class NotFound(BuildRelayError):
    kind = ErrorKind.NOT_FOUND


class PersistenceFailure(BuildRelayError):
    kind = ErrorKind.PERSISTENCE_FAILURE


class UnsupportedOperation(BuildRelayError):
    kind = ErrorKind.UNSUPPORTED_OPERATION


class ConfigUnavailable(BuildRelayError):
    """The job store has not been started (or has been stopped)."""

    kind = ErrorKind.CONFIG_UNAVAILABLE
