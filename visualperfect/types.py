"""Enums and type aliases for visual-perfect."""

from enum import StrEnum


class ResultStatus(StrEnum):
    SUCCESS = "success"
    FAILED = "failed"
    NEW = "new"
    ERROR = "error"


class ClientStatus(StrEnum):
    IDLE = "idle"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    NEW = "new"
    ERROR = "error"


class ErrorKind(StrEnum):
    CAPTURE_FAILED = "capture_failed"
    DECODE_ERROR = "decode_error"
    INVALID_IMAGE = "invalid_image"
    WRITE_ERROR = "write_error"


class FailureKind(StrEnum):
    TIMEOUT = "timeout"
    CONNECTION_REFUSED = "connection_refused"
    CONNECTION_RESET = "connection_reset"
    NAME_NOT_RESOLVED = "name_not_resolved"
    ADDRESS_UNREACHABLE = "address_unreachable"
    ABORTED = "aborted"
    SERVER_ERROR = "server_error"
    CLIENT_ERROR = "client_error"
    BROWSER_LAUNCH = "browser_launch"
    SCREENSHOT = "screenshot"
    UNKNOWN = "unknown"


RETRYABLE_FAILURES: frozenset[FailureKind] = frozenset(
    {
        FailureKind.TIMEOUT,
        FailureKind.CONNECTION_REFUSED,
        FailureKind.CONNECTION_RESET,
        FailureKind.SERVER_ERROR,
    }
)


class ImageView(StrEnum):
    DIFF = "diff"
    CANDIDATE = "candidate"
    BASELINE = "baseline"


class PendingAction(StrEnum):
    RUN = "run"
    ACCEPT = "accept"
