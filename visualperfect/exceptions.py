"""Exception hierarchy for visual-perfect."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from visualperfect.types import FailureKind


class VisualPerfectError(Exception):
    """Base exception for all visual-perfect errors."""


class NavigationError(VisualPerfectError):
    """Raised by a single capture attempt, tagged with its failure kind."""

    def __init__(self, message: str, kind: FailureKind) -> None:
        super().__init__(message)
        self.kind = kind


class CaptureFailed(VisualPerfectError):
    """Raised when a screenshot could not be captured after retrying."""

    def __init__(self, message: str, kind: FailureKind) -> None:
        super().__init__(message)
        self.kind = kind


class DecodeError(VisualPerfectError):
    """Raised when image bytes cannot be decoded."""


class WriteError(VisualPerfectError):
    """Raised when a baseline cannot be persisted."""


class BaselineNotFound(VisualPerfectError):
    """Raised when loading a baseline that does not exist."""


class InvalidSubject(VisualPerfectError):
    """Raised when a subject identifier is missing or unsafe."""


class MissingCandidate(VisualPerfectError):
    """Raised when accept is requested without a candidate image."""


class InvalidTransition(VisualPerfectError):
    """Raised when a client event is not allowed in the current state."""


class ConfigError(VisualPerfectError):
    """Raised when configuration is invalid."""
