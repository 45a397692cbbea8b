"""Error taxonomy shared by batch pipelines.

Collaborators (feed clients, renderers) raise ``CollaboratorError`` tagged with
an ``ErrorKind`` so the scheduler can decide between retry/skip and abort
without inspecting message text.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Closed set of failure classes reported by collaborators."""

    TRANSIENT = "transient"
    AUTHENTICATION = "authentication"


class BatchError(Exception):
    """Base class for batch processing errors."""


class CheckpointError(BatchError):
    """Raised when the progress checkpoint cannot be read or written."""


class DiscoveryError(BatchError):
    """Raised when the total amount of work cannot be determined."""


class CollaboratorError(BatchError):
    """Failure reported by an external collaborator."""

    default_kind = ErrorKind.TRANSIENT

    def __init__(self, message: str, *, kind: Optional[ErrorKind] = None):
        super().__init__(message)
        self.kind = kind or self.default_kind

    @property
    def fatal(self) -> bool:
        return self.kind is ErrorKind.AUTHENTICATION


def is_fatal(exc: BaseException) -> bool:
    """Return True when ``exc`` must abort the whole run instead of being retried."""
    return isinstance(exc, CollaboratorError) and exc.fatal


def is_retryable(exc: BaseException) -> bool:
    """Default retry predicate: everything except fatal collaborator errors."""
    return not is_fatal(exc)
