"""Errors raised by the article archive pipeline."""

from __future__ import annotations

from src.shared.batch.errors import (
    BatchError,
    CheckpointError,
    CollaboratorError,
    DiscoveryError,
    ErrorKind,
    is_fatal,
)
from src.shared.utils.config_validator import ConfigurationError

# WeChat base_resp.ret code for an expired or invalid login session
INVALID_SESSION_RET = 200003


class InvalidSessionError(CollaboratorError):
    """The feed rejected our session; retrying cannot succeed."""

    default_kind = ErrorKind.AUTHENTICATION

    def __init__(self, message: str = "API error: invalid session"):
        super().__init__(message)


class FeedError(CollaboratorError):
    """Transient feed failure (HTTP error, non-zero ret, malformed payload)."""

    def __init__(self, message: str, *, ret: int | None = None):
        super().__init__(message)
        self.ret = ret


class RenderError(CollaboratorError):
    """Transient failure while rendering a single article."""


__all__ = [
    "INVALID_SESSION_RET",
    "BatchError",
    "CheckpointError",
    "CollaboratorError",
    "ConfigurationError",
    "DiscoveryError",
    "ErrorKind",
    "FeedError",
    "InvalidSessionError",
    "RenderError",
    "is_fatal",
]
