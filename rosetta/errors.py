"""
Exception hierarchy for Rosetta.

Every failure a translation run can end with is one of these classes, so a
front-end only has to catch ``RosettaError`` to report a structured error.
Filesystem problems are left as the builtin ``OSError`` family
(``FileNotFoundError``, ``FileExistsError``).

Hierarchy:
    RosettaError
    ├── ParseError
    │   ├── UnsupportedFormatError
    │   └── SegmentationError
    ├── CacheError
    ├── RemoteError
    │   ├── RemoteConnectionError
    │   ├── RemoteDeserializationError
    │   ├── RemoteApiError
    │   └── InteractionError
    └── TranslationCancelled
"""

from __future__ import annotations


class RosettaError(Exception):
    """Base class for all Rosetta errors.

    Args:
        message: Human readable description
        **context: Extra details kept for logging and front-end reporting
    """

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> dict:
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
        }


class ParseError(RosettaError):
    """The format adapter could not turn the input into sections."""


class UnsupportedFormatError(ParseError):
    """The input file type is not one the format adapter can read."""

    def __init__(self, message: str, supported_formats: list[str] | None = None, **context):
        super().__init__(message, supported_formats=supported_formats or [], **context)
        self.supported_formats = list(supported_formats or [])

    def __str__(self) -> str:
        return f"{self.message}. Supported formats: {', '.join(self.supported_formats)}"


class SegmentationError(ParseError):
    """A paragraph is too long and has no sentence boundary to split at."""


class CacheError(RosettaError):
    """The translation cache storage failed."""


class OutputConflictError(RosettaError):
    """The output, or the partial markdown kept next to it, is the input file."""


class RemoteError(RosettaError):
    """Base class for failures talking to the remote translation endpoint."""


class RemoteConnectionError(RemoteError):
    """Transport-level failure (connection refused, timeout, reset)."""


class RemoteDeserializationError(RemoteError):
    """The endpoint answered with something that could not be decoded."""


class RemoteApiError(RemoteError):
    """The endpoint reported an application error (HTTP status error)."""

    def __init__(self, message: str, status_code: int | None = None, **context):
        super().__init__(message, status_code=status_code, **context)
        self.status_code = status_code


class InteractionError(RemoteError):
    """The conversation did not go the way the protocol expects.

    Raised for unexpected response shapes, rejected prompts, cancelled or
    expired runs, and when the retry budget or backoff schedule runs out.
    """


class TranslationCancelled(RosettaError):
    """The run was cancelled through its cancellation token."""


# Transport problems worth retrying at the request level
TRANSIENT_ERRORS = (RemoteConnectionError, RemoteDeserializationError)
