"""Error hierarchy shared by the continuation client and the orchestration layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


class ErrorCode:
    """Machine-readable identifiers attached to :class:`ChronicleError` instances."""

    EMPTY_DOCUMENT = "empty_document"
    EMPTY_RESPONSE = "empty_response"
    PROVIDER_ERROR = "provider_error"
    TRANSPORT_ERROR = "transport_error"
    TIMEOUT = "timeout"
    MISSING_API_KEY = "missing_api_key"


EMPTY_RESULT_MESSAGE = "No text generated by the model."
MISSING_API_KEY_MESSAGE = "An API key is required. Add one to settings.json or set CHRONICLE_API_KEY."


@dataclass
class ChronicleError(Exception):
    """Base exception for every error raised by chronicle code.

    Attributes:
        message: Human-readable description, shown verbatim to the user.
        error_code: Machine-readable identifier from :class:`ErrorCode`.
        details: Extra structured information for logging.
    """

    message: str
    error_code: str = ""
    details: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        Exception.__init__(self, self.message)

    def __str__(self) -> str:
        return self.message


@dataclass
class ValidationError(ChronicleError):
    """Raised before any state transition when user input cannot be processed."""


@dataclass
class EmptyDocumentError(ValidationError):
    """Raised when a generation is triggered on a blank document."""

    message: str = "Please type something first so the AI has context!"
    error_code: str = field(default=ErrorCode.EMPTY_DOCUMENT)


@dataclass
class ProviderError(ChronicleError):
    """Raised when the continuation provider cannot produce text."""

    error_code: str = field(default=ErrorCode.PROVIDER_ERROR)


@dataclass
class ContinuationError(ProviderError):
    """Failure of a single continuation request.

    Covers transport errors, provider-side errors, timeouts and responses that
    carry no text.
    """


__all__ = [
    "ErrorCode",
    "ChronicleError",
    "ValidationError",
    "EmptyDocumentError",
    "ProviderError",
    "ContinuationError",
    "EMPTY_RESULT_MESSAGE",
    "MISSING_API_KEY_MESSAGE",
]
