"""Exception hierarchy for aichat.

Every error carries a category, a message fit for the user and a retryable
flag so the presenting layer can decide between re-prompting in place,
closing the current flow, or showing an inline failure.
"""

from __future__ import annotations

from collections.abc import Sequence
from enum import Enum
from typing import ClassVar


class ErrorType(str, Enum):
    """Error category."""

    VALIDATION = "validation"
    INCOMPLETE = "incomplete"
    CANCELLED = "cancelled"
    NOT_FOUND = "not_found"
    NETWORK = "network"
    AUTHENTICATION = "authentication"
    EXTERNAL_SERVICE = "external_service"
    CONFIGURATION = "configuration"
    INTERNAL = "internal"


DEFAULT_USER_MESSAGES: dict[ErrorType, str] = {
    ErrorType.VALIDATION: "Please check your input and try again.",
    ErrorType.INCOMPLETE: "Some required information is missing.",
    ErrorType.CANCELLED: "Cancelled.",
    ErrorType.NOT_FOUND: "The requested item could not be found.",
    ErrorType.NETWORK: "Network issue detected. Try again.",
    ErrorType.AUTHENTICATION: "Authentication failed. Check your API key.",
    ErrorType.EXTERNAL_SERVICE: "The AI service returned an error.",
    ErrorType.CONFIGURATION: "Configuration error. Check your settings.",
    ErrorType.INTERNAL: "Something went wrong.",
}


class AIChatError(Exception):
    """Base exception for aichat errors."""

    error_type: ClassVar[ErrorType] = ErrorType.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        user_message: str | None = None,
        retryable: bool = False,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self._user_message = user_message
        self.retryable = retryable
        self.cause = cause

    @property
    def user_message(self) -> str:
        """Message suitable for display in the UI."""
        return self._user_message or DEFAULT_USER_MESSAGES[self.error_type]


# =============================================================================
# Flow Errors
# =============================================================================


class FlowError(AIChatError):
    """Base exception for flow errors."""


class FlowValidationError(FlowError):
    """Raised when input for a single flow item fails its constraint.

    Recovered locally: the presenting layer shows the message and asks again.
    """

    error_type = ErrorType.VALIDATION

    def __init__(self, message: str, *, key: str = "") -> None:
        super().__init__(message, user_message=message)
        self.key = key


class IncompleteFlowError(FlowError):
    """Raised by FlowStruct.run() when required keys are still unset."""

    error_type = ErrorType.INCOMPLETE

    def __init__(self, missing_keys: Sequence[str]) -> None:
        self.missing_keys = list(missing_keys)
        super().__init__(f"incomplete data: missing {self.missing_keys}")


class FlowCancelledError(FlowError):
    """Raised when a flow's outcome is a refusal (e.g. exit declined)."""

    error_type = ErrorType.CANCELLED


# =============================================================================
# Provider Errors
# =============================================================================


class ProviderError(AIChatError):
    """Base exception for provider failures."""

    error_type = ErrorType.EXTERNAL_SERVICE


class ProviderNotFoundError(ProviderError):
    """Raised when a provider name is not registered."""

    error_type = ErrorType.NOT_FOUND

    def __init__(self, name: str) -> None:
        super().__init__(f"provider not found: {name!r}", user_message=f"Unsupported provider: {name}")
        self.name = name


class ProviderTransportError(ProviderError):
    """Raised when the request could not be delivered or the stream broke."""

    error_type = ErrorType.NETWORK

    def __init__(self, message: str, *, cause: BaseException | None = None) -> None:
        super().__init__(message, retryable=True, cause=cause)


class ProviderAuthError(ProviderError):
    """Raised when the upstream rejects the API key."""

    error_type = ErrorType.AUTHENTICATION

    def __init__(self, message: str, *, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


class ProviderUpstreamError(ProviderError):
    """Raised when the upstream answers with an error."""

    def __init__(self, message: str, *, status_code: int | None = None, cause: BaseException | None = None) -> None:
        super().__init__(message, cause=cause)
        self.status_code = status_code


class ProviderResponseError(ProviderUpstreamError):
    """Raised when the upstream response cannot be parsed."""


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigError(AIChatError):
    """Raised when a configuration file cannot be read."""

    error_type = ErrorType.CONFIGURATION


__all__ = [
    "DEFAULT_USER_MESSAGES",
    "AIChatError",
    "ConfigError",
    "ErrorType",
    "FlowCancelledError",
    "FlowError",
    "FlowValidationError",
    "IncompleteFlowError",
    "ProviderAuthError",
    "ProviderError",
    "ProviderNotFoundError",
    "ProviderResponseError",
    "ProviderTransportError",
    "ProviderUpstreamError",
]
