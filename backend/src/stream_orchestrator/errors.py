"""Exception taxonomy for the streaming core and user-facing error text."""

from __future__ import annotations

import logging

__all__ = [
    "StreamCoreError",
    "TransientProviderError",
    "ConfigurationError",
    "ToolArgumentParseError",
    "ToolExecutionError",
    "FrameDecodeError",
    "RequestCancelled",
    "user_message_for",
    "provider_error",
]

SERVICE_UNAVAILABLE_MESSAGE = (
    "The AI service is currently unavailable (Error 503). This is a temporary "
    "issue on their end. Please try again in a few moments."
)
GENERIC_FAILURE_MESSAGE = (
    "I apologize, but I've encountered an unexpected error while trying to "
    "connect to the AI service. Please try again."
)
CONFIGURATION_FAILURE_MESSAGE = (
    "The AI service is not configured correctly, so I can't answer right now. "
    "Please contact the site administrator."
)


class StreamCoreError(Exception):
    """Base class for errors raised inside the streaming core."""


class TransientProviderError(StreamCoreError):
    """Provider call failed in a way that may succeed on retry."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ConfigurationError(StreamCoreError):
    """Missing credentials or an unusable provider configuration. Never retried."""


class ToolArgumentParseError(StreamCoreError):
    """Accumulated tool-call arguments are not a JSON object."""


class ToolExecutionError(StreamCoreError):
    """A tool runner raised while executing."""


class FrameDecodeError(StreamCoreError):
    """One wire frame could not be parsed into a chunk."""


class RequestCancelled(StreamCoreError):
    """The owning request was cancelled. Not a failure."""


def user_message_for(exc: BaseException, logger: logging.Logger | None = None) -> str:
    """Map a provider failure to plain-language text shown to the user."""
    if isinstance(exc, ConfigurationError):
        return CONFIGURATION_FAILURE_MESSAGE
    status = getattr(exc, "status_code", None)
    if logger is not None:
        logger.error("Provider failure (%s, status=%s): %s", type(exc).__name__, status, exc)
    if status == 503:
        return SERVICE_UNAVAILABLE_MESSAGE
    return GENERIC_FAILURE_MESSAGE


# Rejected credentials will not recover on retry.
CREDENTIAL_REJECTED_STATUSES = frozenset({401, 403})


def provider_error(message: str, status_code: int | None) -> StreamCoreError:
    """Classify a provider HTTP failure by status code."""
    if status_code in CREDENTIAL_REJECTED_STATUSES:
        return ConfigurationError(f"Provider rejected credentials (status={status_code}): {message}")
    return TransientProviderError(message, status_code=status_code)
