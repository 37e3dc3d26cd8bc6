# core/exceptions.py
"""Define standardized exception types for the Galforge pipeline.

This module provides a small exception hierarchy used across the pipeline to
propagate actionable error details without losing the original exception.

Integrity problems in model output (dangling choice targets, empty text,
missing roster arrays) are deliberately absent from this hierarchy: they are
repaired by the parsers and the script assembler instead of being raised.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from models.script_models import GalgameScript

USER_FACING_ERROR_MESSAGE = "Story conversion failed. Please try again."


class GalforgeError(Exception):
    """Base exception for all Galforge pipeline errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message


class ConfigurationError(GalforgeError):
    """A required credential or setting is absent. Fatal and never retried."""


class ProviderError(GalforgeError):
    """Transport failure or non-success status from a completion or image call.

    Attributes:
        status_code: HTTP status code when the failure carried one.
        retryable: Whether the retry wrapper may attempt the call again. Client
            errors other than rate limiting are not retryable.
    """

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        *,
        status_code: int | None = None,
        retryable: bool = True,
    ):
        super().__init__(message, details)
        self.status_code = status_code
        self.retryable = retryable


class MalformedOutputError(GalforgeError):
    """Model output could not be parsed into the expected structure.

    Surfaced to the user as a "try again" condition; never retried within the
    same call.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None, *, snippet: str = ""):
        super().__init__(message, details)
        self.snippet = snippet


class AssetTimeoutError(GalforgeError, TimeoutError):
    """Image task polling exceeded the bounded attempt count."""


class StreamingAbortedError(GalforgeError):
    """A streaming run halted at a segment; carries what was produced before.

    Attributes:
        failed_segment: 1-based number of the segment that failed.
        partial_script: Script assembled from every segment completed before the
            failure, or `None` when the first segment failed.
    """

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        *,
        failed_segment: int,
        partial_script: GalgameScript | None = None,
    ):
        super().__init__(message, details)
        self.failed_segment = failed_segment
        self.partial_script = partial_script


def create_error_context(**kwargs: Any) -> dict[str, Any]:
    """Build a context dictionary for structured errors.

    Args:
        **kwargs: Key-value pairs to include.

    Returns:
        A dictionary containing only keys whose values are not `None`.
    """
    return {k: v for k, v in kwargs.items() if v is not None}


def handle_provider_error(operation: str, original_error: Exception, **context: Any) -> ProviderError:
    """Convert a transport exception into a standardized provider error.

    Args:
        operation: Name/description of the remote operation that failed.
        original_error: The caught exception.
        **context: Additional structured context to attach.

    Returns:
        A `ProviderError` whose `status_code`/`retryable` reflect the original
        failure when it was an HTTP status error.
    """
    status_code = None
    response = getattr(original_error, "response", None)
    if response is not None:
        status_code = getattr(response, "status_code", None)

    error_details = create_error_context(
        operation=operation,
        original_error=str(original_error),
        error_type=type(original_error).__name__,
        status_code=status_code,
        **context,
    )

    retryable = True
    if status_code is not None and 400 <= status_code < 500 and status_code != 429:
        retryable = False

    return ProviderError(
        f"Provider call failed during {operation}",
        details=error_details,
        status_code=status_code,
        retryable=retryable,
    )
