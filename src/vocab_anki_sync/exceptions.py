"""Centralized exception hierarchy for vocab-anki-sync.

All custom exceptions inherit from VocabSyncError. The three top-level
categories drive retry and propagation policy across the pipeline:

Exception Hierarchy:
    VocabSyncError (base)
     TransientFailure - retryable (rate limits, timeouts, connection refusal)
        ConnectionFailure - AnkiConnect unreachable or timed out
        ProviderRateLimitError - LLM provider rate limited the request
        ProviderTimeoutError - LLM provider request timed out
        ProviderConnectionError - LLM provider unreachable
        ProviderUnavailableError - LLM provider returned a 5xx status
     PermanentFailure - not retried automatically
        SchemaViolation - LLM output failed the declared schema
        AuthFailure - AnkiConnect rejected the API key
        RemoteNotFound - AnkiConnect entity does not exist
        RemoteRejected - AnkiConnect refused the operation
        ProviderAuthError - LLM provider rejected the credentials
        ProviderRequestError - LLM provider rejected the request
     ValidationFailure - locally detected malformed data
     InvalidTransitionError - illegal queue item state transition
     SyncInProgressError - a reconciliation run is already active
     StateError - state database errors
     ConfigurationError - configuration loading/validation errors

Usage Examples:
    try:
        pipeline.reconcile()
    except SyncInProgressError:
        logger.warning("reconcile_skipped")

    raise SchemaViolation(
        "Model output is not valid JSON",
        error_code=ErrorCode.ENR_SCHEMA_INVALID.value,
        context={"model": "gpt-4o-mini"},
    )
"""

from typing import Any


class VocabSyncError(Exception):
    """Base exception for all pipeline errors.

    Attributes:
        message: Human-readable error message
        suggestion: Optional suggestion for resolving the error
        error_code: Structured error code for machine-readable handling
        context: Additional context for debugging
    """

    def __init__(
        self,
        message: str,
        suggestion: str | None = None,
        error_code: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        """Initialize the exception.

        Args:
            message: Human-readable error message
            suggestion: Optional suggestion for resolving the error
            error_code: Structured error code (e.g., "ANK-CONN-001")
            context: Additional context for debugging
        """
        self.message = message
        self.suggestion = suggestion
        self.error_code = error_code
        self.context = context or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the error message with error code and suggestion if available."""
        parts = []
        if self.error_code:
            parts.append(f"[{self.error_code}] {self.message}")
        else:
            parts.append(self.message)
        if self.suggestion:
            parts.append(f"\nSuggestion: {self.suggestion}")
        return "".join(parts)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for structured logging.

        Returns:
            Dictionary with error details
        """
        return {
            "message": self.message,
            "error_code": self.error_code,
            "suggestion": self.suggestion,
            "context": self.context,
            "type": type(self).__name__,
        }


# Failure categories


class TransientFailure(VocabSyncError):
    """Retryable failure.

    Raised when:
    - The remote service rate limited the request
    - A request timed out
    - The connection was refused or dropped
    """


class PermanentFailure(VocabSyncError):
    """Failure that will not resolve by retrying the same request."""


class ValidationFailure(VocabSyncError):
    """Locally detected malformed data.

    Raised when:
    - Structured enrichment output fails semantic checks
    - An unknown enrichment action is requested
    - A note edit targets a draft or unknown field
    """


# Flashcard (AnkiConnect) failures


class AnkiConnectError(VocabSyncError):
    """Base class for AnkiConnect failures.

    Attributes:
        action: AnkiConnect action that failed, if known
        raw_error: Error string returned by AnkiConnect, if any
    """

    def __init__(
        self,
        message: str,
        *,
        action: str | None = None,
        raw_error: str | None = None,
        suggestion: str | None = None,
        error_code: str | None = None,
    ):
        self.action = action
        self.raw_error = raw_error
        super().__init__(
            message,
            suggestion=suggestion,
            error_code=error_code,
            context={"action": action, "raw_error": raw_error},
        )


class ConnectionFailure(AnkiConnectError, TransientFailure):
    """AnkiConnect is unreachable, timed out, or its collection is closed."""


class AuthFailure(AnkiConnectError, PermanentFailure):
    """AnkiConnect rejected the request because of a missing or wrong API key."""


class RemoteNotFound(AnkiConnectError, PermanentFailure):
    """The referenced note, deck or model does not exist in Anki."""


class RemoteRejected(AnkiConnectError, PermanentFailure):
    """AnkiConnect refused the operation (duplicate, empty note, bad params)."""


# Enrichment provider failures


class ProviderError(VocabSyncError):
    """Base class for language-model provider errors."""


class ProviderRateLimitError(ProviderError, TransientFailure):
    """Provider rate limited the request.

    Attributes:
        retry_after: Seconds the provider asked us to wait, if it said so
    """

    def __init__(
        self,
        message: str,
        *,
        retry_after: float | None = None,
        suggestion: str | None = None,
        error_code: str | None = None,
    ):
        self.retry_after = retry_after
        super().__init__(
            message,
            suggestion=suggestion,
            error_code=error_code,
            context={"retry_after": retry_after},
        )


class ProviderTimeoutError(ProviderError, TransientFailure):
    """Provider request exceeded its timeout."""


class ProviderConnectionError(ProviderError, TransientFailure):
    """Provider could not be reached."""


class ProviderUnavailableError(ProviderError, TransientFailure):
    """Provider answered with a server error (5xx)."""


class ProviderAuthError(ProviderError, PermanentFailure):
    """Provider rejected the credentials (401/403)."""


class ProviderRequestError(ProviderError, PermanentFailure):
    """Provider rejected the request itself (4xx other than auth/rate limit)."""


class SchemaViolation(ProviderError, PermanentFailure):
    """Model output is not valid JSON or fails the declared schema.

    Attributes:
        errors: Structural validation errors, if any
    """

    def __init__(
        self,
        message: str,
        *,
        errors: list[str] | None = None,
        suggestion: str | None = None,
        error_code: str | None = None,
    ):
        self.errors = errors or []
        super().__init__(
            message,
            suggestion=suggestion,
            error_code=error_code,
            context={"errors": self.errors},
        )


# Lifecycle and sync errors


class InvalidTransitionError(VocabSyncError):
    """Queue item state transition is not allowed from its current state."""

    def __init__(self, item_id: int | None, transition: str, current: str):
        self.item_id = item_id
        self.transition = transition
        self.current = current
        super().__init__(
            f"Cannot {transition} queue item {item_id} in state {current}",
            context={"item_id": item_id, "transition": transition, "state": current},
        )


class SyncInProgressError(VocabSyncError):
    """Another reconciliation run holds the sync lock."""


class StateError(VocabSyncError):
    """State database errors.

    Raised when:
    - A referenced queue item or note does not exist
    - A store transaction fails
    """


class ConfigurationError(VocabSyncError):
    """Configuration loading or validation errors."""


def is_retriable_error(error: Exception) -> bool:
    """Check if an error is retriable.

    Args:
        error: The exception to check

    Returns:
        True if the error is transient, False otherwise
    """
    return isinstance(error, TransientFailure)
