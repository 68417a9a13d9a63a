"""Classification of AnkiConnect failures into typed exceptions.

AnkiConnect reports every failure as a free-form ``error`` string. This is
the only module that inspects those strings; everything else works with
the exception types returned by :func:`classify_anki_error`.
"""

import httpx

from vocab_anki_sync.error_codes import ErrorCode
from vocab_anki_sync.exceptions import (
    AnkiConnectError,
    AuthFailure,
    ConnectionFailure,
    RemoteNotFound,
    RemoteRejected,
)

# Ordered (substring, exception type, error code); first match wins.
ERROR_PATTERNS: tuple[tuple[str, type[AnkiConnectError], ErrorCode], ...] = (
    ("valid api key", AuthFailure, ErrorCode.ANK_AUTH_FAILED),
    ("collection is not available", ConnectionFailure, ErrorCode.ANK_CONNECTION_FAILED),
    ("was not found", RemoteNotFound, ErrorCode.ANK_NOT_FOUND),
    ("not found", RemoteNotFound, ErrorCode.ANK_NOT_FOUND),
    ("does not exist", RemoteNotFound, ErrorCode.ANK_NOT_FOUND),
    ("duplicate", RemoteRejected, ErrorCode.ANK_REJECTED),
    ("empty", RemoteRejected, ErrorCode.ANK_REJECTED),
    ("unsupported action", RemoteRejected, ErrorCode.ANK_REJECTED),
)

_SUGGESTIONS: dict[type[AnkiConnectError], str] = {
    ConnectionFailure: (
        "Ensure Anki is running with the AnkiConnect add-on enabled "
        "and a profile is open."
    ),
    AuthFailure: "Check anki_connect_api_key matches the AnkiConnect add-on config.",
    RemoteNotFound: "The note, deck or model was removed from Anki.",
}


def _build(
    error_type: type[AnkiConnectError],
    code: ErrorCode,
    message: str,
    action: str | None,
    raw_error: str | None,
) -> AnkiConnectError:
    return error_type(
        message,
        action=action,
        raw_error=raw_error,
        suggestion=_SUGGESTIONS.get(error_type),
        error_code=code.value,
    )


def classify_anki_error(
    raw_error: str | None = None,
    *,
    action: str | None = None,
    status_code: int | None = None,
    transport_error: Exception | None = None,
) -> AnkiConnectError:
    """Map an AnkiConnect failure to a typed exception.

    Exactly one of ``raw_error`` (the ``error`` field of a response),
    ``status_code`` (a non-200 HTTP status) or ``transport_error``
    (an httpx exception) describes the failure.

    Args:
        raw_error: Error string returned by AnkiConnect
        action: AnkiConnect action that failed
        status_code: HTTP status of a non-200 response
        transport_error: Exception raised by the transport

    Returns:
        The exception to raise; the caller raises it
    """
    if transport_error is not None:
        kind = (
            "Timed out calling"
            if isinstance(transport_error, httpx.TimeoutException)
            else "Cannot reach"
        )
        return _build(
            ConnectionFailure,
            ErrorCode.ANK_CONNECTION_FAILED,
            f"{kind} AnkiConnect ({action}): {transport_error}",
            action,
            None,
        )

    if status_code is not None:
        message = f"HTTP {status_code} from AnkiConnect ({action})"
        if status_code in (401, 403):
            return _build(AuthFailure, ErrorCode.ANK_AUTH_FAILED, message, action, None)
        if status_code == 404:
            return _build(RemoteNotFound, ErrorCode.ANK_NOT_FOUND, message, action, None)
        if status_code >= 500:
            return _build(
                ConnectionFailure, ErrorCode.ANK_CONNECTION_FAILED, message, action, None
            )
        return _build(RemoteRejected, ErrorCode.ANK_REJECTED, message, action, None)

    text = raw_error or "unknown error"
    lowered = text.lower()
    message = f"AnkiConnect error ({action}): {text}"
    for needle, error_type, code in ERROR_PATTERNS:
        if needle in lowered:
            return _build(error_type, code, message, action, text)
    return _build(RemoteRejected, ErrorCode.ANK_REJECTED, message, action, text)
