"""Structured error codes for machine-readable error handling.

Error codes follow the format: {DOMAIN}-{CATEGORY}-{NUMBER}

Error Domains:
    ENR - Enrichment errors (LLM calls, schema, validation)
    ANK - Anki errors (connection, create, update, delete)
    SYN - Reconciliation errors
    STA - State errors (database, transitions)
    CFG - Configuration errors

Usage:
    from vocab_anki_sync.error_codes import ErrorCode

    logger.error(
        "enrichment_failed",
        error_code=ErrorCode.ENR_RETRIES_EXHAUSTED.value,
        item_id=42,
    )
"""

from enum import Enum


class ErrorCode(str, Enum):
    """Structured error codes for machine-readable handling."""

    # Enrichment
    ENR_RATE_LIMITED = "ENR-RATE-001"
    """Provider rate limited the request."""

    ENR_TIMEOUT = "ENR-TIMEOUT-001"
    """Provider request timed out."""

    ENR_CONNECTION = "ENR-CONN-001"
    """Provider could not be reached."""

    ENR_UNAVAILABLE = "ENR-UNAVAIL-001"
    """Provider returned a server error."""

    ENR_AUTH = "ENR-AUTH-001"
    """Provider rejected the credentials."""

    ENR_REQUEST = "ENR-REQ-001"
    """Provider rejected the request."""

    ENR_SCHEMA_INVALID = "ENR-SCHEMA-001"
    """Model output failed the declared schema."""

    ENR_VALIDATION = "ENR-VAL-001"
    """Structured output failed semantic validation."""

    ENR_UNKNOWN_ACTION = "ENR-ACTION-001"
    """Queue item requested an unknown enrichment action."""

    ENR_RETRIES_EXHAUSTED = "ENR-RETRY-001"
    """Transient failures exhausted the retry budget."""

    # Anki
    ANK_CONNECTION_FAILED = "ANK-CONN-001"
    """Failed to connect to AnkiConnect."""

    ANK_AUTH_FAILED = "ANK-AUTH-001"
    """AnkiConnect rejected the API key."""

    ANK_NOT_FOUND = "ANK-NOTFOUND-001"
    """Referenced Anki entity does not exist."""

    ANK_REJECTED = "ANK-REJECT-001"
    """AnkiConnect refused the operation."""

    ANK_CREATE_FAILED = "ANK-CREATE-001"
    """Failed to create note in Anki."""

    # Reconciliation
    SYN_IN_PROGRESS = "SYN-LOCK-001"
    """Another reconciliation run is active."""

    SYN_REMOTE_MISSING = "SYN-MISSING-001"
    """A synced local note is missing from the remote deck."""

    # State
    STA_NOT_FOUND = "STA-NOTFOUND-001"
    """Queue item or note does not exist."""

    STA_TRANSITION = "STA-TRANS-001"
    """Illegal state transition."""

    # Configuration
    CFG_INVALID = "CFG-INVALID-001"
    """Configuration value failed validation."""

    CFG_PARSE = "CFG-PARSE-001"
    """Configuration file could not be parsed."""
