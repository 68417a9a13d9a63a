"""AnkiConnect integration."""

from .client import AnkiClient
from .errors import classify_anki_error

__all__ = ["AnkiClient", "classify_anki_error"]
