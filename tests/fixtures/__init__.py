"""Test fixtures package."""

from .mock_anki_client import MockAnkiClient
from .mock_enrichment_client import MockEnrichmentClient
from .mock_llm_provider import MockLLMProvider
from .support import DECK, NOTE_TYPE, FakeClock, RecordingAttachmentStore

__all__ = [
    "DECK",
    "NOTE_TYPE",
    "FakeClock",
    "MockAnkiClient",
    "MockEnrichmentClient",
    "MockLLMProvider",
    "RecordingAttachmentStore",
]
