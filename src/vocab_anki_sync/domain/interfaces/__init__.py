"""Domain interfaces package."""

from .anki_client import IAnkiClient
from .attachment_store import IAttachmentStore
from .enrichment_client import IEnrichmentClient
from .vocabulary_repository import IVocabularyRepository

__all__ = [
    "IAnkiClient",
    "IAttachmentStore",
    "IEnrichmentClient",
    "IVocabularyRepository",
]
