"""Domain layer for the vocabulary pipeline.

This package contains the domain entities and the interfaces of the
external collaborators, following Domain-Driven Design principles.
"""

from .entities.note import NoteState, VocabularyNote
from .entities.queue_item import EnrichmentStatus, QueueItem, ReviewStatus
from .interfaces.anki_client import IAnkiClient
from .interfaces.attachment_store import IAttachmentStore
from .interfaces.enrichment_client import IEnrichmentClient
from .interfaces.vocabulary_repository import IVocabularyRepository

__all__ = [
    "EnrichmentStatus",
    # Interfaces
    "IAnkiClient",
    "IAttachmentStore",
    "IEnrichmentClient",
    "IVocabularyRepository",
    # Entities
    "NoteState",
    "QueueItem",
    "ReviewStatus",
    "VocabularyNote",
]
