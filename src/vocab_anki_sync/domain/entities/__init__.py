"""Domain entities."""

from .note import EDITABLE_FIELDS, NoteState, PartOfSpeech, VocabularyNote
from .queue_item import EnrichmentStatus, QueueItem, ReviewStatus

__all__ = [
    "EDITABLE_FIELDS",
    "EnrichmentStatus",
    "NoteState",
    "PartOfSpeech",
    "QueueItem",
    "ReviewStatus",
    "VocabularyNote",
]
