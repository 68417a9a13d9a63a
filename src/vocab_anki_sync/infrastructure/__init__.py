"""Infrastructure adapters: SQLite persistence and attachment storage."""

from .attachment_store import LocalAttachmentStore, NullAttachmentStore
from .state_db import VocabularyStateDB

__all__ = ["LocalAttachmentStore", "NullAttachmentStore", "VocabularyStateDB"]
