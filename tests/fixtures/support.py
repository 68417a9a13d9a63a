"""Clock and attachment store doubles shared by the tests."""

import threading
from datetime import datetime, timedelta, timezone

from vocab_anki_sync.domain.interfaces.attachment_store import IAttachmentStore

DECK = "Vocabulary"
NOTE_TYPE = "Vocabulary (vocab-anki-sync)"


class FakeClock:
    """Manually advanced UTC clock starting at the current whole second."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime.now(timezone.utc).replace(microsecond=0)
        self._lock = threading.Lock()

    def __call__(self) -> datetime:
        with self._lock:
            return self.now

    def advance(self, seconds: float = 1.0) -> datetime:
        with self._lock:
            self.now += timedelta(seconds=seconds)
            return self.now


class RecordingAttachmentStore(IAttachmentStore):
    """Attachment store that only records what it was asked to delete."""

    def __init__(self) -> None:
        self.deleted: list[str] = []

    def delete(self, refs: list[str]) -> None:
        self.deleted.extend(refs)
