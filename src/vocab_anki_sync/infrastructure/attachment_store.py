"""Attachment stores for note audio."""

from pathlib import Path

from vocab_anki_sync.domain.interfaces.attachment_store import IAttachmentStore
from vocab_anki_sync.utils.logging import get_logger

logger = get_logger(__name__)


class NullAttachmentStore(IAttachmentStore):
    """Store used when no attachment directory is configured."""

    def delete(self, refs: list[str]) -> None:
        if refs:
            logger.debug("attachments_not_deleted", refs=refs, reason="no_store")


class LocalAttachmentStore(IAttachmentStore):
    """Attachments kept as files under one directory.

    References are paths relative to ``root``; anything resolving outside
    it is refused.
    """

    def __init__(self, root: Path):
        self.root = root.resolve()

    def _resolve(self, ref: str) -> Path:
        path = (self.root / ref).resolve()
        if not path.is_relative_to(self.root):
            msg = f"Attachment reference escapes {self.root}: {ref}"
            raise ValueError(msg)
        return path

    def delete(self, refs: list[str]) -> None:
        for ref in refs:
            path = self._resolve(ref)
            path.unlink(missing_ok=True)
            logger.debug("attachment_deleted", ref=ref)
