"""Interface for the attachment (audio) store."""

from abc import ABC, abstractmethod


class IAttachmentStore(ABC):
    """Storage for note attachments such as pronunciation audio.

    The pipeline only ever asks it to delete references belonging to
    rejected drafts.
    """

    @abstractmethod
    def delete(self, refs: list[str]) -> None:
        """Delete the referenced attachments. Unknown refs are ignored.

        Args:
            refs: Opaque attachment references
        """
