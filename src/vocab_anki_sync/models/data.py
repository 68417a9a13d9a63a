"""Data models exchanged between the pipeline components."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field


class RemoteNote(BaseModel):
    """Note as reported by AnkiConnect ``notesInfo``."""

    model_config = ConfigDict(frozen=True)

    remote_id: int = Field(description="Anki note id")
    model_name: str = Field(default="", description="Anki note type")
    fields: dict[str, str] = Field(default_factory=dict, description="Field values")
    tags: list[str] = Field(default_factory=list, description="Note tags")
    modified_at: datetime = Field(description="Remote modification time (UTC)")


class NoteSpec(BaseModel):
    """Payload for creating one note in Anki."""

    deck_name: str = Field(min_length=1)
    model_name: str = Field(min_length=1)
    fields: dict[str, str]
    tags: list[str] = Field(default_factory=list)
    allow_duplicate: bool = False

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "deckName": self.deck_name,
            "modelName": self.model_name,
            "fields": self.fields,
            "options": {"allowDuplicate": self.allow_duplicate},
        }
        if self.tags:
            payload["tags"] = self.tags
        return payload


class NoteSyncError(BaseModel):
    """A failure affecting a single note during reconciliation."""

    note_id: int | None = Field(default=None, description="Local note id")
    remote_id: int | None = Field(default=None, description="Anki note id")
    operation: Literal["create", "update", "pull", "delete", "fetch"]
    error_type: str = Field(description="Exception class name")
    message: str


class SyncConflict(BaseModel):
    """Both sides changed a note since the last sync; the local version won."""

    note_id: int
    remote_id: int
    local_modified_at: datetime
    remote_modified_at: datetime
    baseline: datetime | None = None
    resolution: Literal["local_wins"] = "local_wins"
    overwritten_fields: dict[str, str] = Field(
        default_factory=dict, description="Remote values replaced by the push"
    )


class SyncResult(BaseModel):
    """Report of one reconciliation run."""

    session_id: str
    deck_name: str
    created: int = 0
    updated: int = 0
    pulled: int = 0
    deleted: int = 0
    skipped: int = 0
    errors: list[NoteSyncError] = Field(default_factory=list)
    conflicts: list[SyncConflict] = Field(default_factory=list)
    orphans: list[int] = Field(default_factory=list)
    cancelled: bool = False
    created_at: datetime
    expires_at: datetime | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def success(self) -> bool:
        return not self.errors and not self.cancelled


class ProcessOutcome(BaseModel):
    """Result of one orchestrator run over a queue item."""

    item_id: int
    status: Literal["completed", "failed", "lease_denied"]
    note_ids: list[int] = Field(default_factory=list)
    attempts: int = 0
    error: str | None = None
    error_type: str | None = None
    error_code: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == "completed"
