"""Data models for the pipeline."""

from .data import (
    NoteSpec,
    NoteSyncError,
    ProcessOutcome,
    RemoteNote,
    SyncConflict,
    SyncResult,
)

__all__ = [
    "NoteSpec",
    "NoteSyncError",
    "ProcessOutcome",
    "RemoteNote",
    "SyncConflict",
    "SyncResult",
]
