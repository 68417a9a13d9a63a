"""Language-model enrichment of raw vocabulary."""

from .actions import ACTIONS, EnrichmentAction, resolve_action, validate_drafts
from .client import EnrichmentClient
from .schemas import EnrichedWord, SplitPhrase

__all__ = [
    "ACTIONS",
    "EnrichedWord",
    "EnrichmentAction",
    "EnrichmentClient",
    "SplitPhrase",
    "resolve_action",
    "validate_drafts",
]
