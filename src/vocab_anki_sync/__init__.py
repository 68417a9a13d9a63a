"""Vocabulary enrichment and Anki synchronization pipeline."""

__version__ = "0.1.0"
