"""Application layer: orchestration, reviewer actions and wiring.

This package coordinates the domain entities with the external clients and
exposes ``VocabularyPipeline`` as the single invocation surface.
"""

from .container import DependencyContainer, build_pipeline, setup_container
from .lifecycle import NoteLifecycleManager
from .orchestrator import EnrichmentOrchestrator
from .pipeline import VocabularyPipeline

__all__ = [
    # DI Container
    "DependencyContainer",
    "build_pipeline",
    "setup_container",
    # Services
    "EnrichmentOrchestrator",
    "NoteLifecycleManager",
    "VocabularyPipeline",
]
