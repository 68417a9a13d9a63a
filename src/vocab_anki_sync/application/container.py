"""Dependency injection container and pipeline assembly."""

from collections.abc import Callable
from typing import Any, TypeVar

from ..anki.client import AnkiClient
from ..config import Config
from ..domain.interfaces.anki_client import IAnkiClient
from ..domain.interfaces.attachment_store import IAttachmentStore
from ..domain.interfaces.enrichment_client import IEnrichmentClient
from ..domain.interfaces.vocabulary_repository import IVocabularyRepository
from ..enrichment.client import EnrichmentClient
from ..infrastructure.attachment_store import LocalAttachmentStore, NullAttachmentStore
from ..infrastructure.state_db import VocabularyStateDB
from ..providers.factory import ProviderFactory
from ..sync.reconciler import ReconciliationEngine
from ..utils.cancellation import CancellationToken
from ..utils.logging import get_logger
from .lifecycle import NoteLifecycleManager
from .orchestrator import EnrichmentOrchestrator
from .pipeline import VocabularyPipeline

T = TypeVar("T")

logger = get_logger(__name__)


class DependencyContainer:
    """Simple dependency injection container.

    Instances registered directly win over factories. A factory runs once,
    on first resolution, and its result is cached.
    """

    def __init__(self) -> None:
        self._services: dict[type, Any] = {}
        self._factories: dict[type, Callable[[], Any]] = {}
        self._singletons: dict[type, Any] = {}

    def register(self, interface: type[T], implementation: T) -> None:
        self._services[interface] = implementation
        logger.debug(
            "service_registered",
            interface=interface.__name__,
            implementation=type(implementation).__name__,
        )

    def register_factory(self, interface: type[T], factory: Callable[[], T]) -> None:
        self._factories[interface] = factory
        logger.debug("factory_registered", interface=interface.__name__)

    def resolve(self, interface: type[T]) -> T:
        """Resolve a service implementation.

        Raises:
            ValueError: If the interface is not registered
        """
        if interface in self._services:
            return self._services[interface]  # type: ignore[no-any-return]
        if interface in self._singletons:
            return self._singletons[interface]  # type: ignore[no-any-return]
        if interface in self._factories:
            implementation = self._factories[interface]()
            self._singletons[interface] = implementation
            return implementation  # type: ignore[no-any-return]

        msg = f"No implementation registered for {interface.__name__}"
        raise ValueError(msg)

    def has_registration(self, interface: type) -> bool:
        return (
            interface in self._services
            or interface in self._factories
            or interface in self._singletons
        )

    def created(self) -> list[Any]:
        """Instances built by factories so far, in creation order."""
        return list(self._singletons.values())

    def clear(self) -> None:
        """Clear all registrations (useful for testing)."""
        self._services.clear()
        self._factories.clear()
        self._singletons.clear()


def setup_container(container: DependencyContainer, config: Config) -> None:
    """Register the default implementations for ``config``."""
    container.register_factory(
        IVocabularyRepository, lambda: VocabularyStateDB(config.db_path)
    )
    container.register_factory(
        IAnkiClient,
        lambda: AnkiClient(
            url=config.anki_connect_url,
            timeout=config.anki_connect_timeout,
            api_key=config.anki_connect_api_key,
        ),
    )
    container.register_factory(
        IEnrichmentClient,
        lambda: EnrichmentClient(
            provider=ProviderFactory.create_from_config(config),
            model=config.llm_model,
            temperature=config.llm_temperature,
            target_language=config.target_language,
            native_language=config.native_language,
        ),
    )
    container.register_factory(
        IAttachmentStore,
        lambda: (
            LocalAttachmentStore(config.attachments_dir)
            if config.attachments_dir
            else NullAttachmentStore()
        ),
    )


def build_pipeline(
    config: Config,
    *,
    anki_client: IAnkiClient | None = None,
    enrichment_client: IEnrichmentClient | None = None,
    repository: IVocabularyRepository | None = None,
    attachment_store: IAttachmentStore | None = None,
    token: CancellationToken | None = None,
) -> VocabularyPipeline:
    """Wire a pipeline from configuration.

    Any collaborator passed explicitly replaces the configured default.
    Only collaborators built here are closed by ``pipeline.close()``.
    """
    token = token or CancellationToken()
    container = DependencyContainer()
    setup_container(container, config)
    overrides: dict[type, Any] = {
        IAnkiClient: anki_client,
        IEnrichmentClient: enrichment_client,
        IVocabularyRepository: repository,
        IAttachmentStore: attachment_store,
    }
    for interface, instance in overrides.items():
        if instance is not None:
            container.register(interface, instance)

    store = container.resolve(IVocabularyRepository)
    anki = container.resolve(IAnkiClient)
    orchestrator = EnrichmentOrchestrator(
        repository=store,
        enrichment_client=container.resolve(IEnrichmentClient),
        retry_config=config.enrichment_retry,
        default_action=config.default_action,
        token=token,
    )
    lifecycle = NoteLifecycleManager(store, container.resolve(IAttachmentStore))
    reconciler = ReconciliationEngine(
        repository=store,
        anki_client=anki,
        deck_name=config.anki_deck_name,
        note_type=config.anki_note_type,
        tags=config.anki_tags,
        lease_ttl_seconds=config.sync_lock_ttl_seconds,
        result_ttl_seconds=config.sync_result_ttl_seconds,
    )

    resources = [
        resource for resource in container.created() if hasattr(resource, "close")
    ]
    logger.debug(
        "pipeline_built",
        deck=config.anki_deck_name,
        llm_provider=config.llm_provider,
        owned=[type(resource).__name__ for resource in resources],
    )
    return VocabularyPipeline(
        repository=store,
        orchestrator=orchestrator,
        lifecycle=lifecycle,
        reconciler=reconciler,
        max_workers=config.max_workers,
        stale_processing_minutes=config.stale_processing_minutes,
        token=token,
        resources=resources,
    )
