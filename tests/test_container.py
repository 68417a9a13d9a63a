"""Tests for the dependency container and pipeline wiring."""

import pytest

from vocab_anki_sync.anki.client import AnkiClient
from vocab_anki_sync.application.container import DependencyContainer, build_pipeline
from vocab_anki_sync.domain.interfaces.anki_client import IAnkiClient
from vocab_anki_sync.infrastructure.attachment_store import (
    LocalAttachmentStore,
    NullAttachmentStore,
)
from vocab_anki_sync.infrastructure.state_db import VocabularyStateDB


class TestDependencyContainer:
    """Test registration and resolution."""

    def test_register_and_resolve(self) -> None:
        container = DependencyContainer()
        instance = object()

        container.register(IAnkiClient, instance)

        assert container.resolve(IAnkiClient) is instance
        assert container.has_registration(IAnkiClient)
        assert container.created() == []

    def test_factory_runs_once(self) -> None:
        container = DependencyContainer()
        built = []
        container.register_factory(IAnkiClient, lambda: built.append(1) or object())

        first = container.resolve(IAnkiClient)
        second = container.resolve(IAnkiClient)

        assert first is second
        assert built == [1]
        assert container.created() == [first]

    def test_instance_wins_over_factory(self) -> None:
        container = DependencyContainer()
        instance = object()
        container.register_factory(IAnkiClient, object)
        container.register(IAnkiClient, instance)

        assert container.resolve(IAnkiClient) is instance

    def test_unregistered(self) -> None:
        container = DependencyContainer()

        with pytest.raises(ValueError, match="IAnkiClient"):
            container.resolve(IAnkiClient)

    def test_clear(self) -> None:
        container = DependencyContainer()
        container.register_factory(IAnkiClient, object)
        container.resolve(IAnkiClient)

        container.clear()

        assert not container.has_registration(IAnkiClient)


class TestBuildPipeline:
    """Test assembly of the pipeline from configuration."""

    def test_overrides_are_used_and_not_owned(
        self, config, mock_anki_client, mock_enrichment_client, state_db
    ) -> None:
        pipeline = build_pipeline(
            config,
            anki_client=mock_anki_client,
            enrichment_client=mock_enrichment_client,
            repository=state_db,
        )

        assert pipeline.repository is state_db
        assert pipeline.reconciler.anki is mock_anki_client
        assert pipeline.orchestrator.enrichment_client is mock_enrichment_client
        assert pipeline.reconciler.deck_name == config.anki_deck_name
        assert pipeline.orchestrator.retry_config == config.enrichment_retry
        assert pipeline._resources == []

    def test_defaults_are_built_and_closed(self, config, mock_enrichment_client) -> None:
        pipeline = build_pipeline(config, enrichment_client=mock_enrichment_client)

        owned = {type(resource) for resource in pipeline._resources}
        assert owned == {VocabularyStateDB, AnkiClient}
        assert isinstance(pipeline.lifecycle.attachment_store, NullAttachmentStore)
        assert config.db_path.exists()

        with pipeline:
            pipeline.enqueue("casa")

        assert pipeline._resources == []

    def test_attachments_dir_selects_local_store(
        self, config, tmp_path, mock_anki_client, mock_enrichment_client, state_db
    ) -> None:
        config.attachments_dir = tmp_path / "media"

        pipeline = build_pipeline(
            config,
            anki_client=mock_anki_client,
            enrichment_client=mock_enrichment_client,
            repository=state_db,
        )

        assert isinstance(pipeline.lifecycle.attachment_store, LocalAttachmentStore)
