"""Pytest configuration and fixtures for the test suite."""

from pathlib import Path

import pytest

from tests.fixtures import (
    DECK,
    NOTE_TYPE,
    FakeClock,
    MockAnkiClient,
    MockEnrichmentClient,
    RecordingAttachmentStore,
)
from vocab_anki_sync.application.lifecycle import NoteLifecycleManager
from vocab_anki_sync.application.orchestrator import EnrichmentOrchestrator
from vocab_anki_sync.application.pipeline import VocabularyPipeline
from vocab_anki_sync.config import Config, RetryConfig, reset_config
from vocab_anki_sync.infrastructure.state_db import VocabularyStateDB
from vocab_anki_sync.sync.reconciler import ReconciliationEngine
from vocab_anki_sync.utils.cancellation import CancellationToken


@pytest.fixture(autouse=True)
def _reset_global_config():
    """Keep the config singleton from leaking between tests."""
    reset_config()
    yield
    reset_config()


@pytest.fixture
def clock():
    """Provide a manually advanced clock."""
    return FakeClock()


@pytest.fixture
def state_db(tmp_path: Path):
    """Provide a fresh SQLite state database."""
    db = VocabularyStateDB(tmp_path / "state.db")
    yield db
    db.close()


@pytest.fixture
def mock_anki_client(clock):
    """Provide an in-memory Anki collection sharing the test clock."""
    return MockAnkiClient(clock)


@pytest.fixture
def mock_enrichment_client():
    """Provide a scripted enrichment client."""
    return MockEnrichmentClient()


@pytest.fixture
def attachment_store():
    """Provide an attachment store that records deletions."""
    return RecordingAttachmentStore()


@pytest.fixture
def sleeps():
    """Collect the delays the orchestrator asked to sleep."""
    return []


@pytest.fixture
def token():
    """Provide the cancellation token shared by the pipeline and orchestrator."""
    return CancellationToken()


@pytest.fixture
def orchestrator(state_db, mock_enrichment_client, clock, sleeps, token):
    """Provide an orchestrator that never really sleeps."""
    return EnrichmentOrchestrator(
        repository=state_db,
        enrichment_client=mock_enrichment_client,
        retry_config=RetryConfig(max_attempts=5, initial_delay=1.0, max_delay=30.0),
        sleep=sleeps.append,
        clock=clock,
        jitter=False,
        token=token,
    )


@pytest.fixture
def lifecycle(state_db, attachment_store, clock):
    """Provide a lifecycle manager on the test store."""
    return NoteLifecycleManager(state_db, attachment_store, clock=clock)


@pytest.fixture
def reconciler(state_db, mock_anki_client, clock):
    """Provide a reconciliation engine over the mock collection."""
    return ReconciliationEngine(
        repository=state_db,
        anki_client=mock_anki_client,
        deck_name=DECK,
        note_type=NOTE_TYPE,
        tags=["vocab-anki-sync"],
        clock=clock,
    )


@pytest.fixture
def pipeline(state_db, orchestrator, lifecycle, reconciler, clock, token):
    """Provide a fully wired pipeline on test doubles."""
    return VocabularyPipeline(
        repository=state_db,
        orchestrator=orchestrator,
        lifecycle=lifecycle,
        reconciler=reconciler,
        max_workers=4,
        token=token,
        clock=clock,
    )


@pytest.fixture
def config(tmp_path: Path):
    """Provide a configuration that needs no API key or .env file."""
    return Config(
        _env_file=None,
        llm_provider="ollama",
        llm_model="qwen3:8b",
        db_path=tmp_path / "state.db",
        log_dir=tmp_path / "logs",
    )
