"""Tests for logging configuration."""

import json
import logging

import pytest

from vocab_anki_sync.utils.logging import (
    LOG_FILE_NAME,
    UserFacingConsoleFilter,
    configure_logging,
    get_logger,
)


def _record(msg: str, level: int = logging.INFO) -> logging.LogRecord:
    return logging.LogRecord("test", level, __file__, 1, msg, None, None)


class TestUserFacingConsoleFilter:
    def test_user_facing_event_passes(self) -> None:
        assert UserFacingConsoleFilter().filter(_record("reconcile_completed"))

    def test_internal_event_is_hidden(self) -> None:
        assert not UserFacingConsoleFilter().filter(_record("db_connection_created"))

    def test_errors_always_pass(self) -> None:
        assert UserFacingConsoleFilter().filter(_record("note_push_failed", logging.ERROR))

    def test_verbose_shows_everything(self) -> None:
        assert UserFacingConsoleFilter(verbose=True).filter(_record("db_connection_created"))


@pytest.fixture
def log_dir(tmp_path):
    yield tmp_path / "logs"
    configure_logging(log_to_file=False)


def test_file_log_is_json(log_dir) -> None:
    configure_logging("WARNING", log_dir=log_dir)

    get_logger("tests").info("queue_item_enqueued", item_id=7)
    get_logger("tests").error("reconcile_failed", error="boom")
    for handler in logging.getLogger().handlers:
        handler.flush()

    entries = [
        json.loads(line)
        for line in (log_dir / LOG_FILE_NAME).read_text(encoding="utf-8").splitlines()
    ]
    events = {entry["event"]: entry for entry in entries}
    assert events["queue_item_enqueued"]["item_id"] == 7
    assert events["queue_item_enqueued"]["level"] == "info"
    errors = (log_dir / "errors.log").read_text(encoding="utf-8")
    assert "reconcile_failed" in errors
    assert "queue_item_enqueued" not in errors
