"""Enrichment orchestration for a single queue item.

One run takes the processing lease, calls the enrichment client with
retries for transient failures, validates the result, and stores the
drafts. Every exit path leaves the item completed or failed, never
processing.
"""

import time
from collections.abc import Callable
from datetime import datetime

from pydantic import BaseModel
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    stop_any,
)

from vocab_anki_sync.config_models import RetryConfig
from vocab_anki_sync.domain.entities.queue_item import utcnow
from vocab_anki_sync.domain.interfaces.enrichment_client import IEnrichmentClient
from vocab_anki_sync.domain.interfaces.vocabulary_repository import (
    IVocabularyRepository,
)
from vocab_anki_sync.enrichment.actions import resolve_action, validate_drafts
from vocab_anki_sync.error_codes import ErrorCode
from vocab_anki_sync.exceptions import (
    PermanentFailure,
    StateError,
    TransientFailure,
    ValidationFailure,
    is_retriable_error,
)
from vocab_anki_sync.models.data import ProcessOutcome
from vocab_anki_sync.providers.retry_utils import calculate_retry_wait
from vocab_anki_sync.utils.cancellation import CancellationToken
from vocab_anki_sync.utils.logging import get_logger

logger = get_logger(__name__)


class EnrichmentOrchestrator:
    """Drives a queue item from pending (or failed) to completed or failed."""

    def __init__(
        self,
        repository: IVocabularyRepository,
        enrichment_client: IEnrichmentClient,
        retry_config: RetryConfig | None = None,
        default_action: str = "enrich_word",
        sleep: Callable[[float], object] | None = None,
        clock: Callable[[], datetime] = utcnow,
        jitter: bool = True,
        token: CancellationToken | None = None,
    ):
        """
        Args:
            repository: Queue and note store
            enrichment_client: Client performing one enrichment round trip
            retry_config: Retry policy for transient failures
            default_action: Action used when an item names none
            sleep: Sleep function used between attempts (default: wait on
                ``token``, so cancellation cuts a backoff short)
            clock: Source of the current time
            jitter: Whether to randomize backoff delays
            token: Cancellation token; once set, no further attempts start
        """
        self.repository = repository
        self.enrichment_client = enrichment_client
        self.retry_config = retry_config or RetryConfig()
        self.default_action = default_action
        self.token = token or CancellationToken()
        self._sleep = sleep or self.token.wait
        self._clock = clock
        self._jitter = jitter

    def _wait(self, retry_state: RetryCallState) -> float:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        return calculate_retry_wait(
            attempt=retry_state.attempt_number,
            error=error,
            base_delay=self.retry_config.initial_delay,
            backoff_factor=self.retry_config.backoff_factor,
            max_delay=self.retry_config.max_delay,
            jitter=self._jitter,
        )

    def _log_retry(self, item_id: int) -> Callable[[RetryCallState], None]:
        def _before_sleep(retry_state: RetryCallState) -> None:
            error = retry_state.outcome.exception() if retry_state.outcome else None
            logger.warning(
                "enrichment_retry",
                item_id=item_id,
                attempt=retry_state.attempt_number,
                max_attempts=self.retry_config.max_attempts,
                wait_seconds=round(
                    retry_state.next_action.sleep if retry_state.next_action else 0, 2
                ),
                error=str(error) if error else None,
                error_type=type(error).__name__ if error else None,
            )

        return _before_sleep

    def process(self, item_id: int) -> ProcessOutcome:
        """Enrich one queue item.

        Returns:
            Outcome with status completed, failed or lease_denied

        Raises:
            Exception: Unexpected errors are re-raised after the item is
                marked failed
        """
        if not self.repository.try_begin_processing(item_id, self._clock()):
            logger.debug("enrichment_lease_denied", item_id=item_id)
            return ProcessOutcome(item_id=item_id, status="lease_denied")

        attempts = 0
        start_time = time.time()
        try:
            item = self.repository.get_queue_item(item_id)
            if item is None:
                msg = f"Queue item {item_id} disappeared after lease"
                raise StateError(msg, error_code=ErrorCode.STA_NOT_FOUND.value)

            action = resolve_action(item.params, self.default_action)
            hints = {
                key: value for key, value in item.params.items() if key != "action"
            }
            logger.debug("enrichment_started", item_id=item_id, action=action.name)

            def _attempt() -> BaseModel:
                nonlocal attempts
                attempts += 1
                return self.enrichment_client.enrich(
                    item.raw_content,
                    action.schema,
                    action.examples(),
                    instructions=action.instructions,
                    params=hints,
                )

            retryer = Retrying(
                stop=stop_any(
                    stop_after_attempt(self.retry_config.max_attempts),
                    lambda _: self.token.cancelled,
                ),
                wait=self._wait,
                retry=retry_if_exception(is_retriable_error),
                before_sleep=self._log_retry(item_id),
                sleep=self._sleep,
                reraise=True,
            )
            record = retryer(_attempt)

            drafts = action.to_drafts(record)
            validate_drafts(drafts)
            note_ids = self.repository.complete_enrichment(
                item_id, drafts, attempts, self._clock()
            )

        except TransientFailure as e:
            message = f"Gave up after {attempts} attempt(s): {e.message}"
            return self._fail(
                item_id,
                e,
                message,
                attempts,
                start_time,
                error_code=ErrorCode.ENR_RETRIES_EXHAUSTED.value,
            )
        except (PermanentFailure, ValidationFailure) as e:
            return self._fail(item_id, e, e.message, attempts, start_time)
        except Exception as e:
            self._fail(item_id, e, str(e), attempts, start_time)
            raise

        logger.info(
            "enrichment_completed",
            item_id=item_id,
            action=action.name,
            notes=len(note_ids),
            attempts=attempts,
            duration=round(time.time() - start_time, 2),
        )
        return ProcessOutcome(
            item_id=item_id, status="completed", note_ids=note_ids, attempts=attempts
        )

    def _fail(
        self,
        item_id: int,
        error: BaseException,
        message: str,
        attempts: int,
        start_time: float,
        error_code: str | None = None,
    ) -> ProcessOutcome:
        error_code = error_code or getattr(error, "error_code", None)
        self.repository.fail_enrichment(item_id, message, attempts, self._clock())
        logger.error(
            "enrichment_failed",
            item_id=item_id,
            error=message,
            error_type=type(error).__name__,
            error_code=error_code,
            attempts=attempts,
            duration=round(time.time() - start_time, 2),
        )
        return ProcessOutcome(
            item_id=item_id,
            status="failed",
            attempts=attempts,
            error=message,
            error_type=type(error).__name__,
            error_code=error_code,
        )
