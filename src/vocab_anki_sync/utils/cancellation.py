"""Cooperative cancellation for the processing and reconciliation loops.

Loops check the token at item/note boundaries: the current unit of work
finishes, the next one does not start.
"""

import signal
import threading
from types import FrameType

from vocab_anki_sync.utils.logging import get_logger

logger = get_logger(__name__)


class CancellationToken:
    """Thread-safe cancellation flag shared by workers."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason: str | None = None
        self._previous_handlers: dict[int, object] = {}

    def cancel(self, reason: str = "requested") -> None:
        if not self._event.is_set():
            self._reason = reason
            self._event.set()
            logger.info("shutdown_requested", reason=reason)

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def wait(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds, waking early on cancellation."""
        return self._event.wait(timeout)

    def install_signal_handlers(self) -> None:
        """Cancel on SIGINT/SIGTERM. Only valid from the main thread."""
        if threading.current_thread() is not threading.main_thread():
            logger.debug("signal_handlers_skipped", reason="not_main_thread")
            return

        def _handler(signum: int, frame: FrameType | None) -> None:
            self.cancel(reason=signal.Signals(signum).name)

        for sig in (signal.SIGINT, signal.SIGTERM):
            self._previous_handlers[sig] = signal.getsignal(sig)
            signal.signal(sig, _handler)

    def restore_signal_handlers(self) -> None:
        for sig, handler in self._previous_handlers.items():
            signal.signal(sig, handler)  # type: ignore[arg-type]
        self._previous_handlers.clear()
