"""Evaluation Scheduler.

Runs evaluation passes on a fixed interval in a background thread until
stopped. Stopping cancels the pass in flight: rules already being
evaluated finish, the rest are reported as cancelled.
"""

import logging
import threading
from typing import Callable, Optional, Protocol

from lotwatch.alerts.models import PassSummary

logger = logging.getLogger(__name__)


class PassRunner(Protocol):
    running: bool

    def run_pass(self) -> PassSummary: ...

    def cancel(self) -> None: ...


class EvaluationScheduler:
    """Periodic driver for evaluation passes."""

    def __init__(
        self,
        runner: PassRunner,
        interval_seconds: float = 300.0,
        on_summary: Optional[Callable[[PassSummary], None]] = None,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.runner = runner
        self.interval_seconds = interval_seconds
        self.on_summary = on_summary
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.passes_run = 0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start running passes in a background thread."""
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self.run_forever, daemon=True, name="lotwatch-scheduler")
        self._thread.start()
        logger.info("Evaluation scheduler started (interval=%.1fs)", self.interval_seconds)

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop the loop, cancel the current pass and wait for it to wind down."""
        self._stop.set()
        if self.runner.running:
            self.runner.cancel()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=timeout)
        self._thread = None
        logger.info("Evaluation scheduler stopped after %d passes", self.passes_run)

    def run_forever(self) -> None:
        """Run passes until stop() is called. Blocks the calling thread."""
        while not self._stop.is_set():
            self.run_once()
            self._stop.wait(self.interval_seconds)

    def run_once(self) -> PassSummary:
        summary = self.runner.run_pass()
        self.passes_run += 1
        if self.on_summary is not None:
            try:
                self.on_summary(summary)
            except Exception:
                logger.exception("Pass summary callback failed")
        return summary
