"""ShutdownController: interrupt handling and the ordered stop sequence."""

import logging
import signal
import threading
import time
from enum import Enum

from logscout.aggregator import Aggregator
from logscout.errors import ShutdownTimeout
from logscout.reader import SourceReader
from logscout.stats import StatsCollector

logger = logging.getLogger(__name__)


class RunState(Enum):
    RUNNING = 1
    SHUTTING_DOWN = 2
    STOPPED = 3


class ShutdownController:
    """Owns the cancellation event shared by every reader.

    State only moves forward: RUNNING -> SHUTTING_DOWN -> STOPPED. STOPPED is
    reached only after every reader thread has been joined (or given up on),
    the aggregator has drained and the stats have been sealed.
    """

    def __init__(self, timeout: float = 5.0):
        self._timeout = timeout
        self.cancel_event = threading.Event()
        self._state = RunState.RUNNING
        self._signal_reason: str | None = None
        self._lock = threading.Lock()
        self._tasks: list[tuple[SourceReader, threading.Thread]] = []

    @property
    def state(self) -> RunState:
        if self.cancel_event.is_set():
            self._advance(RunState.SHUTTING_DOWN, self._signal_reason)
        with self._lock:
            return self._state

    def _advance(self, new_state: RunState, reason: str | None = None) -> bool:
        with self._lock:
            if new_state.value <= self._state.value:
                return False
            self._state = new_state
        if new_state is RunState.SHUTTING_DOWN:
            logger.info("Shutdown triggered (%s)", reason or "requested")
        return True

    def install_signal_handlers(self, signums=(signal.SIGINT, signal.SIGTERM)):
        """Route SIGINT/SIGTERM to the cancel event. Must be called from the main thread.

        The handler runs in the main thread between bytecodes, possibly while
        that thread holds ``_lock``, so it only sets the event. The state
        change happens later in ``wait()`` or ``shutdown()``.
        """
        def _handler(signum, frame):
            self._signal_reason = f"signal {signum}"
            self.cancel_event.set()

        for signum in signums:
            signal.signal(signum, _handler)

    def trigger(self, reason: str = "requested"):
        """Enter SHUTTING_DOWN and broadcast cancellation. Idempotent."""
        self._advance(RunState.SHUTTING_DOWN, reason)
        self.cancel_event.set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until shutdown is triggered. Returns True if it was."""
        if not self.cancel_event.wait(timeout):
            return False
        self._advance(RunState.SHUTTING_DOWN, self._signal_reason)
        return True

    def register(self, reader: SourceReader, thread: threading.Thread):
        with self._lock:
            self._tasks.append((reader, thread))

    def readers_alive(self) -> bool:
        with self._lock:
            tasks = list(self._tasks)
        return any(t.is_alive() for _, t in tasks)

    def shutdown(self, aggregator: Aggregator, stats: StatsCollector):
        """Cancel readers, wait for them, drain output, seal the stats.

        Raises ShutdownTimeout, after the drain and seal, if any reader
        was still running when the deadline passed.
        """
        self.trigger(self._signal_reason or "shutdown")
        with self._lock:
            tasks = list(self._tasks)

        for reader, _ in tasks:
            reader.cancel()

        deadline = time.monotonic() + self._timeout
        stragglers = []
        for reader, thread in tasks:
            thread.join(timeout=max(0.0, deadline - time.monotonic()))
            if thread.is_alive():
                stragglers.append(reader.name)

        aggregator.close(timeout=self._timeout)
        stats.seal()
        self._advance(RunState.STOPPED)
        logger.info("All readers stopped, %d line(s) written", aggregator.delivered)

        if stragglers:
            raise ShutdownTimeout(stragglers, self._timeout)
