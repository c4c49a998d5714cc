"""Aggregator: single consumer thread that writes accepted lines in arrival order.

Readers push lines through their own SourceChannel. A channel holds a fixed
number of slots; a line occupies one slot from the moment it is queued until
the consumer has written it. A reader that runs out of slots blocks before
reading more input, so backpressure stays local to that source and the
shared queue never holds more than the sum of all channel capacities.
"""

import logging
import queue
import sys
import threading
from typing import Callable, TextIO

from logscout.models import RawLine

logger = logging.getLogger(__name__)

_END = None


class ConsolePrinter:
    """Default sink: one ``[source] text`` line per accepted line."""

    def __init__(self, stream: TextIO | None = None):
        self._stream = stream if stream is not None else sys.stdout
        self._broken = False

    def __call__(self, line: RawLine):
        if self._broken:
            return
        try:
            self._stream.write(f"[{line.source_name}] {line.text}\n")
            self._stream.flush()
        except BrokenPipeError:
            self._broken = True
            logger.error("Output stream closed, discarding remaining lines")


class SourceChannel:
    """A reader's bounded lane into the aggregator."""

    def __init__(self, aggregator: "Aggregator", source_name: str, capacity: int):
        self._aggregator = aggregator
        self.source_name = source_name
        self._slots = threading.Semaphore(capacity)

    def send(self, line: RawLine, poll_interval: float = 0.1) -> bool:
        """Block until the line is queued. Returns False if the aggregator closed first."""
        while not self._slots.acquire(timeout=poll_interval):
            if self._aggregator.closed:
                return False
        if not self._aggregator._enqueue(self, line):
            self._slots.release()
            return False
        return True

    def _release(self):
        self._slots.release()


class Aggregator:
    def __init__(self, sink: Callable[[RawLine], None] | None = None, capacity: int = 64):
        self._sink = sink if sink is not None else ConsolePrinter()
        self._capacity = capacity
        self._queue: queue.Queue = queue.Queue()
        self._closed = threading.Event()
        self._thread: threading.Thread | None = None
        self._delivered = 0
        self._lock = threading.Lock()
        # closing and enqueueing are serialized so nothing lands behind _END
        self._accept_lock = threading.Lock()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    @property
    def delivered(self) -> int:
        with self._lock:
            return self._delivered

    def open_channel(self, source_name: str) -> SourceChannel:
        return SourceChannel(self, source_name, self._capacity)

    def start(self):
        """Start the consumer thread."""
        self._thread = threading.Thread(target=self._consume, name="aggregator", daemon=True)
        self._thread.start()

    def close(self, timeout: float | None = None):
        """Stop accepting lines, write everything already queued, then stop the consumer.

        A send racing with close either lands before the end marker and is
        written, or is refused.
        """
        with self._accept_lock:
            self._closed.set()
            self._queue.put(_END)
        if self._thread:
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.error("Aggregator did not finish draining within %.1fs", timeout)

    def _enqueue(self, channel: SourceChannel, line: RawLine) -> bool:
        with self._accept_lock:
            if self._closed.is_set():
                return False
            self._queue.put((channel, line))
            return True

    def _consume(self):
        while True:
            item = self._queue.get()
            if item is _END:
                return
            channel, line = item
            try:
                self._sink(line)
            finally:
                channel._release()
            with self._lock:
                self._delivered += 1
