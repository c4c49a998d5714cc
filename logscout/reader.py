"""Base class and contract for log source readers.

All readers:
1. Inherit from SourceReader
2. Yield raw text lines from ``lines()`` until the source is exhausted or
   cancellation is observed
3. Release every handle or child process in ``close()``
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Iterator

from logscout.aggregator import SourceChannel
from logscout.config import SourceConfig
from logscout.errors import SourceError
from logscout.filters import Decision, FilterSet, evaluate
from logscout.models import RawLine
from logscout.stats import StatsCollector

logger = logging.getLogger(__name__)


class SourceReader(ABC):
    def __init__(self, source: SourceConfig, cancel_event: threading.Event,
                 poll_interval: float = 0.25):
        self.source = source
        self._cancel = cancel_event
        self._poll_interval = poll_interval
        self._wake = threading.Event()
        self._sequence = 0

    @property
    def name(self) -> str:
        return self.source.name

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    @abstractmethod
    def open(self):
        """Acquire the underlying resource. Raises SourceUnavailable."""

    @abstractmethod
    def lines(self) -> Iterator[str]:
        """Yield raw text lines. Raises SourceTerminatedEarly on mid-run failure."""

    @abstractmethod
    def close(self):
        """Release the underlying resource. Safe to call more than once."""

    def notify(self):
        """Wake a reader that is waiting for new input."""
        self._wake.set()

    def cancel(self):
        """Request cooperative cancellation and wake the reader."""
        self._cancel.set()
        self._wake.set()

    def _wait_for_input(self):
        """Sleep until notified, cancelled or poll_interval elapsed."""
        self._wake.wait(self._poll_interval)
        self._wake.clear()

    def run(self, channel: SourceChannel, filters: FilterSet, stats: StatsCollector):
        """Read, filter, count and forward lines until done. Always closes the source."""
        try:
            for text in self.lines():
                self._sequence += 1
                line = RawLine(source_name=self.name, text=text, sequence_no=self._sequence)
                decision = evaluate(text, filters)
                if decision is Decision.INCLUDE and not channel.send(line):
                    logger.debug("Source `%s`: aggregator closed, dropping line %d",
                                 self.name, line.sequence_no)
                    break
                stats.record(self.name, decision)
                if self.cancelled:
                    break
        except SourceError as e:
            logger.warning("%s", e)
        except Exception:
            logger.exception("Source `%s`: reader failed", self.name)
        finally:
            self.close()
        logger.info("Source `%s` stopped after %d line(s)", self.name, self._sequence)
