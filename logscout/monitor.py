"""LogMonitor: wires readers, filter, stats and aggregator together for one run."""

import logging
import threading
from typing import Callable

from logscout.aggregator import Aggregator
from logscout.command_reader import CommandReader
from logscout.config import Config, SourceConfig
from logscout.errors import SourceUnavailable
from logscout.file_reader import FileTailReader
from logscout.filters import FilterSet
from logscout.models import RawLine
from logscout.reader import SourceReader
from logscout.shutdown import ShutdownController
from logscout.stats import StatsCollector, StatsSnapshot
from logscout.watcher import FileChangeWatcher

logger = logging.getLogger(__name__)


def build_reader(source: SourceConfig, cancel_event: threading.Event,
                 config: Config) -> SourceReader:
    """Create the reader matching the source kind."""
    if source.kind == "file":
        return FileTailReader(source, cancel_event, follow=config.follow,
                              poll_interval=config.poll_interval)
    if source.kind == "command":
        return CommandReader(source, cancel_event, poll_interval=config.poll_interval,
                             kill_timeout=config.kill_timeout)
    raise SourceUnavailable(source.name, f"unknown source type {source.kind!r}")


class LogMonitor:
    """One reader thread per source feeding a single aggregator consumer.

    The run ends when shutdown is triggered (signal or ``controller.trigger``)
    or when every reader has finished on its own.
    """

    def __init__(self, config: Config, filters: FilterSet,
                 sink: Callable[[RawLine], None] | None = None,
                 controller: ShutdownController | None = None):
        self._config = config
        self._filters = filters
        self.controller = controller or ShutdownController(timeout=config.shutdown_timeout)
        self.stats = StatsCollector()
        self.aggregator = Aggregator(sink, capacity=config.queue_capacity)
        self._watcher: FileChangeWatcher | None = None
        self.readers: list[SourceReader] = []
        self.unavailable: list[str] = []

    def start(self):
        """Open every source, skipping the unavailable ones, and start all threads."""
        for source in self._config.sources:
            self.stats.register(source.name)
            try:
                reader = build_reader(source, self.controller.cancel_event, self._config)
                reader.open()
            except SourceUnavailable as e:
                logger.error("%s (skipped)", e)
                self.unavailable.append(source.name)
                continue
            self.readers.append(reader)

        if not self.readers:
            logger.warning("No usable sources")

        self.aggregator.start()

        file_readers = [r for r in self.readers if isinstance(r, FileTailReader)]
        if self._config.follow and file_readers:
            self._watcher = FileChangeWatcher()
            for reader in file_readers:
                self._watcher.watch(reader.path, reader.notify)
            self._watcher.start()

        for reader in self.readers:
            channel = self.aggregator.open_channel(reader.name)
            t = threading.Thread(
                target=reader.run,
                args=(channel, self._filters, self.stats),
                name=f"reader-{reader.name}",
                daemon=True,
            )
            self.controller.register(reader, t)
            t.start()

        logger.info("Monitoring %d source(s), %d unavailable",
                    len(self.readers), len(self.unavailable))

    def wait(self):
        """Block until shutdown is triggered or every reader has finished."""
        while not self.controller.wait(self._config.poll_interval):
            if not self.controller.readers_alive():
                self.controller.trigger("all sources finished")

    def stop(self) -> StatsSnapshot:
        """Run the shutdown sequence and return the final stats.

        ShutdownTimeout propagates to the caller; the stats are sealed
        either way and remain available on ``self.stats``.
        """
        try:
            self.controller.shutdown(self.aggregator, self.stats)
        finally:
            if self._watcher:
                self._watcher.stop()
        return self.stats.snapshot()

    def run(self) -> StatsSnapshot:
        self.start()
        self.wait()
        return self.stop()
