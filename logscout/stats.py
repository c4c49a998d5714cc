"""Thread-safe per-run line counters and the final summary formatters."""

import json
import logging
import threading
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from logscout.filters import Decision

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SourceStats:
    total: int = 0
    included: int = 0
    excluded: int = 0


@dataclass(frozen=True)
class StatsSnapshot:
    total: int = 0
    included: int = 0
    excluded: int = 0
    per_source: Mapping[str, SourceStats] = field(default_factory=lambda: MappingProxyType({}))


class StatsCollector:
    """Global and per-source include/exclude counters.

    Every update happens under one lock so ``total == included + excluded``
    holds for any snapshot, globally and per source. After ``seal()`` the
    counters are frozen and further ``record`` calls are rejected.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._sealed = False
        self._total = 0
        self._included = 0
        self._excluded = 0
        # source name -> [total, included, excluded]
        self._per_source: dict[str, list[int]] = {}

    def register(self, source_name: str):
        """Make a source show up in the breakdown even if it never emits a line."""
        with self._lock:
            self._per_source.setdefault(source_name, [0, 0, 0])

    def record(self, source_name: str, decision: Decision) -> bool:
        """Count one evaluated line. Returns False if the collector is sealed."""
        with self._lock:
            if self._sealed:
                logger.warning("Stats already sealed, dropping count for source `%s`", source_name)
                return False
            counts = self._per_source.setdefault(source_name, [0, 0, 0])
            self._total += 1
            counts[0] += 1
            if decision is Decision.INCLUDE:
                self._included += 1
                counts[1] += 1
            else:
                self._excluded += 1
                counts[2] += 1
            return True

    def seal(self):
        with self._lock:
            self._sealed = True

    @property
    def sealed(self) -> bool:
        with self._lock:
            return self._sealed

    def snapshot(self) -> StatsSnapshot:
        """Return an immutable point-in-time copy of all counters."""
        with self._lock:
            return StatsSnapshot(
                total=self._total,
                included=self._included,
                excluded=self._excluded,
                per_source=MappingProxyType({
                    name: SourceStats(total=c[0], included=c[1], excluded=c[2])
                    for name, c in self._per_source.items()
                }),
            )


def format_stats_text(stats: StatsSnapshot, per_source: bool = False) -> str:
    """Human-readable run summary."""
    lines = [
        "--- logscout summary ---",
        f"total:    {stats.total}",
        f"included: {stats.included}",
        f"excluded: {stats.excluded}",
    ]
    if per_source:
        for name, s in stats.per_source.items():
            lines.append(f"  {name}: total={s.total} included={s.included} excluded={s.excluded}")
    return "\n".join(lines)


def format_stats_json(stats: StatsSnapshot) -> str:
    """JSON run summary."""
    return json.dumps({
        "total": stats.total,
        "included": stats.included,
        "excluded": stats.excluded,
        "per_source": {
            name: {"total": s.total, "included": s.included, "excluded": s.excluded}
            for name, s in stats.per_source.items()
        },
    }, indent=2)
