"""Line model shared by readers, the filter stage and the aggregator."""

from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass(frozen=True)
class RawLine:
    source_name: str     # configured source name, used for attribution
    text: str            # line content without its terminator
    sequence_no: int     # per-source, starts at 1
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
