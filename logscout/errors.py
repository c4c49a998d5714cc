"""logscout exception hierarchy.

Configuration problems are fatal for the run. Source problems carry the
name of the source that misbehaved and are recovered by skipping or
stopping that one source.
"""


class LogScoutError(Exception):
    """Base exception for all logscout failures."""


class ConfigError(LogScoutError):
    """Raised for an unreadable or structurally invalid configuration."""


class PatternInvalid(ConfigError):
    """Raised when an include/exclude pattern does not compile."""

    def __init__(self, kind: str, pattern: str, reason: str):
        super().__init__(f"invalid {kind} pattern {pattern!r}: {reason}")
        self.kind = kind
        self.pattern = pattern


class SourceError(LogScoutError):
    """Base for errors attributed to a single source."""

    def __init__(self, source_name: str, message: str):
        super().__init__(f"source `{source_name}`: {message}")
        self.source_name = source_name


class SourceUnavailable(SourceError):
    """The source could not be opened or spawned at startup."""


class SourceTerminatedEarly(SourceError):
    """The source failed or exited while the run was still going."""


class ShutdownTimeout(LogScoutError):
    """One or more readers did not honor cancellation in time."""

    def __init__(self, source_names: list[str], timeout: float):
        names = ", ".join(source_names)
        super().__init__(f"readers still running after {timeout:.1f}s: {names}")
        self.source_names = list(source_names)
        self.timeout = timeout
