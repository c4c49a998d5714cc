"""Include/exclude regex filtering of raw lines.

Exclude rules: if any match the line, reject.
Include rules: if any exist, at least one must match. An empty include
list lets everything through.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from logscout.errors import PatternInvalid


class Decision(Enum):
    INCLUDE = "include"
    EXCLUDE = "exclude"


def _compile_all(kind: str, patterns: Iterable[str]) -> tuple[re.Pattern, ...]:
    compiled = []
    for pattern in patterns:
        try:
            compiled.append(re.compile(pattern))
        except re.error as e:
            raise PatternInvalid(kind, pattern, str(e)) from e
    return tuple(compiled)


@dataclass(frozen=True)
class FilterSet:
    include: tuple[re.Pattern, ...] = ()
    exclude: tuple[re.Pattern, ...] = ()

    @classmethod
    def from_patterns(cls, include: Iterable[str] = (), exclude: Iterable[str] = ()) -> "FilterSet":
        """Compile pattern strings. Raises PatternInvalid on the first bad one."""
        return cls(
            include=_compile_all("include", include),
            exclude=_compile_all("exclude", exclude),
        )

    def matches(self, line: str) -> bool:
        """Convenience wrapper if you only care about "should this be printed?"."""
        return evaluate(line, self) is Decision.INCLUDE


def evaluate(line: str, filters: FilterSet) -> Decision:
    for pattern in filters.exclude:
        if pattern.search(line):
            return Decision.EXCLUDE

    if not filters.include:
        return Decision.INCLUDE

    if any(p.search(line) for p in filters.include):
        return Decision.INCLUDE
    return Decision.EXCLUDE
