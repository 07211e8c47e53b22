"""Case-insensitive glob matching of file basenames against exclusion rules."""

from __future__ import annotations

import fnmatch
from typing import Iterable, List, Union

Patterns = Union[str, Iterable[str], None]


def parse_patterns(patterns: Patterns) -> List[str]:
    """Flatten repeated and comma-separated pattern inputs into a clean list."""
    if patterns is None:
        return []
    if isinstance(patterns, str):
        patterns = [patterns]
    parsed: List[str] = []
    for raw in patterns:
        for part in raw.split(","):
            part = part.strip()
            if part:
                parsed.append(part)
    return parsed


def matches(basename: str, patterns: Patterns) -> bool:
    """Return True when ``basename`` matches any of ``patterns``, ignoring case."""
    name = basename.casefold()
    return any(
        fnmatch.fnmatchcase(name, pattern.casefold())
        for pattern in parse_patterns(patterns)
    )
