"""Discover the Markdown files of a source tree in a fixed four-phase order."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Set

from .config import MARKDOWN_SUFFIX
from .errors import SourceReadError
from .matching import Patterns, matches, parse_patterns
from .models import CandidateFile

logger = logging.getLogger("docforge")

README_NAMES = ("README.md", "Readme.md", "readme.md")
DOCS_DIR = "docs"

PRUNED_DIRS: Set[str] = {
    ".git",
    ".hg",
    ".svn",
    ".venv",
    "venv",
    "env",
    "node_modules",
    "__pycache__",
    ".pytest_cache",
    ".mypy_cache",
    ".ruff_cache",
    ".tox",
    ".nox",
    "vendor",
    "bower_components",
}


def is_pruned(name: str) -> bool:
    """Check whether traversal should skip a directory with this name."""
    return name in PRUNED_DIRS or name.endswith(".egg-info")


def walk_files(top: Path) -> Iterator[Path]:
    """Yield every file below ``top``, skipping pruned directories."""
    for dirpath, dirnames, filenames in os.walk(top):
        dirnames[:] = [d for d in dirnames if not is_pruned(d)]
        for name in filenames:
            yield Path(dirpath) / name


def _is_markdown(path: Path) -> bool:
    return path.name.lower().endswith(MARKDOWN_SUFFIX)


def _sorted_by_path(paths: Iterable[Path], root: Path) -> List[Path]:
    return sorted(paths, key=lambda p: p.relative_to(root).as_posix())


class _OrderedFiles:
    """Accumulates accepted files, first occurrence per resolved path wins."""

    def __init__(self, root: Path, exclusions: List[str]) -> None:
        self.root = root
        self.exclusions = exclusions
        self.files: List[CandidateFile] = []
        self._seen: Set[str] = set()

    def add(self, path: Path) -> bool:
        if not path.is_file() or not os.access(path, os.R_OK):
            return False
        if not _is_markdown(path):
            return False
        if matches(path.name, self.exclusions):
            logger.debug("Excluded by pattern: %s", path)
            return False
        candidate = CandidateFile(
            path=path.resolve(),
            relative_path=path.relative_to(self.root).as_posix(),
        )
        if candidate.dedup_key in self._seen:
            logger.debug("Skipping duplicate %s", candidate.relative_path)
            return False
        self._seen.add(candidate.dedup_key)
        self.files.append(candidate)
        return True


def find_readme(root: Path) -> Optional[Path]:
    """Return the root README, checking the known spellings in priority order."""
    try:
        present = {entry.name for entry in root.iterdir()}
    except OSError as exc:
        raise SourceReadError(f"Cannot read directory {root}: {exc}") from exc
    for name in README_NAMES:
        if name in present and (root / name).is_file():
            return root / name
    return None


def collect(source_root: Path, exclusions: Patterns = None) -> List[CandidateFile]:
    """Collect the ordered, deduplicated Markdown files of ``source_root``.

    Phases, each sorted by relative path:
      1. the root README (first of ``README_NAMES`` present),
      2. ``docs/**/*.md``,
      3. ``*.md`` directly in the root, README spellings excluded,
      4. every remaining ``*.md`` at depth two or more.
    """
    root = Path(source_root).expanduser()
    if not root.is_dir() or not os.access(root, os.R_OK | os.X_OK):
        raise SourceReadError(f"Base path not found or unreadable: {root}")
    root = root.resolve()
    ordered = _OrderedFiles(root, parse_patterns(exclusions))

    readme = find_readme(root)
    if readme is not None:
        ordered.add(readme)

    docs = root / DOCS_DIR
    if docs.is_dir():
        for path in _sorted_by_path(walk_files(docs), root):
            ordered.add(path)

    top_level = [
        entry
        for entry in root.iterdir()
        if entry.name not in README_NAMES
    ]
    for path in _sorted_by_path(top_level, root):
        ordered.add(path)

    nested = [
        path
        for path in walk_files(root)
        if path.parent != root
    ]
    for path in _sorted_by_path(nested, root):
        ordered.add(path)

    logger.info(
        "Including %d markdown files (base: %s)", len(ordered.files), root
    )
    for candidate in ordered.files:
        logger.info(" - %s", candidate.relative_path)
    return ordered.files
