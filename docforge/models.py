"""Data models used throughout the document pipeline."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass(frozen=True)
class CandidateFile:
    """A Markdown file accepted into the ordered file list."""

    path: Path
    relative_path: str

    @property
    def dedup_key(self) -> str:
        return str(self.path).lower()


class SectionKind(enum.Enum):
    INTRO = "intro"
    URL_META = "url-meta"
    URL_BODY = "url-body"
    DOCUMENT = "document"
    CREDITS = "credits"


@dataclass
class Section:
    """One unit of content in the final document.

    ``base_dir`` is the directory image references inside ``text`` are
    resolved against; synthetic sections use the source root.
    """

    kind: SectionKind
    text: str
    base_dir: Path
    source: Optional[str] = None


@dataclass
class PageMetadata:
    """Metadata describing a fetched page."""

    source_url: str
    title: Optional[str]
    description: Optional[str]
