"""Build the ordered section sequence and write the aggregated Markdown."""

from __future__ import annotations

import json
from pathlib import Path
from typing import List, Optional, Sequence
from urllib.parse import urlparse

from .errors import EmptyResultError
from .models import PageMetadata, Section, SectionKind

PAGE_BREAK = '\n\n<div style="page-break-after: always;"></div>\n\n\\newpage\n\n'


def format_url_meta(metadata: PageMetadata) -> str:
    """Format fetched page metadata as an intro-style section."""
    lines = [f"# {metadata.title or metadata.source_url}", ""]
    if metadata.description:
        lines.extend([metadata.description, ""])
    lines.append(f"Source: <{metadata.source_url}>")
    return "\n".join(lines) + "\n"


def format_url_body(url: str, markdown: str) -> str:
    """Prefix converted page content with a heading and source attribution."""
    host = urlparse(url).netloc or url
    return (
        f"# Imported from `{host}`\n\n"
        f"Source: <{url}>\n\n"
        f"{markdown.strip()}\n"
    )


def assemble(
    intro: Optional[Section],
    url_meta: Optional[Section],
    url_body: Optional[Section],
    files: Sequence[Section],
    credits: Optional[Section],
) -> List[Section]:
    """Order sections as intro, URL metadata, URL body, files, credits.

    Absent optional sections are skipped. Raises ``EmptyResultError`` when
    nothing would be rendered.
    """
    sections = [s for s in (intro, url_meta, url_body) if s is not None]
    sections.extend(files)
    if credits is not None:
        sections.append(credits)
    if not sections:
        raise EmptyResultError("No markdown files collected and no other sections requested.")
    return sections


def _front_matter(title: str, author: str, date: str) -> str:
    # JSON-quoted strings are valid YAML scalars.
    return "\n".join(
        [
            "---",
            f"title: {json.dumps(title, ensure_ascii=False)}",
            f"author: {json.dumps(author, ensure_ascii=False)}",
            f"date: {json.dumps(date, ensure_ascii=False)}",
            "toc: true",
            "toc-depth: 3",
            "numbersections: true",
            "---",
            "",
            "",
        ]
    )


def join_sections(texts: Sequence[str]) -> str:
    """Join section bodies with a page break between each adjacent pair."""
    return PAGE_BREAK.join(text.strip("\n") for text in texts) + "\n"


def write_document(
    destination: Path,
    texts: Sequence[str],
    title: str,
    author: str = "",
    date: str = "",
) -> Path:
    """Write the front matter followed by the page-broken section bodies."""
    destination.parent.mkdir(parents=True, exist_ok=True)
    destination.write_text(
        _front_matter(title, author, date) + join_sections(texts), encoding="utf-8"
    )
    return destination


def text_section(kind: SectionKind, text: Optional[str], base_dir: Path) -> Optional[Section]:
    """Wrap free text as a section, or return None for absent/blank text."""
    if text is None or not text.strip():
        return None
    return Section(kind=kind, text=text, base_dir=base_dir)
