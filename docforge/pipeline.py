"""High-level orchestration: collect, clean, assemble, resolve images, render."""

from __future__ import annotations

import logging
import tempfile
from pathlib import Path
from typing import List, Optional, Sequence

from .assembler import assemble, format_url_body, format_url_meta, text_section, write_document
from .cleaner import CleanOptions, clean_file
from .collector import DOCS_DIR, collect
from .config import BuildConfig
from .content import extract_main_html, extract_metadata, html_to_markdown
from .errors import ConfigurationError
from .fetch import PageFetcher
from .images import build_search_paths, rewrite_images
from .models import Section, SectionKind
from .render import Backend, DEFAULT_BACKENDS, RenderRequest, render

logger = logging.getLogger("docforge")


def _file_sections(config: BuildConfig, work_dir: Path) -> List[Section]:
    if not config.include_all:
        return []
    options = CleanOptions(
        strip_badges=not config.keep_badges,
        strip_symbols=not config.keep_emoji,
    )
    sections: List[Section] = []
    for index, candidate in enumerate(collect(config.source_root, config.exclusions)):
        copy = clean_file(candidate.path, work_dir / "cleaned" / f"{index:04d}.md", options)
        sections.append(
            Section(
                kind=SectionKind.DOCUMENT,
                text=copy.read_text(encoding="utf-8"),
                base_dir=candidate.path.parent,
                source=candidate.relative_path,
            )
        )
    return sections


def _url_meta_section(config: BuildConfig, fetcher: PageFetcher) -> Optional[Section]:
    if not config.url_meta:
        return None
    metadata = extract_metadata(fetcher.get_text(config.url_meta), config.url_meta)
    return Section(
        kind=SectionKind.URL_META,
        text=format_url_meta(metadata),
        base_dir=config.source_root,
        source=config.url_meta,
    )


def _url_body_section(config: BuildConfig, fetcher: PageFetcher) -> Optional[Section]:
    if not config.url_body:
        return None
    html = fetcher.get_text(config.url_body)
    markdown = html_to_markdown(extract_main_html(html, base_url=config.url_body))
    return Section(
        kind=SectionKind.URL_BODY,
        text=format_url_body(config.url_body, markdown),
        base_dir=config.source_root,
        source=config.url_body,
    )


def build_sections(
    config: BuildConfig,
    work_dir: Path,
    fetcher: Optional[PageFetcher] = None,
) -> List[Section]:
    """Produce the ordered sections for ``config``; cleaned copies go to ``work_dir``."""
    if not config.include_all and not config.has_synthetic_sections:
        raise ConfigurationError(
            "You must pass --all (or request an intro, URL or credits section)."
        )
    if fetcher is None and (config.url_meta or config.url_body):
        fetcher = PageFetcher(timeout=config.fetch_timeout, retries=config.fetch_retries)
    return assemble(
        intro=text_section(SectionKind.INTRO, config.intro, config.source_root),
        url_meta=_url_meta_section(config, fetcher),
        url_body=_url_body_section(config, fetcher),
        files=_file_sections(config, work_dir),
        credits=text_section(SectionKind.CREDITS, config.credits, config.source_root),
    )


def section_search_paths(section: Section, global_paths: Sequence[Path]) -> List[Path]:
    """The section's own directory first, then the global search paths."""
    paths = [section.base_dir]
    paths.extend(p for p in global_paths if p != section.base_dir)
    return paths


def global_search_paths(source_root: Path) -> List[Path]:
    paths = build_search_paths(source_root)
    docs = source_root / DOCS_DIR
    if docs.is_dir() and docs not in paths:
        paths.insert(1, docs)
    return paths


def build_pdf(
    config: BuildConfig,
    fetcher: Optional[PageFetcher] = None,
    backends: Sequence[Backend] = DEFAULT_BACKENDS,
) -> Path:
    """Run the whole pipeline and return the written PDF path.

    Temporary files live in one per-run directory that is removed whether
    or not the build succeeds.
    """
    with tempfile.TemporaryDirectory(prefix="docforge-") as tmp:
        work_dir = Path(tmp)
        sections = build_sections(config, work_dir, fetcher)
        search_paths = global_search_paths(config.source_root)
        texts = [
            rewrite_images(
                section.text,
                section_search_paths(section, search_paths),
                render_dir=config.source_root,
                no_images=config.no_images,
            )
            for section in sections
        ]
        markdown_path = write_document(
            work_dir / "_all.md",
            texts,
            title=config.title,
            author=config.author,
            date=config.date,
        )
        request = RenderRequest(
            markdown_path=markdown_path,
            output_path=config.output_path,
            source_root=config.source_root,
            work_dir=work_dir,
            resource_paths=search_paths,
            highlight_style=config.highlight_style,
            cache_home=config.cache_home,
        )
        return render(request, backends=backends)
