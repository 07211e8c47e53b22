"""Build one PDF per URL listed in a sitemap."""

from __future__ import annotations

import logging
import tempfile
import xml.etree.ElementTree as ET
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Callable, List, Optional, Tuple
from urllib.parse import unquote, urlparse

from .config import BuildConfig
from .content import extract_metadata
from .errors import ConversionError, EmptyResultError, FetchError, SourceReadError
from .fetch import PageFetcher
from .pipeline import build_pdf
from .utils import sanitize_filename, sanitize_segment

logger = logging.getLogger("docforge")


@dataclass
class BatchResult:
    url: str
    output_path: Path
    title: str


def _is_url(value: str) -> bool:
    return value.lower().startswith(("http://", "https://"))


def parse_sitemap(
    data: bytes, fetch_nested: Callable[[str], bytes]
) -> List[str]:
    """Return the page URLs of a ``urlset`` or, recursively, a ``sitemapindex``.

    Nested sitemaps that fail to download or parse are logged and skipped.
    """
    try:
        root = ET.fromstring(data)
    except ET.ParseError as exc:
        raise ConversionError(f"Sitemap is not valid XML: {exc}") from exc
    tag = root.tag.split("}")[-1].lower()
    locations = [
        loc.text.strip()
        for loc in root.findall(".//{*}loc")
        if loc.text and loc.text.strip()
    ]
    if tag == "urlset":
        return locations
    if tag != "sitemapindex":
        logger.warning("Unrecognized sitemap root element <%s>", tag)
        return []

    urls: List[str] = []
    for location in locations:
        try:
            urls.extend(parse_sitemap(fetch_nested(location), fetch_nested))
        except (FetchError, ConversionError) as exc:
            logger.warning("Failed to read nested sitemap %s: %s", location, exc)
    return urls


def load_sitemap_urls(
    source: str,
    fetcher: PageFetcher,
    limit: Optional[int] = None,
) -> List[str]:
    """Read a sitemap from a file or URL and return its unique page URLs."""
    if _is_url(source):
        data = fetcher.get_bytes(source)
    else:
        path = Path(source).expanduser()
        if not path.is_file():
            raise SourceReadError(f"Sitemap file not found: {source}")
        data = path.read_bytes()

    urls = list(dict.fromkeys(parse_sitemap(data, fetcher.get_bytes)))
    if limit is not None:
        urls = urls[:limit]
    if not urls:
        raise EmptyResultError("No <loc> entries found in sitemap")
    return urls


def _path_segments(url: str) -> List[str]:
    return [
        s for s in unquote(urlparse(url).path).split("/") if s not in ("", ".", "..")
    ]


def derive_rel_dir(url: str) -> Path:
    """Mirror the URL's path segments as a sanitized relative directory."""
    cleaned = [c for c in (sanitize_segment(s) for s in _path_segments(url)) if c]
    if not cleaned:
        cleaned = [sanitize_segment(urlparse(url).netloc) or "root"]
    return Path(*cleaned)


def page_title(url: str, fetcher: PageFetcher) -> Tuple[str, str]:
    """Return ``(file_base, display_title)`` for a page.

    The base name comes from the HTML title and falls back to the last path
    segment, then the host.
    """
    segments = _path_segments(url)
    fallback = segments[-1] if segments else (urlparse(url).netloc or "page")
    raw_title = ""
    try:
        raw_title = extract_metadata(fetcher.get_text(url), url).title or ""
    except FetchError as exc:
        logger.warning("Could not read title of %s: %s", url, exc)
    return sanitize_filename(raw_title, sanitize_filename(fallback)), raw_title


def unique_output_path(directory: Path, base: str) -> Path:
    """``base.pdf``, or ``base__2.pdf``, ``base__3.pdf``... when taken."""
    candidate = directory / f"{base}.pdf"
    n = 2
    while candidate.exists():
        candidate = directory / f"{base}__{n}.pdf"
        n += 1
    return candidate


def run_batch(
    sitemap: str,
    out_dir: Path,
    template: Callable[[Path, Path], BuildConfig],
    base_root: Optional[Path] = None,
    limit: Optional[int] = None,
    fetcher: Optional[PageFetcher] = None,
    build: Callable[..., Path] = build_pdf,
) -> List[BatchResult]:
    """Build a PDF per sitemap URL under ``out_dir``.

    ``template(source_root, output_path)`` supplies the shared settings for
    every page; each page then gets its URL as metadata and body section.
    Without ``base_root`` an empty temporary root is used and removed at the
    end.
    """
    fetcher = fetcher or PageFetcher()
    out_dir = Path(out_dir).expanduser().resolve()
    out_dir.mkdir(parents=True, exist_ok=True)
    urls = load_sitemap_urls(sitemap, fetcher, limit=limit)
    logger.info("Found %d URLs in sitemap", len(urls))

    with tempfile.TemporaryDirectory(prefix="docforge-base-") as tmp:
        root = Path(base_root).expanduser().resolve() if base_root else Path(tmp)
        results: List[BatchResult] = []
        for index, url in enumerate(urls, start=1):
            target_dir = out_dir / derive_rel_dir(url)
            target_dir.mkdir(parents=True, exist_ok=True)
            file_base, title = page_title(url, fetcher)
            output_path = unique_output_path(target_dir, file_base)
            logger.info("[%d/%d] %s", index, len(urls), url)
            logger.info("  -> %s", output_path)
            if title:
                logger.info("  title: %s", title)

            config = template(root, output_path)
            config = replace(
                config,
                include_all=True,
                url_meta=url,
                url_body=url,
                title=title or config.title,
            )
            build(config, fetcher=fetcher)
            results.append(BatchResult(url=url, output_path=output_path, title=title))
    logger.info("Batch complete. Output in: %s", out_dir)
    return results
