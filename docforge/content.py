"""HTML extraction, metadata parsing and Markdown conversion for fetched pages."""

from __future__ import annotations

from typing import Iterable, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup
from markdownify import markdownify
from readability import Document

from .errors import ConversionError
from .models import PageMetadata

_MIN_PLAINTEXT_CHARS = 200
_TITLE_META_KEYS = ("og:title", "twitter:title")
_DESCRIPTION_META_KEYS = ("description", "og:description", "twitter:description")


def _clean_content(soup: BeautifulSoup, strip_chrome: bool = False) -> BeautifulSoup:
    """Remove noisy tags while keeping relevant article markup."""
    for tag in soup(["script", "style", "noscript", "form"]):
        tag.decompose()
    if strip_chrome:
        for tag in soup(["header", "footer", "nav", "aside"]):
            tag.decompose()
    return soup


def _join_plain_text(soup: BeautifulSoup) -> str:
    return "\n".join(s for s in soup.stripped_strings)


def _iter_primary_candidates(soup_full: BeautifulSoup) -> Iterable[BeautifulSoup]:
    """Yield progressively broader content scopes to fall back on."""
    for selector in ("main", "article"):
        candidate = soup_full.select_one(selector)
        if candidate:
            yield BeautifulSoup(str(candidate), "html.parser")
    if soup_full.body:
        yield BeautifulSoup(str(soup_full.body), "html.parser")


def _meta_content(soup: BeautifulSoup, keys: Iterable[str]) -> Optional[str]:
    found = {}
    for tag in soup.find_all("meta"):
        name = (tag.get("name") or tag.get("property") or "").strip().lower()
        content = (tag.get("content") or "").strip()
        if name and content and name not in found:
            found[name] = content
    for key in keys:
        if key in found:
            return found[key]
    return None


def extract_metadata(html: str, url: str) -> PageMetadata:
    """Read the page title and description, preferring ``<title>``."""
    soup = BeautifulSoup(html, "html.parser")
    title: Optional[str] = None
    if soup.title and soup.title.string:
        title = " ".join(soup.title.string.split()) or None
    if not title:
        title = _meta_content(soup, _TITLE_META_KEYS)
    description = _meta_content(soup, _DESCRIPTION_META_KEYS)
    return PageMetadata(source_url=url, title=title, description=description)


def extract_main_html(html: str, base_url: Optional[str] = None) -> str:
    """Isolate the article body of a page with readability, falling back to
    ``main``, ``article`` or ``body`` when the summary is too thin."""
    try:
        summary_html = Document(html).summary(html_partial=True)
    except Exception as exc:  # noqa: BLE001 - readability raises bare Exceptions
        raise ConversionError(f"Could not extract page content: {exc}") from exc
    soup_full = BeautifulSoup(html, "html.parser")
    summary = _clean_content(BeautifulSoup(summary_html, "html.parser"))
    plain_text = _join_plain_text(summary)

    full_has_images = bool(soup_full.find("img"))
    if len(plain_text) < _MIN_PLAINTEXT_CHARS or (
        full_has_images and not summary.find("img")
    ):
        for candidate in _iter_primary_candidates(soup_full):
            candidate = _clean_content(candidate, strip_chrome=True)
            if len(_join_plain_text(candidate)) >= _MIN_PLAINTEXT_CHARS or (
                full_has_images and candidate.find("img")
            ):
                summary = candidate
                break
    if base_url:
        for img in summary.find_all("img"):
            src = img.get("src")
            if src and not src.startswith("data:"):
                img["src"] = urljoin(base_url, src)
    return summary.decode()


def html_to_markdown(html: str) -> str:
    """Convert an HTML fragment to Markdown with ATX headings."""
    try:
        markdown = markdownify(html, heading_style="ATX", bullets="-")
    except Exception as exc:  # noqa: BLE001 - surface any converter failure
        raise ConversionError(f"HTML to Markdown conversion failed: {exc}") from exc
    markdown = markdown.strip()
    if not markdown:
        raise ConversionError("HTML to Markdown conversion produced no content")
    return markdown
