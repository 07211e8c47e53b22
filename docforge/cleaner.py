"""Textual cleanup applied to each Markdown file before assembly."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence, Set

from .errors import SourceReadError

# Hosts whose images are status badges. Matched as substrings of the URL.
BADGE_HOSTS: Sequence[str] = (
    "shields.io",
    "badgen.net",
    "badge.fury.io",
    "badges.gitter.im",
    "travis-ci.org",
    "travis-ci.com",
    "circleci.com",
    "ci.appveyor.com",
    "codecov.io",
    "coveralls.io",
    "codeclimate.com",
    "app.codacy.com",
    "sonarcloud.io",
    "snyk.io",
    "readthedocs.org/projects",
    "readthedocs.io/projects",
    "bestpractices.coreinfrastructure.org",
    "github.com/badges",
    "/workflows/",
    "/actions/workflows/",
    "api.netlify.com",
    "pepy.tech/badge",
    "deepsource.io",
)

BADGE_SUFFIX_PATTERN = re.compile(r"\.(?:svg|png)(?:\?[^\s)\"']*)?$", re.IGNORECASE)

_MD_IMAGE = r"!\[[^\]]*\]\(\s*<?(?P<{name}>[^)\s>]+)>?(?:\s+[\"'(][^)]*)?\)"
LINKED_IMAGE_PATTERN = re.compile(
    r"\[\s*" + _MD_IMAGE.format(name="src") + r"\s*\](?:\([^)]*\)|\[[^\]]*\])"
)
BARE_IMAGE_PATTERN = re.compile(_MD_IMAGE.format(name="src"))
HTML_IMAGE_PATTERN = re.compile(
    r"<img\b[^>]*?\bsrc\s*=\s*(?P<quote>[\"'])(?P<src>.*?)(?P=quote)[^>]*>",
    re.IGNORECASE | re.DOTALL,
)
HTML_LINKED_IMAGE_PATTERN = re.compile(
    r"<a\b[^>]*>\s*(?P<img><img\b[^>]*>)\s*</a>", re.IGNORECASE | re.DOTALL
)
REFERENCE_DEFINITION_PATTERN = re.compile(
    r"^[ ]{0,3}\[(?P<label>[^\]]+)\]:[ \t]*<?(?P<src>\S+?)>?(?:[ \t]+.*)?[ \t]*(?:\n|$)",
    re.MULTILINE,
)
_REF_IMAGE = r"!\[(?P<alt>[^\[\]]*)\](?:\[(?P<ref>[^\[\]]*)\]|(?![(\[]))"
LINKED_REFERENCE_IMAGE_PATTERN = re.compile(
    r"\[\s*" + _REF_IMAGE + r"\s*\](?:\[(?P<link>[^\[\]]*)\]|\([^)]*\))"
)
REFERENCE_IMAGE_PATTERN = re.compile(_REF_IMAGE)
LABEL_USE_PATTERN = re.compile(r"\[(?P<label>[^\[\]]+)\](?![:(])")

SYMBOL_PATTERN = re.compile(
    "["
    "\U0001F300-\U0001F5FF"  # symbols and pictographs
    "\U0001F600-\U0001F64F"  # emoticons
    "\U0001F680-\U0001F6FF"  # transport and map
    "\U0001F900-\U0001F9FF"  # supplemental symbols and pictographs
    "\U0001FA70-\U0001FAFF"  # symbols and pictographs extended-A
    "\U0001F1E6-\U0001F1FF"  # regional indicators
    "\u2600-\u27BF"  # misc symbols and dingbats
    "\uFE0E\uFE0F"  # variation selectors
    "\u200D"  # zero-width joiner
    "]"
)

BLANK_RUN_PATTERN = re.compile(r"(?:\A|\n)(?:[ \t]*\n){2,}")


@dataclass(frozen=True)
class CleanOptions:
    strip_badges: bool = True
    strip_symbols: bool = True


def is_badge_url(url: str) -> bool:
    """Heuristic: a remote URL on a badge host or ending in .svg/.png."""
    lowered = url.strip().lower()
    if not lowered.startswith(("http://", "https://")):
        return False
    if any(host in lowered for host in BADGE_HOSTS):
        return True
    return bool(BADGE_SUFFIX_PATTERN.search(lowered))


def _drop_if_badge(match: "re.Match[str]") -> str:
    return "" if is_badge_url(match.group("src")) else match.group(0)


def _drop_linked_html_badge(match: "re.Match[str]") -> str:
    img = HTML_IMAGE_PATTERN.search(match.group("img"))
    if img and is_badge_url(img.group("src")):
        return ""
    return match.group(0)


def _label(value: str) -> str:
    return " ".join(value.split()).casefold()


def _image_label(match: "re.Match[str]") -> str:
    return _label((match.group("ref") or "").strip() or match.group("alt"))


def _strip_badge_references(text: str, badge_labels: Set[str]) -> str:
    """Drop reference-style uses of badge definitions and their orphaned links."""
    wrapping_links: Set[str] = set()

    def drop_linked(match: "re.Match[str]") -> str:
        if _image_label(match) not in badge_labels:
            return match.group(0)
        if match.group("link"):
            wrapping_links.add(_label(match.group("link")))
        return ""

    def drop_bare(match: "re.Match[str]") -> str:
        return "" if _image_label(match) in badge_labels else match.group(0)

    text = LINKED_REFERENCE_IMAGE_PATTERN.sub(drop_linked, text)
    text = REFERENCE_IMAGE_PATTERN.sub(drop_bare, text)
    orphaned = wrapping_links - {
        _label(m.group("label")) for m in LABEL_USE_PATTERN.finditer(text)
    }

    def drop_orphaned(match: "re.Match[str]") -> str:
        return "" if _label(match.group("label")) in orphaned else match.group(0)

    return REFERENCE_DEFINITION_PATTERN.sub(drop_orphaned, text)


def strip_badges(text: str) -> str:
    """Remove badge images in link-wrapped, bare, HTML and reference form."""
    badge_labels = {
        _label(m.group("label"))
        for m in REFERENCE_DEFINITION_PATTERN.finditer(text)
        if is_badge_url(m.group("src"))
    }
    text = LINKED_IMAGE_PATTERN.sub(_drop_if_badge, text)
    text = BARE_IMAGE_PATTERN.sub(_drop_if_badge, text)
    text = HTML_LINKED_IMAGE_PATTERN.sub(_drop_linked_html_badge, text)
    text = HTML_IMAGE_PATTERN.sub(_drop_if_badge, text)
    if badge_labels:
        text = _strip_badge_references(text, badge_labels)
    return REFERENCE_DEFINITION_PATTERN.sub(_drop_if_badge, text)


def strip_symbols(text: str) -> str:
    """Remove emoji, pictographs, flags and their joiner/selector code points."""
    return SYMBOL_PATTERN.sub("", text)


def collapse_blank_lines(text: str) -> str:
    """Collapse every run of two or more blank lines into exactly one."""
    return BLANK_RUN_PATTERN.sub(lambda m: "\n" if m.start() == 0 else "\n\n", text)


def clean_text(text: str, options: CleanOptions = CleanOptions()) -> str:
    if options.strip_badges:
        text = strip_badges(text)
    if options.strip_symbols:
        text = strip_symbols(text)
    return collapse_blank_lines(text)


def clean_file(
    source: Path,
    destination: Path,
    options: CleanOptions = CleanOptions(),
) -> Path:
    """Write a cleaned copy of ``source`` to ``destination``; the source is untouched."""
    try:
        text = source.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        raise SourceReadError(f"Cannot read {source}: {exc}") from exc
    destination.parent.mkdir(parents=True, exist_ok=True)
    destination.write_text(clean_text(text, options), encoding="utf-8")
    return destination
