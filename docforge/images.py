"""Image reference resolution applied to each section before rendering."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple, Union

from .collector import is_pruned

logger = logging.getLogger("docforge")

IMAGE_SUFFIXES = {
    ".png",
    ".jpg",
    ".jpeg",
    ".gif",
    ".bmp",
    ".tif",
    ".tiff",
    ".webp",
    ".svg",
    ".pdf",
    ".eps",
}

IMAGE_PATTERN = re.compile(
    r"!\[(?P<alt>(?:[^\[\]]|\[[^\]]*\])*)\]"
    r"\(\s*(?P<target><[^>]*>|[^)\s]+)(?P<title>\s+(?:\"[^\"]*\"|'[^']*'|\([^)]*\)))?\s*\)"
    r"(?P<attrs>\{[^}\n]*\})?"
)
HTML_IMAGE_TAG_PATTERN = re.compile(r"<img\b[^>]*>", re.IGNORECASE)
FENCE_PATTERN = re.compile(r"^[ ]{0,3}(?P<fence>`{3,}|~{3,})")
INDENTED_CODE_PATTERN = re.compile(r"^(?: {4}|\t)")
LIST_ITEM_PATTERN = re.compile(r"^[ ]{0,3}(?:[-*+]|\d{1,9}[.)])(?:[ \t]|$)")
CODE_SPAN_PATTERN = re.compile(
    r"(?<!`)(?P<ticks>`+)(?!`)(?:(?!\n[ \t]*\n).)+?(?<!`)(?P=ticks)(?!`)", re.DOTALL
)

# Reference-style images: full ![alt][ref], collapsed ![alt][] and shortcut ![alt].
REFERENCE_IMAGE_PATTERN = re.compile(
    r"!\[(?P<alt>(?:[^\[\]]|\[[^\]]*\])*)\]"
    r"(?:\[(?P<ref>[^\[\]]*)\]|(?![(\[]))"
    r"(?P<attrs>\{[^}\n]*\})?"
)
DEFINITION_PATTERN = re.compile(
    r"^[ ]{0,3}\[(?!\^)(?P<label>[^\[\]]+)\]:[ \t]*(?P<target><[^>\n]*>|\S+)"
    r"(?P<title>[ \t]+(?:\"[^\"\n]*\"|'[^'\n]*'|\([^)\n]*\)))?[ \t]*(?:\n|$)",
    re.MULTILINE,
)
LABEL_PATTERN = re.compile(r"\[(?P<label>[^\[\]]+)\](?![:(])")


@dataclass(frozen=True)
class UseLocalPath:
    path: Path


@dataclass(frozen=True)
class UseCaption:
    text: str


@dataclass(frozen=True)
class Drop:
    pass


Resolution = Union[UseLocalPath, UseCaption, Drop]
Chunk = Tuple[bool, str]


def is_remote(reference: str) -> bool:
    return reference.strip().lower().startswith(("http://", "https://"))


def _fallback(caption: Optional[str]) -> Resolution:
    caption = (caption or "").strip()
    return UseCaption(caption) if caption else Drop()


def resolve(
    reference: str,
    search_paths: Sequence[Path],
    caption: Optional[str] = None,
    render_dir: Optional[Path] = None,
    no_images: bool = False,
) -> Resolution:
    """Decide what happens to a single image reference.

    Remote URLs are never fetched. Local references are tried relative to
    ``render_dir`` first, then under each of ``search_paths`` in order;
    the first regular file wins.
    """
    if no_images or is_remote(reference):
        return _fallback(caption)

    candidate = Path(reference)
    if candidate.is_absolute():
        if candidate.is_file():
            return UseLocalPath(candidate)
        return _fallback(caption)

    base = render_dir if render_dir is not None else Path.cwd()
    if (base / candidate).is_file():
        return UseLocalPath(base / candidate)

    for directory in search_paths:
        path = directory / candidate
        if path.is_file():
            return UseLocalPath(path)

    logger.debug("Unresolved image reference %s", reference)
    return _fallback(caption)


def build_search_paths(source_root: Path) -> List[Path]:
    """Return the root plus every image-holding directory and its parent."""
    root = Path(source_root).resolve()
    found: Dict[Path, None] = {root: None}
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if not is_pruned(d))
        if any(Path(name).suffix.lower() in IMAGE_SUFFIXES for name in filenames):
            directory = Path(dirpath)
            found.setdefault(directory, None)
            found.setdefault(directory.parent, None)
    return list(found)


def _unescape_target(target: str) -> str:
    if target.startswith("<") and target.endswith(">"):
        target = target[1:-1]
    return target.strip()


def _label(value: str) -> str:
    return " ".join(value.split()).casefold()


def _replacement(
    resolution: Resolution,
    alt: str,
    title: Optional[str] = None,
    attrs: Optional[str] = None,
) -> str:
    if isinstance(resolution, UseLocalPath):
        return f"![{alt}](<{resolution.path.as_posix()}>{title or ''}){attrs or ''}"
    if isinstance(resolution, UseCaption):
        return f"*{resolution.text}*"
    return ""


def _rewrite_prose(
    text: str,
    resolver: Callable[[str, str], Resolution],
    definitions: Dict[str, "re.Match[str]"],
    consumed: Set[str],
) -> str:
    def replace_inline(match: "re.Match[str]") -> str:
        target = _unescape_target(match.group("target"))
        return _replacement(
            resolver(target, match.group("alt")),
            match.group("alt"),
            match.group("title"),
            match.group("attrs"),
        )

    def replace_reference(match: "re.Match[str]") -> str:
        label = _label((match.group("ref") or "").strip() or match.group("alt"))
        definition = definitions.get(label)
        if definition is None:
            return match.group(0)
        consumed.add(label)
        target = _unescape_target(definition.group("target"))
        return _replacement(
            resolver(target, match.group("alt")),
            match.group("alt"),
            definition.group("title"),
            match.group("attrs"),
        )

    text = IMAGE_PATTERN.sub(replace_inline, text)
    text = REFERENCE_IMAGE_PATTERN.sub(replace_reference, text)
    return HTML_IMAGE_TAG_PATTERN.sub("", text)


def _closes_fence(fence: str, match: Optional["re.Match[str]"], line: str) -> bool:
    if match is None:
        return False
    run = match.group("fence")
    return run[0] == fence[0] and len(run) >= len(fence) and line.strip() == run


def _flush(chunks: List[Chunk], buffer: List[str], is_code: bool) -> None:
    if buffer:
        chunks.append((is_code, "".join(buffer)))
        buffer.clear()


def _split_blocks(text: str) -> List[Chunk]:
    """Split into (is_code, chunk) runs of prose, fenced and indented code.

    An indented line opens a code block only after a blank line and
    outside a list, where the indentation continues the list item.
    """
    chunks: List[Chunk] = []
    buffer: List[str] = []
    mode = "prose"
    fence = ""
    previous_blank = True
    in_list = False
    for line in text.splitlines(keepends=True):
        blank = not line.strip()
        if mode == "fence":
            buffer.append(line)
            if _closes_fence(fence, FENCE_PATTERN.match(line), line):
                _flush(chunks, buffer, True)
                mode = "prose"
                previous_blank = False
            continue
        if mode == "indent":
            if blank or INDENTED_CODE_PATTERN.match(line):
                buffer.append(line)
                previous_blank = blank
                continue
            _flush(chunks, buffer, True)
            mode = "prose"

        match = FENCE_PATTERN.match(line)
        if match:
            _flush(chunks, buffer, False)
            buffer.append(line)
            fence = match.group("fence")
            mode = "fence"
            continue
        if previous_blank and not in_list and INDENTED_CODE_PATTERN.match(line):
            _flush(chunks, buffer, False)
            buffer.append(line)
            mode = "indent"
            previous_blank = False
            continue

        if LIST_ITEM_PATTERN.match(line):
            in_list = True
        elif not blank and not INDENTED_CODE_PATTERN.match(line):
            in_list = False
        buffer.append(line)
        previous_blank = blank
    _flush(chunks, buffer, mode != "prose")
    return chunks


def _split_code_spans(text: str) -> List[Chunk]:
    chunks: List[Chunk] = []
    last = 0
    for match in CODE_SPAN_PATTERN.finditer(text):
        if match.start() > last:
            chunks.append((False, text[last : match.start()]))
        chunks.append((True, match.group(0)))
        last = match.end()
    if last < len(text):
        chunks.append((False, text[last:]))
    return chunks


def split_code(text: str) -> List[Chunk]:
    """Split ``text`` so that code blocks and code spans are separate chunks."""
    chunks: List[Chunk] = []
    for is_code, chunk in _split_blocks(text):
        if is_code:
            chunks.append((True, chunk))
        else:
            chunks.extend(_split_code_spans(chunk))
    return chunks


def rewrite_images(
    text: str,
    search_paths: Sequence[Path],
    render_dir: Optional[Path] = None,
    no_images: bool = False,
) -> str:
    """Rewrite every Markdown image in ``text`` and drop raw ``<img>`` tags.

    Inline and reference-style images are both resolved. Resolved images
    point at absolute paths, unresolved or remote ones become their
    emphasized alt text or disappear. Reference definitions left without
    any use are removed. Code blocks and code spans are skipped.
    """

    def resolver(target: str, alt: str) -> Resolution:
        return resolve(
            target,
            search_paths,
            caption=alt,
            render_dir=render_dir,
            no_images=no_images,
        )

    chunks = split_code(text)
    definitions: Dict[str, "re.Match[str]"] = {}
    for is_code, chunk in chunks:
        if not is_code:
            for match in DEFINITION_PATTERN.finditer(chunk):
                definitions.setdefault(_label(match.group("label")), match)

    consumed: Set[str] = set()
    chunks = [
        (is_code, chunk if is_code else _rewrite_prose(chunk, resolver, definitions, consumed))
        for is_code, chunk in chunks
    ]
    if consumed:
        used = {
            _label(match.group("label"))
            for is_code, chunk in chunks
            if not is_code
            for match in LABEL_PATTERN.finditer(chunk)
        }
        stale = consumed - used

        def drop_stale(match: "re.Match[str]") -> str:
            return "" if _label(match.group("label")) in stale else match.group(0)

        chunks = [
            (is_code, chunk if is_code else DEFINITION_PATTERN.sub(drop_stale, chunk))
            for is_code, chunk in chunks
        ]
    return "".join(chunk for _, chunk in chunks)
