"""Utility helpers for string normalization and path handling."""

from __future__ import annotations

import re

UNSAFE_CHAR_PATTERN = re.compile(r"[^\w.-]", re.UNICODE)


def sanitize_segment(value: str) -> str:
    """Reduce a path segment to letters, digits, ``-``, ``.`` and ``_``."""
    cleaned = UNSAFE_CHAR_PATTERN.sub("_", value.strip())
    while "__" in cleaned:
        cleaned = cleaned.replace("__", "_")
    return cleaned.strip("._")


def sanitize_filename(text: str | None, fallback: str = "page") -> str:
    """Turn a page title into a file base name; whitespace becomes ``_``."""
    joined = "_".join((text or "").split())
    return sanitize_segment(joined) or sanitize_segment(fallback) or "page"
