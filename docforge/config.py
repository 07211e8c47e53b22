"""Configuration objects and constants for a docforge run."""

from __future__ import annotations

import datetime as dt
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional, Tuple

from .errors import ConfigurationError

MARKDOWN_SUFFIX = ".md"
PDF_SUFFIX = ".pdf"
DEFAULT_HIGHLIGHT_STYLE = "kate"
DEFAULT_FETCH_TIMEOUT = 30.0
DEFAULT_FETCH_RETRIES = 2
PANDOC_FROM_FORMAT = (
    "markdown+footnotes+pipe_tables+table_captions"
    "+backtick_code_blocks+autolink_bare_uris"
)

_TRUTHY = {"1", "true", "yes", "on"}


def env_flag(environ: Mapping[str, str], name: str) -> bool:
    """Interpret an environment variable as a boolean toggle."""
    return environ.get(name, "").strip().lower() in _TRUTHY


@dataclass(frozen=True)
class BuildConfig:
    """Immutable settings for a single document build."""

    source_root: Path
    output_path: Path
    include_all: bool = False
    exclusions: Tuple[str, ...] = ()
    no_images: bool = False
    keep_badges: bool = False
    keep_emoji: bool = False
    highlight_style: str = DEFAULT_HIGHLIGHT_STYLE
    title: str = ""
    author: str = ""
    date: str = ""
    intro: Optional[str] = None
    url_meta: Optional[str] = None
    url_body: Optional[str] = None
    credits: Optional[str] = None
    fetch_timeout: float = DEFAULT_FETCH_TIMEOUT
    fetch_retries: int = DEFAULT_FETCH_RETRIES
    cache_home: Optional[Path] = field(default=None, compare=False)

    def __post_init__(self) -> None:
        if self.output_path.suffix.lower() != PDF_SUFFIX:
            raise ConfigurationError(
                f"Output must end with {PDF_SUFFIX}: {self.output_path}"
            )

    @property
    def has_synthetic_sections(self) -> bool:
        return any((self.intro, self.url_meta, self.url_body, self.credits))

    @classmethod
    def from_environment(
        cls,
        source_root: Path,
        output_path: Path,
        environ: Optional[Mapping[str, str]] = None,
        **overrides,
    ) -> "BuildConfig":
        """Merge explicit options with the recognized environment toggles.

        Boolean toggles passed in ``overrides`` are OR-ed with their
        environment counterparts; metadata values given explicitly win over
        the environment.
        """
        env = os.environ if environ is None else environ
        root = Path(source_root).expanduser().resolve()
        cache = env.get("XDG_CACHE_HOME")
        values = dict(
            no_images=bool(overrides.pop("no_images", False)) or env_flag(env, "NO_IMAGES"),
            keep_badges=bool(overrides.pop("keep_badges", False)) or env_flag(env, "KEEP_BADGES"),
            keep_emoji=bool(overrides.pop("keep_emoji", False)) or env_flag(env, "KEEP_EMOJI"),
            highlight_style=overrides.pop("highlight_style", None)
            or env.get("HIGHLIGHT_STYLE")
            or DEFAULT_HIGHLIGHT_STYLE,
            title=overrides.pop("title", None)
            or env.get("TITLE")
            or f"{root.name} Documentation",
            author=overrides.pop("author", None) or env.get("AUTHOR", ""),
            date=overrides.pop("date", None)
            or env.get("DATE")
            or dt.date.today().isoformat(),
            cache_home=Path(cache).expanduser() if cache else None,
        )
        values.update(overrides)
        return cls(
            source_root=root,
            output_path=Path(output_path).expanduser().resolve(),
            **values,
        )
