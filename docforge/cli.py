"""Command-line entry point for docforge."""

from __future__ import annotations

import argparse
import logging
import subprocess
import sys
import time
from pathlib import Path
from typing import Iterable, Sequence

from .config import DEFAULT_FETCH_RETRIES, DEFAULT_FETCH_TIMEOUT, BuildConfig
from .errors import ConfigurationError, DocforgeError, SourceReadError
from .fetch import PageFetcher
from .pipeline import build_pdf
from .sitemap import run_batch

logger = logging.getLogger("docforge.cli")


def _ensure_command_prefix(argv: Sequence[str], commands: Iterable[str]) -> Sequence[str]:
    if not argv:
        return argv
    first = argv[0]
    if first in commands or first in ("-h", "--help"):
        return argv
    return ("build", *argv)


def _add_shared_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--root",
        "--baseURL",
        dest="root",
        type=Path,
        default=None,
        help="Repository root (default: git top-level, else the current directory)",
    )
    parser.add_argument(
        "--exclude",
        action="append",
        default=[],
        metavar="PATTERN",
        help="Case-insensitive glob on file basenames; repeatable or comma-separated",
    )
    parser.add_argument(
        "--no-images",
        action="store_true",
        help="Replace every image with its caption (or drop it)",
    )
    parser.add_argument(
        "--keep-badges",
        action="store_true",
        help="Keep CI/coverage badge images",
    )
    parser.add_argument(
        "--keep-emoji",
        action="store_true",
        help="Keep emoji and pictograph characters",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_FETCH_TIMEOUT,
        help="Network timeout in seconds for page and sitemap fetches",
    )
    parser.add_argument(
        "--retries",
        type=int,
        default=DEFAULT_FETCH_RETRIES,
        help="Retry count for page and sitemap fetches",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )


def _add_build_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("outfile", type=Path, help="Output PDF path (must end in .pdf)")
    parser.add_argument(
        "--all",
        "--ALL",
        dest="include_all",
        action="store_true",
        help="Collect README -> docs/** -> root *.md -> remaining folders",
    )
    parser.add_argument("--intro", help="Markdown text placed before everything else")
    parser.add_argument(
        "--url-meta",
        metavar="URL",
        help="Add an intro built from the page's title and description",
    )
    parser.add_argument(
        "--url",
        dest="url_body",
        metavar="URL",
        help="Import the page's main content as a section",
    )
    parser.add_argument("--credits", help="Markdown text placed after everything else")
    _add_shared_arguments(parser)


def _add_sitemap_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--sitemap",
        required=True,
        help="Sitemap file or URL (urlset or sitemapindex)",
    )
    parser.add_argument(
        "--outdir",
        required=True,
        type=Path,
        help="Where PDFs will be written (directories created as needed)",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Only process the first N URLs",
    )
    _add_shared_arguments(parser)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Merge a tree of Markdown documents into a single PDF.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    build_parser = subparsers.add_parser(
        "build", help="Build one PDF from a repository and optional URL sections"
    )
    _add_build_arguments(build_parser)

    sitemap_parser = subparsers.add_parser(
        "sitemap", help="Build one PDF per URL listed in a sitemap"
    )
    _add_sitemap_arguments(sitemap_parser)

    argv = list(sys.argv[1:] if argv is None else argv)
    argv = list(_ensure_command_prefix(argv, subparsers.choices.keys()))
    return parser.parse_args(argv)


def default_root() -> Path:
    """The enclosing git work tree, or the current directory."""
    try:
        result = subprocess.run(
            ["git", "rev-parse", "--show-toplevel"],
            capture_output=True,
            text=True,
        )
    except OSError:
        return Path.cwd()
    if result.returncode == 0 and result.stdout.strip():
        return Path(result.stdout.strip())
    return Path.cwd()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="[%(levelname)s] %(message)s",
        force=True,
    )


def _run_build(args: argparse.Namespace) -> None:
    root = args.root or default_root()
    if not root.is_dir():
        raise SourceReadError(f"Base path not found: {root}")
    config = BuildConfig.from_environment(
        root,
        args.outfile,
        include_all=args.include_all,
        exclusions=tuple(args.exclude),
        no_images=args.no_images,
        keep_badges=args.keep_badges,
        keep_emoji=args.keep_emoji,
        intro=args.intro,
        url_meta=args.url_meta,
        url_body=args.url_body,
        credits=args.credits,
        fetch_timeout=args.timeout,
        fetch_retries=args.retries,
    )
    start = time.perf_counter()
    output = build_pdf(config)
    logger.debug("Build finished in %.2fs", time.perf_counter() - start)
    print(f"Done: {output}")


def _run_sitemap(args: argparse.Namespace) -> None:
    if args.limit is not None and args.limit < 0:
        raise ConfigurationError("--limit must be a non-negative integer")

    def template(root: Path, output_path: Path) -> BuildConfig:
        return BuildConfig.from_environment(
            root,
            output_path,
            exclusions=tuple(args.exclude),
            no_images=args.no_images,
            keep_badges=args.keep_badges,
            keep_emoji=args.keep_emoji,
            fetch_timeout=args.timeout,
            fetch_retries=args.retries,
        )

    fetcher = PageFetcher(timeout=args.timeout, retries=args.retries)
    results = run_batch(
        args.sitemap,
        args.outdir,
        template,
        base_root=args.root,
        limit=args.limit,
        fetcher=fetcher,
    )
    print(f"Done: {len(results)} PDF(s) in {Path(args.outdir).resolve()}")


def main(argv: Sequence[str] | None = None) -> None:
    args = parse_args(argv)
    _configure_logging(args.verbose)
    try:
        if args.command == "build":
            _run_build(args)
        else:
            _run_sitemap(args)
    except DocforgeError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
