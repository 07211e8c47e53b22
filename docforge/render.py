"""Hand the assembled Markdown to pandoc and the best available PDF engine."""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Mapping, Optional, Sequence, Tuple

from .config import PANDOC_FROM_FORMAT
from .errors import ConversionError, RenderError, ToolMissingError

logger = logging.getLogger("docforge")

PANDOC = "pandoc"

LATEX_HEADER = r"""\usepackage{fvextra}
\DefineVerbatimEnvironment{Highlighting}{Verbatim}{breaklines,breakanywhere,commandchars=\\\{\}}
\usepackage{graphicx}
\setkeys{Gin}{width=\linewidth,height=0.8\textheight,keepaspectratio}
"""

HTML_STYLESHEET = """body { font-family: sans-serif; line-height: 1.45; }
pre, code { white-space: pre-wrap; word-wrap: break-word; }
img { max-width: 100%; }
table { border-collapse: collapse; }
th, td { border: 1px solid #bbb; padding: 0.2em 0.5em; }
"""

Runner = Callable[..., subprocess.CompletedProcess]
Which = Callable[[str], Optional[str]]


@dataclass(frozen=True)
class Backend:
    """A PDF engine pandoc can drive.

    ``staged_command`` marks engines that cannot be pointed at pandoc's own
    temporary files: pandoc first writes a standalone ``.tex`` inside the
    source root, then this command compiles it into an engine-owned output
    directory. Placeholders ``{source}`` and ``{outdir}`` are substituted.
    """

    name: str
    executable: str
    output_format: str = "latex"
    staged_command: Optional[Tuple[str, ...]] = None

    @property
    def staged(self) -> bool:
        return self.staged_command is not None


DEFAULT_BACKENDS: Tuple[Backend, ...] = (
    Backend(
        "tectonic",
        "tectonic",
        staged_command=("tectonic", "--outdir={outdir}", "{source}"),
    ),
    Backend("wkhtmltopdf", "wkhtmltopdf", output_format="html"),
    Backend("xelatex", "xelatex"),
    Backend("pdflatex", "pdflatex"),
)


def probe_backends(
    backends: Sequence[Backend] = DEFAULT_BACKENDS,
    which: Which = shutil.which,
) -> Mapping[str, bool]:
    return {backend.name: which(backend.executable) is not None for backend in backends}


def select_backend(
    backends: Sequence[Backend],
    available: Mapping[str, bool],
) -> Optional[Backend]:
    """Return the first backend whose probe succeeded, in priority order."""
    for backend in backends:
        if available.get(backend.name):
            return backend
    return None


@dataclass
class RenderRequest:
    """Everything the render step needs, resolved up front."""

    markdown_path: Path
    output_path: Path
    source_root: Path
    work_dir: Path
    resource_paths: Sequence[Path]
    highlight_style: str
    cache_home: Optional[Path] = None


def _run(cmd: List[str], cwd: Path, runner: Runner) -> subprocess.CompletedProcess:
    logger.debug("Running %s", " ".join(cmd))
    return runner(cmd, cwd=str(cwd), capture_output=True, text=True)


def _describe_failure(result: subprocess.CompletedProcess) -> str:
    detail = (result.stderr or result.stdout or "").strip()
    return f"exit {result.returncode}" + (f": {detail}" if detail else "")


def _pandoc_args(request: RenderRequest, backend: Optional[Backend]) -> List[str]:
    args = [
        PANDOC,
        f"--from={PANDOC_FROM_FORMAT}",
        "--resource-path=" + os.pathsep.join(str(p) for p in request.resource_paths),
        f"--highlight-style={request.highlight_style}",
    ]
    if backend is not None and backend.output_format == "html":
        stylesheet = request.work_dir / "docforge.css"
        stylesheet.write_text(HTML_STYLESHEET, encoding="utf-8")
        args.append(f"--css={stylesheet}")
    else:
        header = request.work_dir / "docforge-header.tex"
        header.write_text(LATEX_HEADER, encoding="utf-8")
        args.extend(["-H", str(header)])
    return args


def _ensure_output(path: Path) -> Path:
    if not path.is_file() or path.stat().st_size == 0:
        raise RenderError(f"PDF engine produced no output at {path}")
    return path


def _render_direct(
    request: RenderRequest, backend: Optional[Backend], runner: Runner
) -> Path:
    cmd = _pandoc_args(request, backend)
    if backend is not None:
        cmd.append(f"--pdf-engine={backend.executable}")
    cmd.extend(["-o", str(request.output_path), str(request.markdown_path)])
    result = _run(cmd, request.source_root, runner)
    if result.returncode != 0:
        raise RenderError(f"pandoc failed ({_describe_failure(result)})")
    return _ensure_output(request.output_path)


def _render_staged(request: RenderRequest, backend: Backend, runner: Runner) -> Path:
    pid = os.getpid()
    tex_path = request.source_root / f".docforge-{pid}.tex"
    cache_home = request.cache_home or Path.home() / ".cache"
    out_dir = cache_home / f"docforge-tex-{pid}"
    try:
        out_dir.mkdir(parents=True, exist_ok=True)
        cmd = _pandoc_args(request, backend)
        cmd.extend(
            ["--to=latex", "--standalone", "-o", str(tex_path), str(request.markdown_path)]
        )
        result = _run(cmd, request.source_root, runner)
        if result.returncode != 0:
            raise ConversionError(f"pandoc LaTeX conversion failed ({_describe_failure(result)})")

        compile_cmd = [
            part.format(source=tex_path, outdir=out_dir)
            for part in backend.staged_command or ()
        ]
        result = _run(compile_cmd, request.source_root, runner)
        if result.returncode != 0:
            raise RenderError(f"{backend.name} failed ({_describe_failure(result)})")

        produced = _ensure_output(out_dir / f"{tex_path.stem}.pdf")
        shutil.move(str(produced), str(request.output_path))
        return request.output_path
    finally:
        tex_path.unlink(missing_ok=True)
        shutil.rmtree(out_dir, ignore_errors=True)


def render(
    request: RenderRequest,
    backends: Sequence[Backend] = DEFAULT_BACKENDS,
    which: Which = shutil.which,
    runner: Runner = subprocess.run,
) -> Path:
    """Render ``request.markdown_path`` to ``request.output_path``.

    The first installed backend wins. With none installed a warning is
    logged and pandoc's default engine is tried anyway.
    """
    if which(PANDOC) is None:
        raise ToolMissingError(
            "pandoc is required. Install: sudo apt-get install -y pandoc"
        )
    backend = select_backend(backends, probe_backends(backends, which))
    if backend is None:
        logger.warning(
            "No PDF engine found (%s). Pandoc may fail.",
            "/".join(b.name for b in backends),
        )
    logger.info(
        "Building PDF -> %s (engine: %s)",
        request.output_path,
        backend.name if backend else "<pandoc default>",
    )
    request.output_path.parent.mkdir(parents=True, exist_ok=True)
    if backend is not None and backend.staged:
        return _render_staged(request, backend, runner)
    return _render_direct(request, backend, runner)
