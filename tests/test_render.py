"""Tests for render.py."""

import subprocess
from pathlib import Path

import pytest

from docforge.errors import ConversionError, RenderError, ToolMissingError
from docforge.render import (
    DEFAULT_BACKENDS,
    Backend,
    RenderRequest,
    probe_backends,
    render,
    select_backend,
)


def _which(*installed):
    names = {"pandoc", *installed}
    return lambda exe: f"/usr/bin/{exe}" if exe in names else None


class FakeRunner:
    """Records commands and fakes the files each tool would write."""

    def __init__(self, fail_on=None, write_output=True):
        self.calls = []
        self.fail_on = fail_on
        self.write_output = write_output

    def __call__(self, cmd, cwd=None, capture_output=False, text=False):
        self.calls.append((list(cmd), cwd))
        if self.fail_on and cmd[0] == self.fail_on:
            return subprocess.CompletedProcess(cmd, 43, stdout="", stderr="boom")
        if self.write_output:
            self._write_artifact(cmd)
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

    @staticmethod
    def _write_artifact(cmd):
        if cmd[0] == "pandoc":
            Path(cmd[cmd.index("-o") + 1]).write_bytes(b"%PDF-1.5 or tex")
        elif cmd[0] == "tectonic":
            outdir = Path(cmd[1].split("=", 1)[1])
            source = Path(cmd[2])
            (outdir / f"{source.stem}.pdf").write_bytes(b"%PDF-1.5")


@pytest.fixture
def request_(tmp_path):
    root = tmp_path / "repo"
    work = tmp_path / "work"
    root.mkdir()
    work.mkdir()
    md = work / "_all.md"
    md.write_text("# Doc\n", encoding="utf-8")
    return RenderRequest(
        markdown_path=md,
        output_path=tmp_path / "out" / "doc.pdf",
        source_root=root,
        work_dir=work,
        resource_paths=[root, root / "docs"],
        highlight_style="kate",
        cache_home=tmp_path / "cache",
    )


class TestSelection:
    def test_priority_order(self):
        available = {"tectonic": False, "wkhtmltopdf": True, "xelatex": True, "pdflatex": True}
        assert select_backend(DEFAULT_BACKENDS, available).name == "wkhtmltopdf"

    def test_tectonic_preferred(self):
        available = {b.name: True for b in DEFAULT_BACKENDS}
        assert select_backend(DEFAULT_BACKENDS, available).name == "tectonic"

    def test_none_available(self):
        assert select_backend(DEFAULT_BACKENDS, {}) is None

    def test_probe_uses_which(self):
        result = probe_backends(DEFAULT_BACKENDS, _which("xelatex"))
        assert result == {
            "tectonic": False,
            "wkhtmltopdf": False,
            "xelatex": True,
            "pdflatex": False,
        }

    def test_only_tectonic_is_staged(self):
        assert [b.name for b in DEFAULT_BACKENDS if b.staged] == ["tectonic"]


class TestDirectRender:
    def test_latex_engine(self, request_):
        runner = FakeRunner()
        result = render(request_, which=_which("xelatex"), runner=runner)
        assert result == request_.output_path
        (cmd, cwd), = runner.calls
        assert cmd[0] == "pandoc"
        assert "--pdf-engine=xelatex" in cmd
        assert "--highlight-style=kate" in cmd
        assert "-H" in cmd
        assert cwd == str(request_.source_root)
        resource = next(a for a in cmd if a.startswith("--resource-path="))
        assert str(request_.source_root / "docs") in resource

    def test_html_engine_gets_stylesheet(self, request_):
        runner = FakeRunner()
        render(request_, which=_which("wkhtmltopdf"), runner=runner)
        (cmd, _), = runner.calls
        assert "--pdf-engine=wkhtmltopdf" in cmd
        css = next(a for a in cmd if a.startswith("--css="))
        assert Path(css.split("=", 1)[1]).is_file()
        assert "-H" not in cmd

    def test_no_engine_falls_back_to_pandoc_default(self, request_, caplog):
        runner = FakeRunner()
        render(request_, which=_which(), runner=runner)
        (cmd, _), = runner.calls
        assert not any(a.startswith("--pdf-engine") for a in cmd)
        assert "No PDF engine found" in caplog.text

    def test_pandoc_missing(self, request_):
        with pytest.raises(ToolMissingError):
            render(request_, which=lambda exe: None, runner=FakeRunner())

    def test_non_zero_exit(self, request_):
        with pytest.raises(RenderError, match="boom"):
            render(request_, which=_which("xelatex"), runner=FakeRunner(fail_on="pandoc"))

    def test_missing_output(self, request_):
        with pytest.raises(RenderError):
            render(request_, which=_which("xelatex"), runner=FakeRunner(write_output=False))


class TestStagedRender:
    def test_two_step_and_relocation(self, request_):
        request_.output_path.parent.mkdir(parents=True)
        runner = FakeRunner()
        result = render(request_, which=_which("tectonic"), runner=runner)
        assert result.read_bytes() == b"%PDF-1.5"
        (pandoc_cmd, _), (engine_cmd, _) = runner.calls
        assert "--to=latex" in pandoc_cmd and "--standalone" in pandoc_cmd
        tex = Path(pandoc_cmd[pandoc_cmd.index("-o") + 1])
        assert tex.parent == request_.source_root
        assert engine_cmd[0] == "tectonic"
        assert engine_cmd[1].startswith(f"--outdir={request_.cache_home}")

    def test_intermediates_removed_on_success(self, request_):
        render(request_, which=_which("tectonic"), runner=FakeRunner())
        assert list(request_.source_root.iterdir()) == []
        assert list(request_.cache_home.iterdir()) == []

    def test_intermediates_removed_on_engine_failure(self, request_):
        with pytest.raises(RenderError):
            render(request_, which=_which("tectonic"), runner=FakeRunner(fail_on="tectonic"))
        assert list(request_.source_root.iterdir()) == []
        assert list(request_.cache_home.iterdir()) == []

    def test_conversion_failure(self, request_):
        with pytest.raises(ConversionError):
            render(request_, which=_which("tectonic"), runner=FakeRunner(fail_on="pandoc"))
        assert list(request_.source_root.iterdir()) == []

    def test_custom_staged_backend(self, request_):
        backend = Backend("lualatex-staged", "latexmk", staged_command=("latexmk", "-outdir={outdir}", "{source}"))
        runner = FakeRunner(write_output=False)
        with pytest.raises(RenderError):
            render(request_, backends=[backend], which=_which("latexmk"), runner=runner)
        assert runner.calls[1][0][1].startswith("-outdir=")
