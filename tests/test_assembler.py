"""Tests for assembler.py."""

import pytest

from docforge.assembler import (
    PAGE_BREAK,
    assemble,
    format_url_body,
    format_url_meta,
    join_sections,
    text_section,
    write_document,
)
from docforge.errors import EmptyResultError
from docforge.models import PageMetadata, Section, SectionKind


def _section(kind, text, tmp_path):
    return Section(kind=kind, text=text, base_dir=tmp_path)


class TestAssemble:
    def test_fixed_order(self, tmp_path):
        files = [
            _section(SectionKind.DOCUMENT, "a", tmp_path),
            _section(SectionKind.DOCUMENT, "b", tmp_path),
        ]
        result = assemble(
            intro=_section(SectionKind.INTRO, "intro", tmp_path),
            url_meta=_section(SectionKind.URL_META, "meta", tmp_path),
            url_body=_section(SectionKind.URL_BODY, "body", tmp_path),
            files=files,
            credits=_section(SectionKind.CREDITS, "credits", tmp_path),
        )
        assert [s.text for s in result] == ["intro", "meta", "body", "a", "b", "credits"]

    def test_absent_sections_skipped(self, tmp_path):
        result = assemble(
            intro=None,
            url_meta=None,
            url_body=_section(SectionKind.URL_BODY, "body", tmp_path),
            files=[],
            credits=_section(SectionKind.CREDITS, "credits", tmp_path),
        )
        assert [s.kind for s in result] == [SectionKind.URL_BODY, SectionKind.CREDITS]

    def test_empty_raises(self):
        with pytest.raises(EmptyResultError):
            assemble(None, None, None, [], None)

    def test_intro_alone_is_one_section(self, tmp_path):
        intro = text_section(SectionKind.INTRO, "Hello", tmp_path)
        assert len(assemble(intro, None, None, [], None)) == 1


class TestTextSection:
    def test_blank_is_absent(self, tmp_path):
        assert text_section(SectionKind.INTRO, "  \n", tmp_path) is None
        assert text_section(SectionKind.INTRO, None, tmp_path) is None

    def test_text_kept(self, tmp_path):
        section = text_section(SectionKind.CREDITS, "Thanks", tmp_path)
        assert section.kind is SectionKind.CREDITS
        assert section.base_dir == tmp_path


class TestJoinSections:
    def test_breaks_only_between(self):
        joined = join_sections(["one", "two", "three"])
        assert joined.count(PAGE_BREAK) == 2
        assert not joined.startswith(PAGE_BREAK)
        assert joined.endswith("three\n")

    def test_single_section_has_no_break(self):
        assert join_sections(["only\n\n"]) == "only\n"

    def test_marker_breaks_html_and_latex(self):
        assert "page-break-after: always" in PAGE_BREAK
        assert "\\newpage" in PAGE_BREAK


class TestFormatting:
    def test_url_meta_full(self):
        metadata = PageMetadata(
            source_url="https://example.com/post",
            title="A Post",
            description="About things.",
        )
        assert format_url_meta(metadata) == (
            "# A Post\n\nAbout things.\n\nSource: <https://example.com/post>\n"
        )

    def test_url_meta_without_title_uses_url(self):
        metadata = PageMetadata(source_url="https://example.com/", title=None, description=None)
        assert format_url_meta(metadata) == (
            "# https://example.com/\n\nSource: <https://example.com/>\n"
        )

    def test_url_body_heading_and_attribution(self):
        text = format_url_body("https://docs.example.com/a/b", "\nHello\n")
        assert text == (
            "# Imported from `docs.example.com`\n\n"
            "Source: <https://docs.example.com/a/b>\n\n"
            "Hello\n"
        )


class TestWriteDocument:
    def test_front_matter_and_body(self, tmp_path):
        dest = write_document(
            tmp_path / "out" / "_all.md",
            ["# One", "# Two"],
            title='My "Repo"',
            author="Ada",
            date="2024-01-02",
        )
        content = dest.read_text(encoding="utf-8")
        assert content.startswith('---\ntitle: "My \\"Repo\\""\nauthor: "Ada"\ndate: "2024-01-02"\n')
        assert "toc: true\ntoc-depth: 3\nnumbersections: true\n---\n\n# One" in content
        assert content.endswith("# Two\n")
        assert content.count(PAGE_BREAK) == 1
