"""Tests for matching.py."""

import pytest

from docforge.matching import matches, parse_patterns


class TestParsePatterns:
    def test_none_is_empty(self):
        assert parse_patterns(None) == []

    def test_single_string(self):
        assert parse_patterns("CHANGELOG.md") == ["CHANGELOG.md"]

    def test_comma_separated_and_trimmed(self):
        assert parse_patterns(" a.md , b*.md,, ") == ["a.md", "b*.md"]

    def test_repeated_values_are_flattened(self):
        assert parse_patterns(["a.md", "b.md, c.md"]) == ["a.md", "b.md", "c.md"]


class TestMatches:
    def test_star(self):
        assert matches("DRAFT_notes.md", "DRAFT*.md")

    def test_case_insensitive(self):
        assert matches("draft_notes.MD", "DRAFT*.md")
        assert matches("CHANGELOG.md", "changelog.md")

    def test_question_mark_matches_one_char(self):
        assert matches("a1.md", "a?.md")
        assert not matches("a12.md", "a?.md")

    def test_character_class(self):
        assert matches("v2.md", "v[0-9].md")
        assert not matches("vx.md", "v[0-9].md")

    def test_negated_character_class(self):
        assert matches("vx.md", "v[!0-9].md")
        assert not matches("v2.md", "v[!0-9].md")

    def test_any_pattern_excludes(self):
        assert matches("notes.md", ["README.md", "notes.md"])

    def test_empty_patterns_exclude_nothing(self):
        assert not matches("anything.md", [])
        assert not matches("anything.md", None)

    def test_match_is_anchored(self):
        assert not matches("my-notes.md.bak", "notes.md")
        assert not matches("old-notes.md", "notes.md")

    def test_regex_metacharacters_are_literal(self):
        assert matches("a+b.md", "a+b.md")
        assert not matches("aab.md", "a+b.md")

    def test_unterminated_bracket_is_literal(self):
        assert matches("[draft.md", "[draft.md")

    def test_directories_are_not_part_of_the_match(self):
        assert not matches("notes.md", "docs/notes.md")


@pytest.mark.parametrize("pattern", ["*", "*.md", "README*", "[Rr]eadme.MD"])
def test_readme_patterns(pattern):
    assert matches("README.md", pattern)
