"""Shared test fixtures."""

import pytest


def write(path, content=""):
    """Write a file, creating parent dirs as needed."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


@pytest.fixture
def tmp_repo(tmp_path):
    """Create a temporary directory acting as a repo root."""
    root = tmp_path / "repo"
    root.mkdir()
    return root
