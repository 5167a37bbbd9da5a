"""Shared pytest fixtures for docschema tests."""

import textwrap
from pathlib import Path

import pytest
from docschema import AstCache, DocSchemaParser, DocSchemaValidator


@pytest.fixture
def parser():
    """Parser with its own cache so tests never see each other's files."""
    return DocSchemaParser(cache=AstCache())


@pytest.fixture
def validator():
    return DocSchemaValidator()


@pytest.fixture
def schema(parser):
    """
    Parse a source snippet and return its last comment block.

    Earlier blocks in the same snippet are visible to it as local typedefs.
    """

    def _schema(code: str):
        asts = parser.parse_comments(textwrap.dedent(code))
        assert asts, "snippet has no comment blocks"
        return asts[-1]

    return _schema


@pytest.fixture
def make_source_tree(tmp_path):
    """
    Factory that writes JS files below tmp_path.

    Usage:
        root = make_source_tree({"main.js": "...", "types/a.js": "..."})
    """

    def _make(files: dict[str, str]) -> Path:
        for name, content in files.items():
            path = tmp_path / name
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(textwrap.dedent(content), encoding="utf-8")
        return tmp_path

    return _make
