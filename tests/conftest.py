"""Shared test fixtures for tagrules."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from tagrules.vocabulary import Vocabulary

if TYPE_CHECKING:
    from pathlib import Path

TAGS_TEXT = (
    "# Test tags\n"
    "- colour: red, blue, green\n"
    "- shape: circle, square, rectangle\n"
    "- size: small, medium, large\n"
)


@pytest.fixture()
def vocabulary() -> Vocabulary:
    """Vocabulary with colour, shape and size tags."""
    return Vocabulary(
        {
            "colour": ["red", "blue", "green"],
            "shape": ["circle", "square", "rectangle"],
            "size": ["small", "medium", "large"],
        }
    )


@pytest.fixture()
def config_dir(tmp_path: Path) -> Path:
    """Create a config directory holding one tags file."""
    directory = tmp_path / "config"
    directory.mkdir()
    (directory / "shapes.tags").write_text(TAGS_TEXT, encoding="utf-8")
    return directory
