"""Tag vocabulary: parse ``*.tags`` sources into an immutable snapshot."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from typing import TYPE_CHECKING

from tagrules.errors import FileError, TagParseError

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

TAGS_EXTENSION = ".tags"
DEFAULT_TAGS_PATTERN = "*.tags"


# ---------------------------------------------------------------------------
# Vocabulary snapshot
# ---------------------------------------------------------------------------


class Vocabulary(Mapping[str, frozenset[str]]):
    """Read-only mapping of lowercase tag name to its allowed values.

    Lookups are case-insensitive.  A vocabulary is never changed in place:
    :meth:`merged` returns a new snapshot, so callers holding the old one
    keep seeing a consistent set of tags.
    """

    __slots__ = ("_tags",)

    def __init__(self, tags: Mapping[str, Iterable[str]] | None = None) -> None:
        normalized: dict[str, frozenset[str]] = {}
        for name, values in (tags or {}).items():
            key = name.lower()
            lowered = frozenset(v.lower() for v in values)
            normalized[key] = normalized.get(key, frozenset()) | lowered
        self._tags = normalized

    def __getitem__(self, name: str) -> frozenset[str]:
        return self._tags[name.lower()]

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._tags

    def __iter__(self) -> Iterator[str]:
        return iter(self._tags)

    def __len__(self) -> int:
        return len(self._tags)

    def __repr__(self) -> str:
        return f"Vocabulary({dict(sorted(self._tags.items()))!r})"

    def allows(self, name: str, value: str) -> bool:
        """Return True if *value* is an allowed value of tag *name*."""
        values = self._tags.get(name.lower())
        return values is not None and value.lower() in values

    def merged(self, name: str, values: Iterable[str]) -> Vocabulary:
        """Return a new vocabulary with *values* added to tag *name*."""
        tags = dict(self._tags)
        key = name.lower()
        tags[key] = tags.get(key, frozenset()) | frozenset(v.lower() for v in values)
        return Vocabulary(tags)


# ---------------------------------------------------------------------------
# Line-level parsing
# ---------------------------------------------------------------------------


def is_blank_or_comment(line: str) -> bool:
    """Return True for lines that carry no tag definition."""
    stripped = line.strip()
    return not stripped or stripped.startswith("#")


def _has_whitespace(text: str) -> bool:
    return any(ch.isspace() for ch in text)


def parse_tag_line(line: str) -> tuple[str, list[str]]:
    """Parse ``- name: value, value`` into a lowercase name and values.

    Raises :class:`TagParseError` when the line does not follow the format.
    """
    colon_count = line.count(":")
    if colon_count == 0:
        msg = f"Tag line is missing ':' separator: {line.strip()!r}"
        raise TagParseError(msg)
    if colon_count > 1:
        msg = f"Tag line contains more than one ':': {line.strip()!r}"
        raise TagParseError(msg)

    name_part, values_part = line.split(":")
    name_part = name_part.strip()
    if not name_part.startswith("-"):
        msg = f"Tag name must start with '-': {line.strip()!r}"
        raise TagParseError(msg)

    name = name_part[1:].strip()
    if not name:
        msg = f"Tag name cannot be empty: {line.strip()!r}"
        raise TagParseError(msg)
    if _has_whitespace(name):
        msg = f"Tag name '{name}' cannot contain whitespace"
        raise TagParseError(msg)
    if name.startswith("-"):
        msg = f"Tag name '{name}' cannot start with '-'"
        raise TagParseError(msg)

    if not values_part.strip():
        msg = f"Tag '{name}' must have at least one value"
        raise TagParseError(msg)

    values: list[str] = []
    for raw in values_part.split(","):
        value = raw.strip()
        if not value:
            msg = f"Tag '{name}' has an empty value: {line.strip()!r}"
            raise TagParseError(msg)
        if _has_whitespace(value):
            msg = f"Tag value '{value}' cannot contain whitespace"
            raise TagParseError(msg)
        if value.startswith("-"):
            msg = f"Tag value '{value}' cannot start with '-'"
            raise TagParseError(msg)
        values.append(value.lower())

    return name.lower(), values


def format_tag_line(name: str, values: Iterable[str]) -> str:
    """Render a tag definition in the ``*.tags`` line format."""
    return f"- {name.lower()}: {', '.join(values)}"


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def _accumulate(tags: dict[str, set[str]], text: str, origin: str) -> None:
    for lineno, line in enumerate(text.splitlines(), start=1):
        if is_blank_or_comment(line):
            continue
        try:
            name, values = parse_tag_line(line)
        except TagParseError as exc:
            msg = f"{origin}:{lineno}: {exc}"
            raise TagParseError(msg) from exc
        tags.setdefault(name, set()).update(values)


def load(sources: Iterable[str]) -> Vocabulary:
    """Build a vocabulary from the text of one or more tag sources.

    Tags that appear more than once have their values merged.
    """
    tags: dict[str, set[str]] = {}
    for index, source in enumerate(sources, start=1):
        _accumulate(tags, source, f"<source {index}>")
    return Vocabulary(tags)


def load_tags(directory: Path, pattern: str = DEFAULT_TAGS_PATTERN) -> Vocabulary:
    """Load every file matching *pattern* inside *directory*.

    A missing directory yields an empty vocabulary.
    """
    tags: dict[str, set[str]] = {}
    paths = sorted(directory.glob(pattern))
    for path in paths:
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            msg = f"Cannot read tag file {path}: {exc}"
            raise FileError(msg) from exc
        _accumulate(tags, text, path.name)

    vocabulary = Vocabulary(tags)
    logger.debug("Loaded %d tags from %d file(s) in %s", len(vocabulary), len(paths), directory)
    return vocabulary
