"""Read and append tag, rule and object definition files.

Writers are append-only: they never remove an existing definition.  Target
file names get their extension appended when it is missing and the target
directory is created on demand.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import TYPE_CHECKING

import yaml

from tagrules.engine.normalizer import compile_rule
from tagrules.errors import FileError, ObjectParseError, RuleParseError, TagParseError
from tagrules.objects import OBJECTS_EXTENSION, read_object_file
from tagrules.vocabulary import (
    TAGS_EXTENSION,
    format_tag_line,
    is_blank_or_comment,
    parse_tag_line,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping
    from pathlib import Path

    from tagrules.vocabulary import Vocabulary

logger = logging.getLogger(__name__)

RULES_EXTENSION = ".rules"
DEFAULT_RULES_PATTERN = "*.rules"

_RESERVED_TAG_CHARS = frozenset(":,")


@dataclass(frozen=True)
class RuleSource:
    """A rule line as stored on disk."""

    text: str
    origin: Path
    line: int
    # origin relative to the rules directory, without extension
    source_name: str = ""

    @property
    def rule_id(self) -> str:
        return f"{self.source_name or self.origin.stem}:{self.line}"


# ---------------------------------------------------------------------------
# File helpers
# ---------------------------------------------------------------------------


def normalise_filename(file_name: str, extension: str) -> str:
    """Append *extension* to *file_name* unless it already ends with it."""
    return file_name if file_name.endswith(extension) else f"{file_name}{extension}"


def _target_path(directory: Path, file_name: str, extension: str) -> Path:
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        msg = f"Cannot create directory {directory}: {exc}"
        raise FileError(msg) from exc
    return directory / normalise_filename(file_name, extension)


def _read_lines(path: Path) -> list[str]:
    if not path.exists():
        return []
    try:
        return path.read_text(encoding="utf-8").splitlines()
    except (OSError, UnicodeDecodeError) as exc:
        msg = f"Cannot read {path}: {exc}"
        raise FileError(msg) from exc


def _write_text(path: Path, text: str) -> None:
    try:
        path.write_text(text, encoding="utf-8")
    except OSError as exc:
        msg = f"Cannot write {path}: {exc}"
        raise FileError(msg) from exc


def _write_lines(path: Path, lines: list[str]) -> None:
    _write_text(path, "\n".join(lines) + "\n")


# ---------------------------------------------------------------------------
# Tags
# ---------------------------------------------------------------------------


def _check_tag_word(word: str, what: str) -> None:
    if not word:
        msg = f"{what} cannot be empty"
        raise TagParseError(msg)
    if any(ch.isspace() for ch in word):
        msg = f"{what} '{word}' cannot contain whitespace"
        raise TagParseError(msg)
    if any(ch in _RESERVED_TAG_CHARS for ch in word):
        msg = f"{what} '{word}' cannot contain ':' or ','"
        raise TagParseError(msg)
    if word.startswith("-"):
        msg = f"{what} '{word}' cannot start with '-'"
        raise TagParseError(msg)


def as_value_list(values: str | Iterable[str]) -> list[str]:
    """Return *values* as a list; a bare string is a single value."""
    if isinstance(values, str):
        return [values]
    return list(values)


def check_tag_arguments(name: str, values: str | Iterable[str]) -> tuple[str, list[str]]:
    """Validate a tag name and values for writing; return them trimmed."""
    tag_name = name.strip()
    _check_tag_word(tag_name, "Tag name")

    tag_values = [v.strip() for v in as_value_list(values)]
    if not tag_values:
        msg = f"Tag '{tag_name}' must have at least one value"
        raise TagParseError(msg)
    for value in tag_values:
        _check_tag_word(value, "Tag value")
    return tag_name.lower(), tag_values


def _unique_new_values(values: list[str], existing: Iterable[str]) -> list[str]:
    seen = {v.lower() for v in existing}
    fresh: list[str] = []
    for value in values:
        if value.lower() not in seen:
            seen.add(value.lower())
            fresh.append(value)
    return fresh


def write_tag(
    directory: Path, file_name: str, name: str, values: str | Iterable[str]
) -> Path:
    """Add *values* to tag *name* in a ``.tags`` file, creating the tag if absent.

    Values the tag already has are skipped, so repeating a write is harmless.
    Returns the path of the written file.
    """
    tag_name, tag_values = check_tag_arguments(name, values)
    path = _target_path(directory, file_name, TAGS_EXTENSION)
    lines = _read_lines(path)

    for index, line in enumerate(lines):
        if is_blank_or_comment(line):
            continue
        try:
            existing_name, existing_values = parse_tag_line(line)
        except TagParseError as exc:
            logger.warning("Skipping malformed line %d in %s: %s", index + 1, path, exc)
            continue
        if existing_name != tag_name:
            continue

        fresh = _unique_new_values(tag_values, existing_values)
        if not fresh:
            logger.debug("Tag '%s' in %s already has all values", tag_name, path)
            return path
        lines[index] = f"{line.rstrip()}, {', '.join(fresh)}"
        _write_lines(path, lines)
        return path

    lines.append(format_tag_line(tag_name, _unique_new_values(tag_values, ())))
    _write_lines(path, lines)
    return path


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


def write_rule(directory: Path, file_name: str, rule: str, vocabulary: Vocabulary) -> Path:
    """Validate *rule* and append it to a ``.rules`` file.

    Raises :class:`RuleParseError` when the rule is invalid or the exact
    trimmed text is already in the file.
    """
    rule_text = rule.strip()
    compile_rule(rule_text, vocabulary)

    path = _target_path(directory, file_name, RULES_EXTENSION)
    lines = _read_lines(path)
    if any(line.strip() == rule_text for line in lines):
        msg = f"Rule already exists in file {path.name}: {rule_text}"
        raise RuleParseError(msg)

    lines.append(rule_text)
    _write_lines(path, lines)
    return path


def load_rules(directory: Path, pattern: str = DEFAULT_RULES_PATTERN) -> list[RuleSource]:
    """Read every non-blank line of every rule file matching *pattern*.

    Rule ids use the file path relative to *directory*, so files with the same
    name in different subdirectories never collide.
    """
    sources: list[RuleSource] = []
    paths = sorted(directory.glob(pattern))
    for path in paths:
        source_name = os.path.splitext(os.path.relpath(path, directory))[0].replace(os.sep, "/")
        for lineno, line in enumerate(_read_lines(path), start=1):
            text = line.strip()
            if text:
                sources.append(
                    RuleSource(text=text, origin=path, line=lineno, source_name=source_name)
                )

    logger.debug("Read %d rules from %d file(s) in %s", len(sources), len(paths), directory)
    return sources


# ---------------------------------------------------------------------------
# Objects
# ---------------------------------------------------------------------------


def write_object(
    directory: Path,
    file_name: str,
    object_id: str,
    attributes: Mapping[str, str | Iterable[str]],
) -> Path:
    """Add an object to a ``.yaml`` object file.

    If the object already exists, attributes and values it lacks are added;
    nothing it already has is removed.
    """
    key = object_id.strip()
    if not key:
        msg = "Object id cannot be empty"
        raise ObjectParseError(msg)

    incoming: dict[str, list[str]] = {}
    for name, values in attributes.items():
        attr_name = name.strip()
        if not attr_name or any(ch.isspace() for ch in attr_name):
            msg = f"Object '{key}': invalid attribute name {name!r}"
            raise ObjectParseError(msg)
        attr_values = [v.strip() for v in as_value_list(values)]
        if not attr_values or not all(attr_values):
            msg = f"Object '{key}': attribute '{attr_name}' needs non-empty values"
            raise ObjectParseError(msg)
        incoming[attr_name] = attr_values

    path = _target_path(directory, file_name, OBJECTS_EXTENSION)
    data = read_object_file(path) if path.exists() else {}

    target = data.setdefault(key, {})
    for name, values in incoming.items():
        existing = target.setdefault(name, [])
        existing.extend(_unique_new_values(values, existing))

    _write_text(path, yaml.dump(data, default_flow_style=False, sort_keys=False))
    return path
