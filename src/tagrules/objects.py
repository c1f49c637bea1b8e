"""Object sources: YAML files mapping object ids to their attributes.

Example ``shapes.yaml``::

    red-square:
      colour: red
      shape: [square]
    big-circle:
      shape: circle
      size: large
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import yaml

from tagrules.errors import FileError, ObjectParseError

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

OBJECTS_EXTENSION = ".yaml"
DEFAULT_OBJECTS_PATTERN = "*.yaml"

ObjectAttributes = dict[str, list[str]]


def _coerce_values(object_id: str, name: str, raw: Any) -> list[str]:
    if isinstance(raw, (str, int, float, bool)):
        return [str(raw)]
    if isinstance(raw, list) and all(isinstance(v, (str, int, float, bool)) for v in raw):
        return [str(v) for v in raw]
    msg = f"Object '{object_id}': attribute '{name}' must be a value or a list of values"
    raise ObjectParseError(msg)


def parse_objects(data: Any, origin: str) -> dict[str, ObjectAttributes]:
    """Validate the loaded YAML document of one object file."""
    if data is None:
        return {}
    if not isinstance(data, dict):
        msg = f"{origin}: top level must be a mapping of object ids"
        raise ObjectParseError(msg)

    objects: dict[str, ObjectAttributes] = {}
    for object_id, attributes in data.items():
        key = str(object_id)
        if attributes is None:
            objects[key] = {}
            continue
        if not isinstance(attributes, dict):
            msg = f"{origin}: object '{key}' must be a mapping of attributes"
            raise ObjectParseError(msg)
        objects[key] = {
            str(name): _coerce_values(key, str(name), raw) for name, raw in attributes.items()
        }
    return objects


def read_object_file(path: Path) -> dict[str, ObjectAttributes]:
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        msg = f"Cannot read object file {path}: {exc}"
        raise FileError(msg) from exc

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        msg = f"{path.name}: invalid YAML: {exc}"
        raise ObjectParseError(msg) from exc
    return parse_objects(data, path.name)


def load_objects(
    directory: Path, pattern: str = DEFAULT_OBJECTS_PATTERN
) -> dict[str, ObjectAttributes]:
    """Load every object file matching *pattern* in *directory*.

    An object defined in several files has its attributes merged.
    """
    objects: dict[str, ObjectAttributes] = {}
    paths = sorted(directory.glob(pattern))
    for path in paths:
        for object_id, attributes in read_object_file(path).items():
            target = objects.setdefault(object_id, {})
            for name, values in attributes.items():
                existing = target.setdefault(name, [])
                for value in values:
                    if value not in existing:
                        existing.append(value)

    logger.debug("Loaded %d objects from %d file(s) in %s", len(objects), len(paths), directory)
    return objects
