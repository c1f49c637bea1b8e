"""Source discovery settings read from ``config.yml``."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

import yaml

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config.yml"
CONFIG_SECTION = "tagrules"


@dataclass(frozen=True)
class EngineConfig:
    """Glob patterns, relative to the config directory, for each source kind."""

    tags_pattern: str = "*.tags"
    rules_pattern: str = "*.rules"
    objects_pattern: str = "*.yaml"


_PATTERN_KEYS: dict[str, str] = {
    "tags": "tags_pattern",
    "rules": "rules_pattern",
    "objects": "objects_pattern",
}


def load_config(config_dir: Path) -> EngineConfig:
    """Load the ``tagrules`` section of ``<config_dir>/config.yml``.

    Falls back to defaults for missing keys or a missing file.
    """
    config_path = config_dir / CONFIG_FILENAME
    if not config_path.is_file():
        return EngineConfig()

    try:
        with config_path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except (OSError, yaml.YAMLError):
        logger.warning("Failed to read %s, using default patterns", config_path)
        return EngineConfig()

    if not isinstance(data, dict):
        return EngineConfig()

    section = data.get(CONFIG_SECTION)
    if not isinstance(section, dict):
        return EngineConfig()

    kwargs: dict[str, str] = {}
    for key, field_name in _PATTERN_KEYS.items():
        value = section.get(key)
        if value is None:
            continue
        if not isinstance(value, str) or not value.strip():
            logger.warning("Ignoring invalid '%s' pattern in %s", key, config_path)
            continue
        kwargs[field_name] = value.strip()

    return EngineConfig(**kwargs)
