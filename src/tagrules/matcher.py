"""Match orchestrator: load sources, compile rules, evaluate objects, format results."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from tagrules.session import RuleEngine

if TYPE_CHECKING:
    from pathlib import Path

    from tagrules.config import EngineConfig


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass
class MatchResult:
    """Result of a match run."""

    matches: dict[str, list[str]] = field(default_factory=dict)  # object id -> rule ids
    rule_texts: dict[str, str] = field(default_factory=dict)  # rule id -> rule text
    tags_loaded: int = 0
    rules_evaluated: int = 0
    clauses_compiled: int = 0
    objects_scanned: int = 0
    elapsed_ms: float = 0.0

    @property
    def matched_objects(self) -> int:
        return sum(1 for rule_ids in self.matches.values() if rule_ids)


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------


def run_match(config_dir: Path, *, config: EngineConfig | None = None) -> MatchResult:
    """Load tags, rules and objects from *config_dir* and match them.

    Raises
    ------
    RulesError
        When any tag, rule or object source is malformed or unreadable.
    """
    start = time.monotonic()

    engine = RuleEngine(config_dir, config=config)
    vocabulary = engine.load_tags()
    sources = engine.load_rules()
    index = engine.build_index(sources)
    objects = engine.load_objects()

    matches = {
        object_id: sorted(index.match(attributes)) for object_id, attributes in objects.items()
    }

    elapsed = (time.monotonic() - start) * 1000
    return MatchResult(
        matches=dict(sorted(matches.items())),
        rule_texts={source.rule_id: source.text for source in sources},
        tags_loaded=len(vocabulary),
        rules_evaluated=len(sources),
        clauses_compiled=index.clause_count,
        objects_scanned=len(objects),
        elapsed_ms=elapsed,
    )


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------


def format_rich(result: MatchResult) -> str:
    """Format a MatchResult as human-readable text.

    Example output::

        Tags: 3 loaded
        Rules: 2 evaluated (3 clauses)

        red-square
          matching:1  - colour = red
        big-circle
          (no matching rules)

        1 of 2 objects matched (0.0s)
    """
    lines: list[str] = []

    lines.append(f"Tags: {result.tags_loaded} loaded")
    lines.append(f"Rules: {result.rules_evaluated} evaluated ({result.clauses_compiled} clauses)")
    lines.append("")

    for object_id, rule_ids in result.matches.items():
        lines.append(object_id)
        if rule_ids:
            for rule_id in rule_ids:
                lines.append(f"  {rule_id}  {result.rule_texts.get(rule_id, '')}".rstrip())
        else:
            lines.append("  (no matching rules)")

    if result.matches:
        lines.append("")

    elapsed_str = f"{result.elapsed_ms / 1000:.1f}s"
    lines.append(
        f"{result.matched_objects} of {result.objects_scanned} objects matched ({elapsed_str})"
    )
    return "\n".join(lines)


def format_json(result: MatchResult) -> str:
    """Format a MatchResult as structured JSON with ``matches`` and ``summary``."""
    output: dict[str, object] = {
        "matches": result.matches,
        "rules": result.rule_texts,
        "summary": {
            "tags_loaded": result.tags_loaded,
            "rules_evaluated": result.rules_evaluated,
            "clauses_compiled": result.clauses_compiled,
            "objects_scanned": result.objects_scanned,
            "objects_matched": result.matched_objects,
            "elapsed_ms": result.elapsed_ms,
        },
    }
    return json.dumps(output, indent=2)


def format_porcelain(result: MatchResult) -> str:
    """Format one TAB-separated ``object_id rule_id`` pair per line.

    Objects without matches produce no lines; returns an empty string when
    nothing matched.
    """
    lines: list[str] = []
    for object_id, rule_ids in result.matches.items():
        for rule_id in rule_ids:
            lines.append(f"{object_id}\t{rule_id}")
    return "\n".join(lines)
