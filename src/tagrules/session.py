"""High-level API bound to one configuration directory."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from tagrules import persistence
from tagrules.config import EngineConfig, load_config
from tagrules.engine.evaluator import RuleIndex, evaluate_objects
from tagrules.engine.normalizer import compile_rule
from tagrules.engine.validator import validate_rule
from tagrules.errors import RuleParseError
from tagrules.objects import load_objects
from tagrules.vocabulary import Vocabulary, load_tags

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from tagrules.engine.ast import Node
    from tagrules.engine.evaluator import Attributes, ObjectId, RuleId
    from tagrules.engine.normalizer import ClauseSet
    from tagrules.objects import ObjectAttributes
    from tagrules.persistence import RuleSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Snapshot:
    """A vocabulary and the cache of rules compiled against it."""

    vocabulary: Vocabulary
    compiled: dict[str, ClauseSet]


class RuleEngine:
    """Manage tags, rules and objects stored under *config_dir*.

    Usage::

        engine = RuleEngine("config")
        engine.load_tags()
        engine.write_tag("colours", "colour", ["red", "blue"])
        engine.write_rule("matching", "- colour = red")
        matches = engine.evaluate({"apple": {"colour": ["red"]}})
    """

    def __init__(self, config_dir: str | Path, config: EngineConfig | None = None) -> None:
        self.config_dir = Path(config_dir)
        self.config = config if config is not None else load_config(self.config_dir)
        self._snapshot = _Snapshot(vocabulary=Vocabulary(), compiled={})

    @property
    def vocabulary(self) -> Vocabulary:
        return self._snapshot.vocabulary

    def _swap_vocabulary(self, vocabulary: Vocabulary) -> None:
        self._snapshot = _Snapshot(vocabulary=vocabulary, compiled={})

    # -- tags ---------------------------------------------------------------

    def load_tags(self) -> Vocabulary:
        """(Re)load every tag file, replacing the current vocabulary."""
        vocabulary = load_tags(self.config_dir, self.config.tags_pattern)
        self._swap_vocabulary(vocabulary)
        logger.info("Vocabulary loaded: %d tags", len(vocabulary))
        return vocabulary

    def write_tag(self, file_name: str, name: str, values: str | Iterable[str]) -> Path:
        """Persist a tag and make its values available for rule validation."""
        values = persistence.as_value_list(values)
        path = persistence.write_tag(self.config_dir, file_name, name, values)
        self._swap_vocabulary(self.vocabulary.merged(name.strip(), (v.strip() for v in values)))
        return path

    # -- rules --------------------------------------------------------------

    def validate_rule(self, rule: str) -> Node:
        """Check syntax and vocabulary; return the parsed rule."""
        return validate_rule(rule, self.vocabulary)

    def compile_rule(self, rule: str) -> ClauseSet:
        """Return the normalized clauses of *rule*, compiling each text only once."""
        snapshot = self._snapshot
        text = rule.strip()
        clauses = snapshot.compiled.get(text)
        if clauses is None:
            clauses = compile_rule(text, snapshot.vocabulary)
            snapshot.compiled[text] = clauses
        return clauses

    def write_rule(self, file_name: str, rule: str) -> Path:
        return persistence.write_rule(self.config_dir, file_name, rule, self.vocabulary)

    def load_rules(self) -> list[RuleSource]:
        return persistence.load_rules(self.config_dir, self.config.rules_pattern)

    def build_index(self, sources: Iterable[RuleSource] | None = None) -> RuleIndex:
        """Compile rules (all rule files by default) into an evaluation index."""
        if sources is None:
            sources = self.load_rules()

        clauses_by_rule: dict[RuleId, ClauseSet] = {}
        for source in sources:
            if source.rule_id in clauses_by_rule:
                msg = f"Duplicate rule id '{source.rule_id}' ({source.origin})"
                raise RuleParseError(msg)
            try:
                clauses_by_rule[source.rule_id] = self.compile_rule(source.text)
            except RuleParseError as exc:
                msg = f"{source.origin.name}:{source.line}: {exc}"
                raise type(exc)(msg) from exc
        return RuleIndex.build(clauses_by_rule)

    # -- objects ------------------------------------------------------------

    def write_object(
        self, file_name: str, object_id: str, attributes: Mapping[str, str | Iterable[str]]
    ) -> Path:
        return persistence.write_object(self.config_dir, file_name, object_id, attributes)

    def load_objects(self) -> dict[str, ObjectAttributes]:
        return load_objects(self.config_dir, self.config.objects_pattern)

    # -- evaluation ---------------------------------------------------------

    def evaluate(
        self, objects: Mapping[ObjectId, Attributes] | None = None
    ) -> dict[ObjectId, set[RuleId]]:
        """Match objects (all object files by default) against every stored rule."""
        if objects is None:
            objects = self.load_objects()
        index = self.build_index()
        return evaluate_objects(index, objects)
