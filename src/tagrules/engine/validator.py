"""Check a parsed rule against the tag vocabulary."""

from __future__ import annotations

from typing import TYPE_CHECKING

from tagrules.engine.ast import iter_comparisons
from tagrules.engine.parser import parse_rule
from tagrules.errors import RuleValidationError

if TYPE_CHECKING:
    from tagrules.engine.ast import Node
    from tagrules.vocabulary import Vocabulary


def validate(node: Node, vocabulary: Vocabulary) -> None:
    """Raise :class:`RuleValidationError` for the first unknown tag or value.

    Both lookups are case-insensitive.
    """
    for comparison in iter_comparisons(node):
        if comparison.tag not in vocabulary:
            msg = f"Unknown tag '{comparison.tag}'"
            raise RuleValidationError(msg)
        if not vocabulary.allows(comparison.tag, comparison.value):
            allowed = ", ".join(sorted(vocabulary[comparison.tag]))
            msg = (
                f"Unknown value '{comparison.value}' for tag '{comparison.tag}' "
                f"(allowed: {allowed})"
            )
            raise RuleValidationError(msg)


def validate_rule(rule: str, vocabulary: Vocabulary) -> Node:
    """Parse and validate *rule*, returning its expression tree."""
    node = parse_rule(rule)
    validate(node, vocabulary)
    return node
