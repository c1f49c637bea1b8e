"""Match objects against many normalized rules in a single pass.

Instead of walking each rule for each object, a :class:`RuleIndex` maps every
tag to the comparisons (and clauses) that mention it.  Evaluating an object
walks its attributes once, bumping a counter per clause for every comparison
that holds; a clause is satisfied when its counter reaches the clause size.

The index is read-only after :meth:`RuleIndex.build`; counters live only for
the duration of one :meth:`RuleIndex.match` call, so a single index may be
shared by concurrent evaluations.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tagrules.engine.ast import Comparison
    from tagrules.engine.normalizer import Clause

RuleId = str
ObjectId = str
Attributes = Mapping[str, Iterable[str]]


@dataclass(frozen=True)
class _Entry:
    comparison: Comparison
    clause_ids: tuple[int, ...]


def normalize_attributes(attributes: Attributes) -> dict[str, frozenset[str]]:
    """Lowercase attribute names and values, merging names that differ only by case."""
    merged: dict[str, set[str]] = {}
    for name, values in attributes.items():
        if isinstance(values, str):
            values = (values,)
        merged.setdefault(name.lower(), set()).update(v.lower() for v in values)
    return {name: frozenset(values) for name, values in merged.items()}


class RuleIndex:
    """Compiled, shareable lookup structure over many rules' clauses."""

    def __init__(
        self,
        clause_owners: tuple[RuleId, ...],
        expected_counts: tuple[int, ...],
        by_tag: dict[str, tuple[_Entry, ...]],
    ) -> None:
        self._clause_owners = clause_owners
        self._expected_counts = expected_counts
        self._by_tag = by_tag

    @classmethod
    def build(cls, clauses_by_rule: Mapping[RuleId, Iterable[Clause]]) -> RuleIndex:
        owners: list[RuleId] = []
        expected: list[int] = []
        clause_ids_by_comparison: dict[Comparison, list[int]] = {}

        for rule_id, clauses in clauses_by_rule.items():
            for clause in clauses:
                clause_id = len(owners)
                owners.append(rule_id)
                expected.append(len(clause))
                for comparison in clause:
                    clause_ids_by_comparison.setdefault(comparison, []).append(clause_id)

        grouped: dict[str, list[_Entry]] = {}
        for comparison, clause_ids in clause_ids_by_comparison.items():
            grouped.setdefault(comparison.tag, []).append(
                _Entry(comparison=comparison, clause_ids=tuple(clause_ids))
            )

        by_tag = {tag: tuple(entries) for tag, entries in grouped.items()}
        return cls(tuple(owners), tuple(expected), by_tag)

    @property
    def clause_count(self) -> int:
        return len(self._clause_owners)

    @property
    def rule_ids(self) -> frozenset[RuleId]:
        return frozenset(self._clause_owners)

    def match(self, attributes: Attributes) -> set[RuleId]:
        """Return the ids of every rule satisfied by *attributes*."""
        actual_counts = [0] * len(self._clause_owners)

        for name, values in normalize_attributes(attributes).items():
            for entry in self._by_tag.get(name, ()):
                if entry.comparison.holds(values):
                    for clause_id in entry.clause_ids:
                        actual_counts[clause_id] += 1

        return {
            self._clause_owners[clause_id]
            for clause_id, actual in enumerate(actual_counts)
            if actual == self._expected_counts[clause_id]
        }


def evaluate(
    clauses_by_rule: Mapping[RuleId, Iterable[Clause]],
    attributes: Attributes,
) -> set[RuleId]:
    """Return the rules satisfied by a single object."""
    return RuleIndex.build(clauses_by_rule).match(attributes)


def evaluate_objects(
    index: RuleIndex,
    objects: Mapping[ObjectId, Attributes],
) -> dict[ObjectId, set[RuleId]]:
    """Match every object against *index*; objects matching nothing map to an empty set."""
    return {object_id: index.match(attributes) for object_id, attributes in objects.items()}
