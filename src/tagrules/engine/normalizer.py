"""Rewrite rule trees into disjunctive normal form.

A normalized rule is a set of clauses; a clause is a set of comparisons that
must all hold.  The rule matches when any one of its clauses does.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from tagrules.engine.ast import And, Comparison, Group, Negate, Operator, Or
from tagrules.engine.validator import validate_rule
from tagrules.errors import RuleParseError

if TYPE_CHECKING:
    from tagrules.engine.ast import Node
    from tagrules.vocabulary import Vocabulary

logger = logging.getLogger(__name__)

Clause = frozenset[Comparison]
ClauseSet = frozenset[Clause]

MAX_CLAUSES = 4096


def _product(left: set[Clause], right: set[Clause]) -> set[Clause]:
    if len(left) * len(right) > MAX_CLAUSES:
        msg = f"Rule expands to more than {MAX_CLAUSES} clauses"
        raise RuleParseError(msg)
    return {a | b for a in left for b in right}


def _to_dnf(node: Node, *, negated: bool) -> set[Clause]:
    if isinstance(node, Comparison):
        return {frozenset({node.negated() if negated else node})}
    if isinstance(node, Group):
        return _to_dnf(node.inner, negated=negated)
    if isinstance(node, Negate):
        return _to_dnf(node.inner, negated=not negated)

    if isinstance(node, (And, Or)):
        left = _to_dnf(node.left, negated=negated)
        right = _to_dnf(node.right, negated=negated)
        # De Morgan: a negated AND behaves as an OR of negations, and vice versa.
        conjunctive = isinstance(node, And) != negated
        if conjunctive:
            return _product(left, right)
        merged = left | right
        if len(merged) > MAX_CLAUSES:
            msg = f"Rule expands to more than {MAX_CLAUSES} clauses"
            raise RuleParseError(msg)
        return merged

    msg = f"Unknown rule node: {node!r}"
    raise TypeError(msg)


def find_contradictions(clause: Clause) -> list[Comparison]:
    """Return the ``=`` comparisons in *clause* whose ``!`` twin is also present."""
    return sorted(
        (c for c in clause if c.operator is Operator.EQUALS and c.negated() in clause),
        key=str,
    )


def _absorb(clauses: set[Clause]) -> set[Clause]:
    """Drop clauses that are strict supersets of another clause."""
    ordered = sorted(clauses, key=len)
    kept: list[Clause] = []
    for clause in ordered:
        if not any(other < clause for other in kept):
            kept.append(clause)
    return set(kept)


def normalize(node: Node) -> ClauseSet:
    """Convert a (validated) rule tree into its set of conjunctive clauses.

    Clauses that can never hold, because they require a tag to both equal and
    not equal the same value, are dropped.
    """
    clauses = _to_dnf(node, negated=False)

    consistent: set[Clause] = set()
    for clause in clauses:
        contradictions = find_contradictions(clause)
        if contradictions:
            logger.debug(
                "Dropping unsatisfiable clause (%s)",
                ", ".join(str(c) for c in contradictions),
            )
            continue
        consistent.add(clause)

    if not consistent:
        logger.warning("Rule can never match: every clause is contradictory")

    return frozenset(_absorb(consistent))


def compile_rule(rule: str, vocabulary: Vocabulary) -> ClauseSet:
    """Parse, validate and normalize *rule* in one step."""
    return normalize(validate_rule(rule, vocabulary))
