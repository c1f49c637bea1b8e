"""Rule expression engine: parse, validate, normalize and evaluate rules."""

from tagrules.engine.ast import (
    And,
    Comparison,
    Group,
    Negate,
    Node,
    Operator,
    Or,
    iter_comparisons,
    render,
)
from tagrules.engine.evaluator import RuleIndex, evaluate, evaluate_objects
from tagrules.engine.normalizer import (
    Clause,
    ClauseSet,
    compile_rule,
    find_contradictions,
    normalize,
)
from tagrules.engine.parser import parse_rule, tokenize
from tagrules.engine.validator import validate, validate_rule

__all__ = [
    "And",
    "Clause",
    "ClauseSet",
    "Comparison",
    "Group",
    "Negate",
    "Node",
    "Operator",
    "Or",
    "RuleIndex",
    "compile_rule",
    "evaluate",
    "evaluate_objects",
    "find_contradictions",
    "iter_comparisons",
    "normalize",
    "parse_rule",
    "render",
    "tokenize",
    "validate",
    "validate_rule",
]
