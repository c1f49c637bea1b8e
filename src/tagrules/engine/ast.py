"""Rule expression tree."""

from __future__ import annotations

import enum
from dataclasses import dataclass


class Operator(enum.Enum):
    """Comparison operator between a tag and a value."""

    EQUALS = "="
    NOT_EQUALS = "!"

    def flipped(self) -> Operator:
        return Operator.NOT_EQUALS if self is Operator.EQUALS else Operator.EQUALS


@dataclass(frozen=True)
class Comparison:
    """Atomic predicate ``tag <op> value``.

    Tag and value are stored lowercase so that equal comparisons hash equal
    regardless of how the rule was typed.
    """

    tag: str
    operator: Operator
    value: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "tag", self.tag.lower())
        object.__setattr__(self, "value", self.value.lower())

    def negated(self) -> Comparison:
        return Comparison(self.tag, self.operator.flipped(), self.value)

    def holds(self, values: frozenset[str]) -> bool:
        """Test this comparison against an attribute's (lowercase) value set."""
        if self.operator is Operator.EQUALS:
            return self.value in values
        return self.value not in values

    def __str__(self) -> str:
        return f"{self.tag} {self.operator.value} {self.value}"


@dataclass(frozen=True)
class And:
    left: Node
    right: Node


@dataclass(frozen=True)
class Or:
    left: Node
    right: Node


@dataclass(frozen=True)
class Group:
    """Explicit parenthesization; no logical effect."""

    inner: Node


@dataclass(frozen=True)
class Negate:
    """``-( ... )`` inside a rule body."""

    inner: Node


Node = Comparison | And | Or | Group | Negate


def iter_comparisons(node: Node) -> list[Comparison]:
    """Return every comparison leaf of *node*, left to right."""
    if isinstance(node, Comparison):
        return [node]
    if isinstance(node, (And, Or)):
        return iter_comparisons(node.left) + iter_comparisons(node.right)
    if isinstance(node, (Group, Negate)):
        return iter_comparisons(node.inner)
    msg = f"Unknown rule node: {node!r}"
    raise TypeError(msg)


def render(node: Node) -> str:
    """Render *node* back into rule body syntax (without the leading marker)."""
    if isinstance(node, Comparison):
        return str(node)
    if isinstance(node, And):
        return f"{render(node.left)} & {render(node.right)}"
    if isinstance(node, Or):
        return f"{render(node.left)} | {render(node.right)}"
    if isinstance(node, Group):
        return f"({render(node.inner)})"
    if isinstance(node, Negate):
        return f"-({render(node.inner)})"
    msg = f"Unknown rule node: {node!r}"
    raise TypeError(msg)
