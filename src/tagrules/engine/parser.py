"""Tokenizer and recursive-descent parser for the rule language.

Grammar, lowest precedence first::

    rule        := '-' or_expr
    or_expr     := and_expr ('|' and_expr)*
    and_expr    := atom ('&' atom)*
    atom        := comparison | '(' or_expr ')' | '-' '(' or_expr ')'
    comparison  := NAME operator value_list
    operator    := '=' | '!'
    value_list  := NAME (',' NAME)*

The leading ``-`` marks the line as a rule and is stripped before parsing;
it never negates anything.  Inside the body ``-`` is the negation operator
when it directly precedes ``(`` and is otherwise part of a name, so
``- -(colour = red)`` is a negated rule while ``-(colour = red)`` is not.

A value list ``colour = red, blue`` is shorthand for
``(colour = red | colour = blue)``, with the same operator for every value.

A rule may nest parentheses at most ``MAX_NESTING_DEPTH`` deep and hold at
most ``MAX_COMPARISONS`` comparisons, counting each value of a list.  Names
and values cannot start with ``-``.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from tagrules.engine.ast import And, Comparison, Group, Negate, Node, Operator, Or
from tagrules.errors import RuleParseError

RULE_MARKER = "-"
MAX_NESTING_DEPTH = 64
MAX_COMPARISONS = 256

_SPECIAL_CHARS = frozenset("=!&|(),")


class TokenKind(enum.Enum):
    NAME = "name"
    EQUALS = "="
    NOT_EQUALS = "!"
    AND = "&"
    OR = "|"
    LPAREN = "("
    RPAREN = ")"
    COMMA = ","
    NEGATE = "-"
    END = "end of rule"


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    text: str
    column: int  # 1-based, relative to the trimmed rule text


_SINGLE_CHAR_TOKENS: dict[str, TokenKind] = {
    "=": TokenKind.EQUALS,
    "!": TokenKind.NOT_EQUALS,
    "&": TokenKind.AND,
    "|": TokenKind.OR,
    "(": TokenKind.LPAREN,
    ")": TokenKind.RPAREN,
    ",": TokenKind.COMMA,
}


# ---------------------------------------------------------------------------
# Tokenizer
# ---------------------------------------------------------------------------


def _next_non_space(text: str, pos: int) -> str:
    while pos < len(text) and text[pos].isspace():
        pos += 1
    return text[pos] if pos < len(text) else ""


def tokenize(rule: str) -> list[Token]:
    """Split a rule into tokens, consuming the leading rule marker.

    The returned list always ends with an ``END`` token.
    """
    text = rule.strip()
    if not text.startswith(RULE_MARKER):
        msg = f"Rule must start with '{RULE_MARKER}': {text!r}"
        raise RuleParseError(msg)

    tokens: list[Token] = []
    pos = len(RULE_MARKER)
    while pos < len(text):
        char = text[pos]
        if char.isspace():
            pos += 1
            continue

        kind = _SINGLE_CHAR_TOKENS.get(char)
        if kind is not None:
            tokens.append(Token(kind, char, pos + 1))
            pos += 1
            continue

        if char == "-":
            if _next_non_space(text, pos + 1) == "(":
                tokens.append(Token(TokenKind.NEGATE, char, pos + 1))
                pos += 1
                continue
            msg = f"'-' at column {pos + 1} can only negate a parenthesized group"
            raise RuleParseError(msg)

        start = pos
        while pos < len(text) and not text[pos].isspace() and text[pos] not in _SPECIAL_CHARS:
            pos += 1
        tokens.append(Token(TokenKind.NAME, text[start:pos], start + 1))

    tokens.append(Token(TokenKind.END, "", len(text) + 1))
    return tokens


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


class _Parser:
    def __init__(self, tokens: list[Token]) -> None:
        self._tokens = tokens
        self._pos = 0
        self._depth = 0
        self._comparisons = 0

    @property
    def _current(self) -> Token:
        return self._tokens[self._pos]

    def _advance(self) -> Token:
        token = self._tokens[self._pos]
        if token.kind is not TokenKind.END:
            self._pos += 1
        return token

    def parse(self) -> Node:
        if self._current.kind is TokenKind.END:
            msg = "Rule has no expression after the leading '-'"
            raise RuleParseError(msg)

        node = self._or_expr()
        token = self._current
        if token.kind is TokenKind.RPAREN:
            msg = f"Unbalanced parentheses: unexpected ')' at column {token.column}"
            raise RuleParseError(msg)
        if token.kind is not TokenKind.END:
            msg = (
                f"Expected '&', '|' or end of rule at column {token.column}, "
                f"found '{token.text}'"
            )
            raise RuleParseError(msg)
        return node

    def _or_expr(self) -> Node:
        node = self._and_expr()
        while self._current.kind is TokenKind.OR:
            self._advance()
            node = Or(node, self._and_expr())
        return node

    def _and_expr(self) -> Node:
        node = self._atom()
        while self._current.kind is TokenKind.AND:
            self._advance()
            node = And(node, self._atom())
        return node

    def _atom(self) -> Node:
        token = self._current
        if token.kind is TokenKind.NAME:
            return self._comparison()
        if token.kind is TokenKind.LPAREN:
            return Group(self._parenthesized())
        if token.kind is TokenKind.NEGATE:
            self._advance()
            return Negate(self._parenthesized())
        raise RuleParseError(self._unexpected_in_atom(token))

    def _unexpected_in_atom(self, token: Token) -> str:
        if token.kind is TokenKind.END:
            return "Rule ends where a comparison or '(' was expected"
        if token.kind is TokenKind.COMMA:
            return f"Unexpected ',' at column {token.column}: commas may only separate values"
        if token.kind is TokenKind.RPAREN:
            previous = self._tokens[self._pos - 1] if self._pos > 0 else None
            if previous is not None and previous.kind is TokenKind.LPAREN:
                return f"Empty parentheses at column {previous.column}"
            return f"Unbalanced parentheses: unexpected ')' at column {token.column}"
        if token.kind in (TokenKind.EQUALS, TokenKind.NOT_EQUALS):
            return f"Missing tag name before '{token.text}' at column {token.column}"
        return f"Missing comparison before '{token.text}' at column {token.column}"

    def _parenthesized(self) -> Node:
        opening = self._advance()
        if opening.kind is not TokenKind.LPAREN:
            msg = f"Expected '(' at column {opening.column}"
            raise RuleParseError(msg)

        self._depth += 1
        if self._depth > MAX_NESTING_DEPTH:
            msg = f"Rule nesting depth exceeds maximum of {MAX_NESTING_DEPTH}"
            raise RuleParseError(msg)

        inner = self._or_expr()
        closing = self._current
        if closing.kind is not TokenKind.RPAREN:
            if closing.kind is TokenKind.END:
                msg = (
                    f"Unbalanced parentheses: '(' at column {opening.column} "
                    f"is never closed"
                )
            else:
                msg = (
                    f"Expected '&', '|' or ')' at column {closing.column}, "
                    f"found '{closing.text}'"
                )
            raise RuleParseError(msg)
        self._advance()
        self._depth -= 1
        return inner

    def _comparison(self) -> Node:
        name = self._advance()
        op_token = self._current
        if op_token.kind is TokenKind.EQUALS:
            operator = Operator.EQUALS
        elif op_token.kind is TokenKind.NOT_EQUALS:
            operator = Operator.NOT_EQUALS
        else:
            msg = f"Missing operator after tag '{name.text}' at column {op_token.column}"
            raise RuleParseError(msg)
        self._advance()

        values = self._value_list(name.text)
        comparisons: list[Node] = [Comparison(name.text, operator, value) for value in values]
        if len(comparisons) == 1:
            return comparisons[0]

        expanded = comparisons[0]
        for comparison in comparisons[1:]:
            expanded = Or(expanded, comparison)
        return Group(expanded)

    def _value_list(self, tag: str) -> list[str]:
        token = self._current
        if token.kind is TokenKind.COMMA:
            msg = f"Leading comma in value list for tag '{tag}' at column {token.column}"
            raise RuleParseError(msg)
        if token.kind is not TokenKind.NAME:
            msg = f"Empty value list for tag '{tag}' at column {token.column}"
            raise RuleParseError(msg)

        values = [self._advance().text]
        self._count_comparison()
        while self._current.kind is TokenKind.COMMA:
            comma = self._advance()
            token = self._current
            if token.kind is TokenKind.COMMA:
                msg = f"Double comma in value list for tag '{tag}' at column {token.column}"
                raise RuleParseError(msg)
            if token.kind is not TokenKind.NAME:
                msg = f"Trailing comma in value list for tag '{tag}' at column {comma.column}"
                raise RuleParseError(msg)
            values.append(self._advance().text)
            self._count_comparison()
        return values

    def _count_comparison(self) -> None:
        # Trees are left-deep, so this also bounds the depth of every tree walk.
        self._comparisons += 1
        if self._comparisons > MAX_COMPARISONS:
            msg = f"Rule has more than {MAX_COMPARISONS} comparisons"
            raise RuleParseError(msg)


def parse_rule(rule: str) -> Node:
    """Parse rule text into an expression tree.

    Raises :class:`RuleParseError` describing the first syntax problem found.
    Tag names and values are not checked against any vocabulary here.
    """
    return _Parser(tokenize(rule)).parse()
