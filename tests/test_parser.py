"""Tests for tagrules.engine.parser — rule tokenizing and grammar."""

from __future__ import annotations

import pytest

from tagrules.engine.ast import And, Comparison, Group, Negate, Operator, Or, render
from tagrules.engine.parser import (
    MAX_COMPARISONS,
    MAX_NESTING_DEPTH,
    TokenKind,
    parse_rule,
    tokenize,
)
from tagrules.errors import RuleParseError

RED = Comparison("colour", Operator.EQUALS, "red")
BLUE = Comparison("colour", Operator.EQUALS, "blue")
LARGE = Comparison("size", Operator.EQUALS, "large")
NOT_SMALL = Comparison("size", Operator.NOT_EQUALS, "small")


class TestTokenize:
    def test_marker_is_consumed(self) -> None:
        kinds = [t.kind for t in tokenize("- colour = red")]
        assert kinds == [TokenKind.NAME, TokenKind.EQUALS, TokenKind.NAME, TokenKind.END]

    def test_marker_without_space(self) -> None:
        tokens = tokenize("-colour!red")
        assert [t.text for t in tokens[:3]] == ["colour", "!", "red"]

    def test_negation_before_group(self) -> None:
        kinds = [t.kind for t in tokenize("- -(colour = red)")]
        assert kinds[:2] == [TokenKind.NEGATE, TokenKind.LPAREN]

    def test_hyphen_inside_name(self) -> None:
        tokens = tokenize("- sub-type = a-b")
        assert tokens[0].text == "sub-type"
        assert tokens[2].text == "a-b"

    def test_columns_are_one_based(self) -> None:
        tokens = tokenize("- colour = red")
        assert tokens[0].column == 3

    def test_missing_marker(self) -> None:
        with pytest.raises(RuleParseError, match="must start with '-'"):
            tokenize("colour = red")

    def test_stray_dash(self) -> None:
        with pytest.raises(RuleParseError, match="parenthesized group"):
            tokenize("- colour = red & -size = large")


class TestParseRule:
    """Tests for parse_rule() — tree shape."""

    def test_single_comparison(self) -> None:
        assert parse_rule("- colour = red") == RED

    def test_not_equals(self) -> None:
        assert parse_rule("- size ! small") == NOT_SMALL

    def test_case_is_folded(self) -> None:
        assert parse_rule("- Colour = RED") == RED

    def test_and_binds_tighter_than_or(self) -> None:
        node = parse_rule("- colour = red | colour = blue & size = large")
        assert node == Or(RED, And(BLUE, LARGE))

    def test_connectives_are_left_associative(self) -> None:
        node = parse_rule("- colour = red & size = large & size ! small")
        assert node == And(And(RED, LARGE), NOT_SMALL)

    def test_parentheses_make_group(self) -> None:
        node = parse_rule("- (colour = red | colour = blue) & size = large")
        assert node == And(Group(Or(RED, BLUE)), LARGE)

    def test_leading_group_is_not_negated(self) -> None:
        node = parse_rule("-(colour = red) & (size = large)")
        assert node == And(Group(RED), Group(LARGE))

    def test_explicit_negated_group(self) -> None:
        node = parse_rule("- -(colour = red) & size = large")
        assert node == And(Negate(RED), LARGE)

    def test_comma_list_expands_to_or(self) -> None:
        assert parse_rule("- colour = red, blue") == Group(Or(RED, BLUE))

    def test_comma_list_keeps_operator(self) -> None:
        node = parse_rule("- colour ! red, blue")
        assert node == Group(Or(RED.negated(), BLUE.negated()))

    def test_comma_list_binds_inside_and(self) -> None:
        node = parse_rule("- colour = red, blue & size = large")
        assert node == And(Group(Or(RED, BLUE)), LARGE)

    def test_comma_list_of_three(self) -> None:
        node = parse_rule("- colour = red, blue, green")
        green = Comparison("colour", Operator.EQUALS, "green")
        assert node == Group(Or(Or(RED, BLUE), green))

    def test_render_round_trip(self) -> None:
        rule = "- -(colour = red | size ! small) & (size = large)"
        node = parse_rule(rule)
        assert parse_rule(f"- {render(node)}") == node


class TestParseErrors:
    """Tests for parse_rule() — syntax errors."""

    @pytest.mark.parametrize(
        ("rule", "message"),
        [
            ("-", "no expression"),
            ("-   ", "no expression"),
            ("- colour red", "Missing operator"),
            ("- colour", "Missing operator"),
            ("- colour =", "Empty value list"),
            ("- colour = & size = large", "Empty value list"),
            ("-colour =, red", "Leading comma"),
            ("-,colour = red", "Unexpected ','"),
            ("-colour = red,", "Trailing comma"),
            ("-colour = red,,blue", "Double comma"),
            ("-(colour = red,) & size = large", "Trailing comma"),
            ("- (colour = red", "never closed"),
            ("- colour = red)", "unexpected '\\)'"),
            ("- ()", "Empty parentheses"),
            ("- colour = red size = large", "Expected '&', '\\|' or end of rule"),
            ("- (colour = red size = large)", "Expected '&', '\\|' or '\\)'"),
            ("- colour = dark red", "Expected '&', '\\|' or end of rule"),
            ("- colour = red &", "Rule ends"),
            ("- & colour = red", "Missing comparison before '&'"),
            ("- = red", "Missing tag name"),
            ("- -colour = red", "parenthesized group"),
        ],
    )
    def test_rejected(self, rule: str, message: str) -> None:
        with pytest.raises(RuleParseError, match=message):
            parse_rule(rule)

    def test_nesting_limit(self) -> None:
        depth = MAX_NESTING_DEPTH + 1
        rule = "- " + "(" * depth + "colour = red" + ")" * depth
        with pytest.raises(RuleParseError, match="nesting depth"):
            parse_rule(rule)

    def test_nesting_at_limit_is_accepted(self) -> None:
        depth = MAX_NESTING_DEPTH
        rule = "- " + "(" * depth + "colour = red" + ")" * depth
        node = parse_rule(rule)
        assert isinstance(node, Group)

    def test_long_and_chain(self) -> None:
        rule = "- " + " & ".join(["colour = red"] * 2000)
        with pytest.raises(RuleParseError, match=f"more than {MAX_COMPARISONS} comparisons"):
            parse_rule(rule)

    def test_long_value_list(self) -> None:
        rule = "- colour = " + ", ".join(["red"] * 2000)
        with pytest.raises(RuleParseError, match=f"more than {MAX_COMPARISONS} comparisons"):
            parse_rule(rule)

    def test_values_count_towards_comparison_limit(self) -> None:
        values = ", ".join(["red"] * (MAX_COMPARISONS // 2))
        parse_rule(f"- colour = {values} | size = {values}")
        with pytest.raises(RuleParseError, match="comparisons"):
            parse_rule(f"- colour = {values} | size = {values}, large")
