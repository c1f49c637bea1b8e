"""Tests for tagrules.engine.normalizer — disjunctive normal form."""

from __future__ import annotations

import logging

import pytest

from tagrules.engine.ast import And, Comparison, Operator, Or
from tagrules.engine.normalizer import (
    MAX_CLAUSES,
    compile_rule,
    find_contradictions,
    normalize,
)
from tagrules.engine.parser import MAX_COMPARISONS, MAX_NESTING_DEPTH, parse_rule
from tagrules.errors import RuleParseError, RuleValidationError
from tagrules.vocabulary import Vocabulary


def eq(tag: str, value: str) -> Comparison:
    return Comparison(tag, Operator.EQUALS, value)


def ne(tag: str, value: str) -> Comparison:
    return Comparison(tag, Operator.NOT_EQUALS, value)


def clauses(*groups: set[Comparison]) -> frozenset[frozenset[Comparison]]:
    return frozenset(frozenset(group) for group in groups)


class TestNormalize:
    def test_single_comparison(self) -> None:
        assert normalize(parse_rule("- colour = red")) == clauses({eq("colour", "red")})

    def test_and_is_one_clause(self) -> None:
        result = normalize(parse_rule("- colour = red & size = large"))
        assert result == clauses({eq("colour", "red"), eq("size", "large")})

    def test_or_is_two_clauses(self) -> None:
        result = normalize(parse_rule("- colour = red | size = large"))
        assert result == clauses({eq("colour", "red")}, {eq("size", "large")})

    def test_and_distributes_over_or(self) -> None:
        result = normalize(parse_rule("- (colour = red | colour = blue) & size = large"))
        assert result == clauses(
            {eq("colour", "red"), eq("size", "large")},
            {eq("colour", "blue"), eq("size", "large")},
        )

    def test_comma_list_equals_explicit_or(self) -> None:
        comma = normalize(parse_rule("- colour = red, blue"))
        explicit = normalize(parse_rule("- colour = red | colour = blue"))
        assert comma == explicit

    def test_group_is_transparent(self) -> None:
        assert normalize(parse_rule("- ((colour = red))")) == normalize(
            parse_rule("- colour = red")
        )

    def test_leading_marker_is_not_negation(self) -> None:
        result = normalize(parse_rule("-(colour = red)"))
        assert result == clauses({eq("colour", "red")})

    def test_negated_comparison_flips_operator(self) -> None:
        result = normalize(parse_rule("- -(colour = red)"))
        assert result == clauses({ne("colour", "red")})

    def test_negated_and_becomes_or(self) -> None:
        result = normalize(parse_rule("- -(colour = red & size = large)"))
        assert result == clauses({ne("colour", "red")}, {ne("size", "large")})

    def test_negated_or_becomes_and(self) -> None:
        result = normalize(parse_rule("- -(colour = red | size ! large)"))
        assert result == clauses({ne("colour", "red"), eq("size", "large")})

    def test_double_negation_cancels(self) -> None:
        result = normalize(parse_rule("- -(-(colour = red))"))
        assert result == clauses({eq("colour", "red")})

    def test_negated_comma_list(self) -> None:
        result = normalize(parse_rule("- -(colour = red, blue)"))
        assert result == clauses({ne("colour", "red"), ne("colour", "blue")})

    def test_clause_order_is_irrelevant(self) -> None:
        left = normalize(parse_rule("- size = large & colour = red | shape = circle"))
        right = normalize(parse_rule("- shape = circle | colour = red & size = large"))
        assert left == right

    def test_duplicate_comparisons_collapse(self) -> None:
        result = normalize(parse_rule("- colour = red & colour = red"))
        assert result == clauses({eq("colour", "red")})

    def test_superset_clause_is_absorbed(self) -> None:
        result = normalize(parse_rule("- colour = red | colour = red & size = large"))
        assert result == clauses({eq("colour", "red")})

    def test_contradictory_clause_is_dropped(self) -> None:
        result = normalize(parse_rule("- colour = red & colour ! red | size = large"))
        assert result == clauses({eq("size", "large")})

    def test_fully_contradictory_rule_is_empty(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger="tagrules.engine.normalizer"):
            result = normalize(parse_rule("- colour = red & -(colour = red)"))
        assert result == frozenset()
        assert "never match" in caplog.text

    def test_clause_limit(self) -> None:
        # Each OR of two doubles the clause count once distributed by AND.
        factors = " & ".join(f"(t{i} = a | u{i} = b)" for i in range(13))
        assert 2**13 > MAX_CLAUSES
        with pytest.raises(RuleParseError, match="too many|more than"):
            normalize(parse_rule(f"- {factors}"))


class TestFindContradictions:
    def test_reports_equals_side(self) -> None:
        clause = frozenset({eq("colour", "red"), ne("colour", "red"), eq("size", "large")})
        assert find_contradictions(clause) == [eq("colour", "red")]

    def test_none(self) -> None:
        assert find_contradictions(frozenset({eq("colour", "red"), ne("colour", "blue")})) == []


class TestCompileRule:
    def test_red_and_large(self, vocabulary: Vocabulary) -> None:
        result = compile_rule("- colour = red & size = large", vocabulary)
        assert len(result) == 1
        (clause,) = result
        assert clause == frozenset({eq("colour", "red"), eq("size", "large")})

    def test_rejects_unknown_value(self, vocabulary: Vocabulary) -> None:
        with pytest.raises(RuleValidationError):
            compile_rule("- colour = purple", vocabulary)

    def test_accepts_tree_built_by_hand(self) -> None:
        node = Or(And(eq("a", "1"), eq("b", "2")), eq("c", "3"))
        assert normalize(node) == clauses({eq("a", "1"), eq("b", "2")}, {eq("c", "3")})

    def test_largest_accepted_rule(self, vocabulary: Vocabulary) -> None:
        chain = " & ".join(["colour = red"] * MAX_COMPARISONS)
        depth = MAX_NESTING_DEPTH
        result = compile_rule("- " + "(" * depth + chain + ")" * depth, vocabulary)
        assert result == clauses({eq("colour", "red")})

    def test_long_rule_is_a_parse_error(self, vocabulary: Vocabulary) -> None:
        with pytest.raises(RuleParseError, match="comparisons"):
            compile_rule("- " + " & ".join(["colour = red"] * 2000), vocabulary)
