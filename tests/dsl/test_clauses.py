import dataclasses
from typing import Any

import pytest

from searchable.dsl import clauses
from searchable.dsl.compiler import compile_clause
from searchable.errors import InvalidClauseError


@pytest.mark.parametrize(
    "clause, expected",
    [
        (clauses.match("title", "quick fox"), {"match": {"title": "quick fox"}}),
        (
            clauses.match("title", "quick fox", {"fuzziness": "AUTO", "operator": "and"}),
            {"match": {"title": {"query": "quick fox", "fuzziness": "AUTO", "operator": "and"}}},
        ),
        (
            clauses.multi_match(["title", "body^2"], "fox", {"type": "best_fields"}),
            {"multi_match": {"query": "fox", "fields": ["title", "body^2"], "type": "best_fields"}},
        ),
        (clauses.term("status", "published"), {"term": {"status": "published"}}),
        (
            clauses.term("status", "published", {"boost": 2.0}),
            {"term": {"status": {"value": "published", "boost": 2.0}}},
        ),
        (clauses.terms("tag", ["a", "b"]), {"terms": {"tag": ["a", "b"]}}),
        (
            clauses.range("age", {"gte": 10, "lte": 20}),
            {"range": {"age": {"gte": 10, "lte": 20}}},
        ),
        (clauses.exists("email"), {"exists": {"field": "email"}}),
        (clauses.prefix("name", "jo"), {"prefix": {"name": "jo"}}),
        (clauses.wildcard("name", "jo*n"), {"wildcard": {"name": "jo*n"}}),
        (
            clauses.wildcard("name", "jo*n", {"case_insensitive": True}),
            {"wildcard": {"name": {"value": "jo*n", "case_insensitive": True}}},
        ),
    ],
    ids=[
        "match",
        "match with options",
        "multi_match",
        "term",
        "term with boost",
        "terms",
        "range",
        "exists",
        "prefix",
        "wildcard",
        "wildcard with options",
    ],
)
def test_leaf_clause_wire_format(clause: clauses.Clause, expected: dict[str, Any]):
    assert compile_clause(clause) == expected


def test_range_bounds_are_emitted_in_fixed_order():
    clause = clauses.range("date", {"lt": "2025-01-01", "gte": "2024-01-01"})
    assert list(compile_clause(clause)["range"]["date"]) == ["gte", "lt"]


def test_range_ignores_none_bounds():
    clause = clauses.range("age", {"gte": 18, "lte": None})
    assert compile_clause(clause) == {"range": {"age": {"gte": 18}}}


@pytest.mark.parametrize(
    "bounds",
    [{}, {"gte": None, "lt": None}],
    ids=["empty bounds", "only None bounds"],
)
def test_range_without_bounds_fails(bounds: dict[str, Any]):
    with pytest.raises(InvalidClauseError):
        clauses.range("age", bounds)


def test_range_with_unknown_operator_fails():
    with pytest.raises(InvalidClauseError, match="Unsupported range operator"):
        clauses.range("age", {"from": 1})


@pytest.mark.parametrize(
    "factory",
    [
        lambda: clauses.match("", "x"),
        lambda: clauses.term("  ", "x"),
        lambda: clauses.terms("", ["x"]),
        lambda: clauses.exists(""),
        lambda: clauses.prefix("", "x"),
        lambda: clauses.wildcard("", "x*"),
        lambda: clauses.range("", {"gt": 1}),
        lambda: clauses.multi_match([], "x"),
        lambda: clauses.multi_match(["title", ""], "x"),
        lambda: clauses.wildcard("name", ""),
        lambda: clauses.terms("tag", "abc"),
    ],
    ids=[
        "match",
        "term blank",
        "terms",
        "exists",
        "prefix",
        "wildcard",
        "range",
        "multi_match no fields",
        "multi_match empty field",
        "wildcard empty pattern",
        "terms given a string",
    ],
)
def test_malformed_arguments_fail_at_construction(factory: Any):
    with pytest.raises(InvalidClauseError):
        factory()


def test_clauses_are_immutable():
    clause = clauses.match("title", "fox", {"boost": 2})
    with pytest.raises(dataclasses.FrozenInstanceError):
        clause.field = "body"  # pyright:ignore[reportAttributeAccessIssue]
    with pytest.raises(TypeError):
        clause.options["boost"] = 3  # pyright:ignore[reportIndexIssue]


def test_factories_copy_caller_options():
    options = {"boost": 2}
    clause = clauses.term("status", "x", options)
    options["boost"] = 5
    assert clause.options["boost"] == 2
