"""Compile accumulated builder state into an Elasticsearch request body.

Everything here is read-only over the state it is given and returns freshly
built dicts, so compiling the same state twice yields equal documents. Key
order is fixed (bool occurrences as must, must_not, should, filter; top-level
keys as in `RequestDocument`) so identical call sequences serialize
byte-for-byte identically.
"""

import copy
from collections.abc import Mapping
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, assert_never

from searchable.dsl.aggregations import AggregationNode, AggregationState, Bucket, Metric, Pipeline
from searchable.dsl.clauses import (
    Bool,
    Clause,
    Exists,
    Match,
    MultiMatch,
    Nested,
    Prefix,
    Range,
    Term,
    Terms,
    Wildcard,
)
from searchable.dsl.suggestions import SuggestionState
from searchable.types.dsl import BOOL_OCCURRENCES, ClauseDict, RequestDocument

if TYPE_CHECKING:
    from searchable.dsl.query import NestedScope, QueryState


def _value_body(key: str, value: Any, options: Mapping[str, Any]) -> Any:
    """Short form `value` when there are no options, else `{key: value, **options}`."""
    if not options:
        return value
    return {key: value, **options}


def compile_clause(clause: Clause) -> ClauseDict:
    """Serialize one clause value to its query-DSL form."""
    match clause:
        case Match(field=field, value=value, options=options):
            return {"match": {field: _value_body("query", value, options)}}
        case MultiMatch(fields=fields, value=value, options=options):
            return {"multi_match": {"query": value, "fields": list(fields), **options}}
        case Term(field=field, value=value, options=options):
            return {"term": {field: _value_body("value", value, options)}}
        case Terms(field=field, values=values, options=options):
            return {"terms": {field: list(values), **options}}
        case Range(field=field, bounds=bounds, options=options):
            return {"range": {field: {**bounds, **options}}}
        case Exists(field=field, options=options):
            return {"exists": {"field": field, **options}}
        case Prefix(field=field, value=value, options=options):
            return {"prefix": {field: _value_body("value", value, options)}}
        case Wildcard(field=field, pattern=pattern, options=options):
            return {"wildcard": {field: _value_body("value", pattern, options)}}
        case Nested(path=path, query=query, options=options):
            return {"nested": {"path": path, "query": compile_clause(query), **options}}
        case Bool():
            body: dict[str, Any] = {}
            for occurrence in BOOL_OCCURRENCES:
                group: tuple[Clause, ...] = getattr(clause, occurrence)
                if group:
                    body[occurrence] = [compile_clause(c) for c in group]
            body.update(clause.options)
            return {"bool": body}
        case _:
            assert_never(clause)


def nested_clause(scope: "NestedScope") -> Nested:
    """Fold a nested scope (and its child scopes) into a `Nested` clause."""
    inner = scope.group.to_clause(
        trailing_must=[nested_clause(child) for child in scope.children.values()]
    )
    return Nested(path=scope.path, query=inner, options=MappingProxyType(dict(scope.options)))


def query_clause(state: "QueryState") -> Clause | None:
    """Resolve the clause tree for the `query` key, or None if nothing was added.

    Nested scopes always end up in the outer `must`, after the group's own must
    clauses, in the order the scopes were first opened.
    """
    if state.group is None:
        return state.clause
    return state.group.to_clause(
        trailing_must=[nested_clause(scope) for scope in state.nested.values()]
    )


def compile_aggregation(node: AggregationNode) -> dict[str, Any]:
    """Serialize a single aggregation node and, recursively, its children."""
    match node:
        case Metric(type=type_, field=field, options=options):
            return {type_: {"field": field, **copy.deepcopy(dict(options))}}
        case Pipeline(type=type_, buckets_path=buckets_path, options=options):
            return {type_: {"buckets_path": buckets_path, **copy.deepcopy(dict(options))}}
        case Bucket():
            if node.filter_clause is not None:
                compiled: dict[str, Any] = {node.type: compile_clause(node.filter_clause)}
            else:
                compiled = {node.type: copy.deepcopy(dict(node.params))}
            if node.children is not None:
                compiled["aggs"] = compile_aggregations(node.children)
            return compiled
        case _:
            assert_never(node)


def compile_aggregations(scope: Mapping[str, AggregationNode]) -> dict[str, Any]:
    """Serialize every node of one aggregation scope, keeping registration order."""
    return {name: compile_aggregation(node) for name, node in scope.items()}


def compile_suggestions(state: SuggestionState) -> dict[str, Any]:
    """Serialize registered suggesters into the `suggest` section."""
    return {
        name: {
            "text": suggester.text,
            suggester.type: {"field": suggester.field, **copy.deepcopy(dict(suggester.options))},
        }
        for name, suggester in state.suggesters.items()
    }


def compile_request(
    query_state: "QueryState",
    aggregation_state: AggregationState | None = None,
    suggestion_state: SuggestionState | None = None,
) -> RequestDocument:
    """Build a fresh request document, omitting every top-level key whose state is empty."""
    document: RequestDocument = {}

    clause = query_clause(query_state)
    if clause is not None:
        document["query"] = compile_clause(clause)

    if query_state.sort:
        document["sort"] = [
            {field: direction} for field, direction in query_state.sort.items()
        ]

    if query_state.offset is not None:
        document["from"] = query_state.offset
    if query_state.limit is not None:
        document["size"] = query_state.limit

    if query_state.source is not None:
        document["_source"] = list(query_state.source)

    if query_state.min_score is not None:
        document["min_score"] = query_state.min_score

    if query_state.highlight:
        document["highlight"] = {
            "fields": {
                field: copy.deepcopy(options)
                for field, options in query_state.highlight.items()
            }
        }

    if aggregation_state is not None and aggregation_state.roots:
        document["aggs"] = compile_aggregations(aggregation_state.roots)

    if suggestion_state is not None and suggestion_state.suggesters:
        document["suggest"] = compile_suggestions(suggestion_state)

    return document
