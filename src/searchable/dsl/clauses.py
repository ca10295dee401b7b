"""Immutable query clause values.

Each clause type is its own frozen dataclass; `Clause` is the union over all of
them, so the compiler can match on it exhaustively. Clauses are only ever
created through the factory functions below, which validate their arguments
and raise `InvalidClauseError` at the point of construction.
"""

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from searchable.errors import InvalidClauseError
from searchable.types.dsl import RANGE_OPERATORS, Options, RangeOperator, Scalar

EMPTY_OPTIONS: Mapping[str, Scalar] = MappingProxyType({})


@dataclass(frozen=True, kw_only=True, slots=True)
class Match:
    """Full-text match on a single field."""

    field: str
    value: Any
    options: Mapping[str, Scalar] = EMPTY_OPTIONS


@dataclass(frozen=True, kw_only=True, slots=True)
class MultiMatch:
    """Full-text match across several fields."""

    fields: tuple[str, ...]
    value: Any
    options: Mapping[str, Scalar] = EMPTY_OPTIONS


@dataclass(frozen=True, kw_only=True, slots=True)
class Term:
    """Exact value match."""

    field: str
    value: Scalar
    options: Mapping[str, Scalar] = EMPTY_OPTIONS


@dataclass(frozen=True, kw_only=True, slots=True)
class Terms:
    """Exact match against any of several values."""

    field: str
    values: tuple[Scalar, ...]
    options: Mapping[str, Scalar] = EMPTY_OPTIONS


@dataclass(frozen=True, kw_only=True, slots=True)
class Range:
    """Bounded comparison; `bounds` always holds at least one operator."""

    field: str
    bounds: Mapping[RangeOperator, Any]
    options: Mapping[str, Scalar] = EMPTY_OPTIONS


@dataclass(frozen=True, kw_only=True, slots=True)
class Exists:
    """Field has any indexed value."""

    field: str
    options: Mapping[str, Scalar] = EMPTY_OPTIONS


@dataclass(frozen=True, kw_only=True, slots=True)
class Prefix:
    """Term prefix match."""

    field: str
    value: str
    options: Mapping[str, Scalar] = EMPTY_OPTIONS


@dataclass(frozen=True, kw_only=True, slots=True)
class Wildcard:
    """Term pattern match using `*` and `?`."""

    field: str
    pattern: str
    options: Mapping[str, Scalar] = EMPTY_OPTIONS


@dataclass(frozen=True, kw_only=True, slots=True)
class Bool:
    """Boolean container; produced when compiling a bool group."""

    must: tuple["Clause", ...] = ()
    must_not: tuple["Clause", ...] = ()
    should: tuple["Clause", ...] = ()
    filter: tuple["Clause", ...] = ()
    options: Mapping[str, Scalar] = EMPTY_OPTIONS


@dataclass(frozen=True, kw_only=True, slots=True)
class Nested:
    """Query evaluated against the sub-documents under `path`."""

    path: str
    query: Bool = field(default_factory=Bool)
    options: Mapping[str, Scalar] = EMPTY_OPTIONS


Clause = Match | MultiMatch | Term | Terms | Range | Exists | Prefix | Wildcard | Nested | Bool


def _field(name: Any) -> str:
    if not isinstance(name, str) or not name.strip():
        raise InvalidClauseError(f"Field name must be a non-empty string, got {name!r}")
    return name


def _options(options: Options | None) -> Mapping[str, Scalar]:
    if not options:
        return EMPTY_OPTIONS
    return MappingProxyType(dict(options))


def match(field: str, value: Any, options: Options | None = None) -> Match:
    """Full-text `match` clause, e.g. `match("title", "quick fox", {"fuzziness": "AUTO"})`."""
    return Match(field=_field(field), value=value, options=_options(options))


def multi_match(
    fields: Sequence[str], value: Any, options: Options | None = None
) -> MultiMatch:
    """Full-text `multi_match` clause over `fields`."""
    if isinstance(fields, str):
        fields = [fields]
    if not fields:
        raise InvalidClauseError("multi_match requires at least one field")
    return MultiMatch(
        fields=tuple(_field(f) for f in fields),
        value=value,
        options=_options(options),
    )


def term(field: str, value: Scalar, options: Options | None = None) -> Term:
    """Exact `term` clause."""
    return Term(field=_field(field), value=value, options=_options(options))


def terms(field: str, values: Iterable[Scalar], options: Options | None = None) -> Terms:
    """Exact `terms` clause; an empty value list matches nothing."""
    if isinstance(values, str):
        raise InvalidClauseError("terms expects a collection of values, not a string")
    return Terms(field=_field(field), values=tuple(values), options=_options(options))


def range(  # noqa: A001
    field: str, bounds: Mapping[str, Any], options: Options | None = None
) -> Range:
    """Range clause; `bounds` takes any of `gte`, `gt`, `lte`, `lt`."""
    unknown = set(bounds) - set(RANGE_OPERATORS)
    if unknown:
        raise InvalidClauseError(
            f"Unsupported range operator(s) {sorted(unknown)}, expected {list(RANGE_OPERATORS)}"
        )
    kept = {op: bounds[op] for op in RANGE_OPERATORS if bounds.get(op) is not None}
    if not kept:
        raise InvalidClauseError(f"Range on '{field}' requires at least one bound")
    return Range(
        field=_field(field), bounds=MappingProxyType(kept), options=_options(options)
    )


def exists(field: str) -> Exists:
    """Clause matching documents where `field` has a value."""
    return Exists(field=_field(field))


def prefix(field: str, value: str, options: Options | None = None) -> Prefix:
    """Clause matching terms starting with `value`."""
    return Prefix(field=_field(field), value=value, options=_options(options))


def wildcard(field: str, pattern: str, options: Options | None = None) -> Wildcard:
    """Clause matching terms against a `*`/`?` pattern."""
    if not pattern:
        raise InvalidClauseError(f"Wildcard on '{field}' requires a pattern")
    return Wildcard(field=_field(field), pattern=pattern, options=_options(options))
