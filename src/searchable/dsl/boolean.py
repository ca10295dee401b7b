from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Mapping, Sequence
from types import MappingProxyType
from typing import Any, Self, overload, override

from searchable.dsl import clauses
from searchable.dsl.clauses import Bool, Clause
from searchable.types.dsl import BOOL_OCCURRENCES, BoolOccurrence, Options, Scalar


class BoolGroup:
    """Ordered must/must_not/should/filter clause lists plus bool-level options."""

    def __init__(self) -> None:
        """Start with every occurrence empty."""
        self._clauses: dict[BoolOccurrence, list[Clause]] = {
            occurrence: [] for occurrence in BOOL_OCCURRENCES
        }
        self.options: dict[str, Scalar] = {}

    def clauses(self, occurrence: BoolOccurrence) -> list[Clause]:
        """Return the live clause list for one occurrence."""
        return self._clauses[occurrence]

    def is_empty(self) -> bool:
        """True if no clause has been added to any occurrence."""
        return not any(self._clauses.values())

    def to_clause(self, trailing_must: Sequence[Clause] = ()) -> Bool:
        """Snapshot the group as an immutable `Bool` clause.

        `trailing_must` is appended after the group's own must clauses; nested
        scopes are attached this way.
        """
        return Bool(
            must=(*self._clauses["must"], *trailing_must),
            must_not=tuple(self._clauses["must_not"]),
            should=tuple(self._clauses["should"]),
            filter=tuple(self._clauses["filter"]),
            options=MappingProxyType(dict(self.options)),
        )


class ClauseSink[R](ABC):
    """Anything that accepts leaf clauses through the fluent factory methods.

    Each factory validates its arguments (see `searchable.dsl.clauses`) and hands
    the clause to `_add`, whose return value continues the chain.
    """

    @abstractmethod
    def _add(self, clause: Clause) -> R:
        """Record a clause and return the next link of the chain."""

    def match(self, field: str, value: Any, options: Options | None = None) -> R:
        """Add a full-text `match` clause."""
        return self._add(clauses.match(field, value, options))

    def multi_match(
        self, fields: Sequence[str], value: Any, options: Options | None = None
    ) -> R:
        """Add a `multi_match` clause."""
        return self._add(clauses.multi_match(fields, value, options))

    def term(self, field: str, value: Scalar, options: Options | None = None) -> R:
        """Add an exact `term` clause."""
        return self._add(clauses.term(field, value, options))

    def terms(
        self, field: str, values: Iterable[Scalar], options: Options | None = None
    ) -> R:
        """Add a `terms` clause."""
        return self._add(clauses.terms(field, values, options))

    def range(
        self, field: str, bounds: Mapping[str, Any], options: Options | None = None
    ) -> R:
        """Add a `range` clause."""
        return self._add(clauses.range(field, bounds, options))

    def exists(self, field: str) -> R:
        """Add an `exists` clause."""
        return self._add(clauses.exists(field))

    def prefix(self, field: str, value: str, options: Options | None = None) -> R:
        """Add a `prefix` clause."""
        return self._add(clauses.prefix(field, value, options))

    def wildcard(self, field: str, pattern: str, options: Options | None = None) -> R:
        """Add a `wildcard` clause."""
        return self._add(clauses.wildcard(field, pattern, options))

    def add(self, clause: Clause) -> R:
        """Add a clause value built elsewhere."""
        return self._add(clause)


class OccurrenceSink(ClauseSink["OccurrenceSink"]):
    """Configurator target: every clause lands in the same occurrence list.

    `nested()` is forwarded to the owning builder, so the nested clause still
    joins the outer `must` whichever occurrence it was declared from.
    """

    def __init__(self, target: list[Clause], owner: "BoolComposer") -> None:
        """Bind to a single occurrence list of a bool group and its builder."""
        self._target: list[Clause] = target
        self._owner: BoolComposer = owner

    @override
    def _add(self, clause: Clause) -> "OccurrenceSink":
        self._target.append(clause)
        return self

    def nested(
        self,
        path: str,
        configurator: Callable[[Any], Any],
        score_mode: str | None = None,
    ) -> "OccurrenceSink":
        """Open a nested scope on the owning builder."""
        self._owner.nested(path, configurator, score_mode)
        return self


class BoolScope[P: "BoolComposer"](ClauseSink[P]):
    """One-shot scope: the next clause lands in the occurrence, then control returns to the parent."""

    def __init__(self, target: list[Clause], parent: P) -> None:
        """Bind to an occurrence list and the builder that opened the scope."""
        self._target: list[Clause] = target
        self._parent: P = parent

    @override
    def _add(self, clause: Clause) -> P:
        self._target.append(clause)
        return self._parent

    def nested(
        self,
        path: str,
        configurator: Callable[[Any], Any],
        score_mode: str | None = None,
    ) -> P:
        """Open a nested scope on the parent builder and return to it."""
        return self._parent.nested(path, configurator, score_mode)


BoolConfigurator = Callable[[OccurrenceSink], Any]


class BoolComposer(ABC):
    """Mixin adding must/must_not/should/filter entry points to a builder."""

    @abstractmethod
    def _bool_group(self) -> BoolGroup:
        """Return the group that boolean calls write into."""

    @abstractmethod
    def nested(
        self,
        path: str,
        configurator: Callable[[Any], Any],
        score_mode: str | None = None,
    ) -> Self:
        """Add clauses scoped to the nested documents under `path`."""

    def _occurrence(
        self, occurrence: BoolOccurrence, configurator: BoolConfigurator | None
    ) -> "BoolScope[Self] | Self":
        target = self._bool_group().clauses(occurrence)
        if configurator is None:
            return BoolScope(target, self)
        configurator(OccurrenceSink(target, self))
        return self

    @overload
    def must(self, configurator: None = None) -> BoolScope[Self]: ...
    @overload
    def must(self, configurator: BoolConfigurator) -> Self: ...
    def must(self, configurator: BoolConfigurator | None = None) -> BoolScope[Self] | Self:
        """Route clauses into `must` (AND, scored)."""
        return self._occurrence("must", configurator)

    @overload
    def must_not(self, configurator: None = None) -> BoolScope[Self]: ...
    @overload
    def must_not(self, configurator: BoolConfigurator) -> Self: ...
    def must_not(
        self, configurator: BoolConfigurator | None = None
    ) -> BoolScope[Self] | Self:
        """Route clauses into `must_not` (AND NOT)."""
        return self._occurrence("must_not", configurator)

    @overload
    def should(self, configurator: None = None) -> BoolScope[Self]: ...
    @overload
    def should(self, configurator: BoolConfigurator) -> Self: ...
    def should(
        self, configurator: BoolConfigurator | None = None
    ) -> BoolScope[Self] | Self:
        """Route clauses into `should` (OR, boosts score)."""
        return self._occurrence("should", configurator)

    @overload
    def filter(self, configurator: None = None) -> BoolScope[Self]: ...
    @overload
    def filter(self, configurator: BoolConfigurator) -> Self: ...
    def filter(
        self, configurator: BoolConfigurator | None = None
    ) -> BoolScope[Self] | Self:
        """Route clauses into `filter` (AND, unscored)."""
        return self._occurrence("filter", configurator)

    def minimum_should_match(self, value: int | str) -> Self:
        """Set how many `should` clauses must match."""
        self._bool_group().options["minimum_should_match"] = value
        return self

    def boost(self, value: float) -> Self:
        """Set the boost of the bool query."""
        self._bool_group().options["boost"] = value
        return self
