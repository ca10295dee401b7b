"""Fluent query builder.

A `QueryBuilder` accumulates clauses, bool composition, nested scopes, sorting,
pagination, aggregations and suggesters, then compiles them into a request
document (`to_dsl()`) or sends that document through a transport (`execute()`).

    builder = (
        QueryBuilder(index="posts")
        .must().match("title", "elasticsearch")
        .filter().range("published", {"gte": "2024-01-01"})
        .nested("tags", lambda b: b.term("tags.name", "search"))
        .order_by("published", "desc")
        .paginate(20, page=2)
    )

Leaf calls made before any bool method set a single bare clause (the last one
wins). As soon as boolean composition starts (must/must_not/should/filter,
bool options or `nested`), the query is compiled under `bool` and a bare clause
set earlier becomes the first `must` entry.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Self, override

import orjson
from loguru import logger as log

from searchable.config.general import CONFIG
from searchable.dsl.aggregations import AggregationBuilder, AggregationState
from searchable.dsl.boolean import BoolComposer, BoolGroup, ClauseSink
from searchable.dsl.clauses import Clause
from searchable.dsl.compiler import compile_request
from searchable.dsl.suggestions import SuggestionBuilder, SuggestionState
from searchable.errors import InvalidClauseError, InvalidPaginationError
from searchable.transport.base import SearchTransport
from searchable.transport.results import Hydrator, SearchResult
from searchable.types.dsl import RequestDocument, Scalar, SortDirection


@dataclass(slots=True)
class NestedScope:
    """Clauses scoped to the sub-documents under `path`."""

    path: str
    group: BoolGroup = field(default_factory=BoolGroup)
    children: dict[str, "NestedScope"] = field(default_factory=dict)
    options: dict[str, Scalar] = field(default_factory=dict)

    def scope(self, path: str) -> "NestedScope":
        """Get or open the child scope at `path`."""
        return open_scope(self.children, path)


def open_scope(scopes: dict[str, NestedScope], path: str) -> NestedScope:
    """Get the scope for `path` from `scopes`, opening it if new."""
    if not isinstance(path, str) or not path:
        raise InvalidClauseError(f"Nested path must be a non-empty string, got {path!r}")
    if path not in scopes:
        scopes[path] = NestedScope(path=path)
    return scopes[path]


@dataclass(slots=True)
class QueryState:
    """Everything a query builder has accumulated so far."""

    clause: Clause | None = None
    group: BoolGroup | None = None
    nested: dict[str, NestedScope] = field(default_factory=dict)
    sort: dict[str, SortDirection] = field(default_factory=dict)
    offset: int | None = None
    limit: int | None = None
    source: list[str] | None = None
    min_score: float | None = None
    highlight: dict[str, dict[str, Any]] = field(default_factory=dict)

    def compose(self) -> BoolGroup:
        """Switch to boolean composition, moving a bare clause into `must`."""
        if self.group is None:
            self.group = BoolGroup()
            if self.clause is not None:
                self.group.clauses("must").append(self.clause)
                self.clause = None
        return self.group


NestedConfigurator = Callable[["NestedBuilder"], Any]


class NestedBuilder(ClauseSink["NestedBuilder"], BoolComposer):
    """Builder handed to `nested()` configurators; writes only into its scope.

    Leaf calls land in the scope's `must`; bool methods and deeper `nested()`
    calls work as they do on the top-level builder.
    """

    def __init__(self, scope: NestedScope) -> None:
        """Bind to the scope being configured."""
        self._scope: NestedScope = scope

    @override
    def _add(self, clause: Clause) -> "NestedBuilder":
        self._scope.group.clauses("must").append(clause)
        return self

    @override
    def _bool_group(self) -> BoolGroup:
        return self._scope.group

    @override
    def nested(
        self,
        path: str,
        configurator: NestedConfigurator,
        score_mode: str | None = None,
    ) -> Self:
        """Open (or re-open) a child scope at `path`."""
        child = self._scope.scope(path)
        if score_mode is not None:
            child.options["score_mode"] = score_mode
        configurator(NestedBuilder(child))
        return self


class QueryBuilder(ClauseSink["QueryBuilder"], BoolComposer):
    """Top-level fluent accumulator for a single search request.

    Builders are meant to be owned by one caller from construction until
    `to_dsl()`/`execute()`; they are not synchronized.
    """

    def __init__(
        self,
        index: str | None = None,
        transport: SearchTransport | None = None,
        hydrator: Hydrator | None = None,
    ) -> None:
        """Create an empty builder, optionally bound to an index and transport."""
        self.index: str = index or CONFIG.elasticsearch.index_name
        self.transport: SearchTransport | None = transport
        self.hydrator: Hydrator | None = hydrator
        self.state: QueryState = QueryState()
        self.aggregations: AggregationState = AggregationState()
        self.suggestions: SuggestionState = SuggestionState()

    @override
    def _add(self, clause: Clause) -> "QueryBuilder":
        if self.state.group is None:
            self.state.clause = clause
        else:
            self.state.group.clauses("must").append(clause)
        return self

    @override
    def _bool_group(self) -> BoolGroup:
        return self.state.compose()

    @override
    def nested(
        self,
        path: str,
        configurator: NestedConfigurator,
        score_mode: str | None = None,
    ) -> Self:
        """Add clauses that apply to the nested documents under `path`.

        Calls with the same path share one scope. The compiled `nested` clause
        always joins the outer `must`, after the other must clauses.
        """
        self.state.compose()
        scope = open_scope(self.state.nested, path)
        if score_mode is not None:
            scope.options["score_mode"] = score_mode
        configurator(NestedBuilder(scope))
        return self

    def order_by(self, field: str, direction: str = "asc") -> Self:
        """Sort by `field`; sorting on the same field again replaces its direction."""
        if not isinstance(field, str) or not field:
            raise InvalidClauseError(f"Sort field must be a non-empty string, got {field!r}")
        if not isinstance(direction, str) or direction.lower() not in ("asc", "desc"):
            raise InvalidClauseError(f"Sort direction must be 'asc' or 'desc', got {direction!r}")
        self.state.sort[field] = direction.lower()  # pyright:ignore[reportArgumentType] checked above
        return self

    def paginate(self, size: int, page: int = 1) -> Self:
        """Request page `page` (1-based) of `size` hits: `from = size * (page - 1)`."""
        if size <= 0:
            raise InvalidPaginationError(f"Page size must be positive, got {size}")
        if page < 1:
            raise InvalidPaginationError(f"Page number must be at least 1, got {page}")
        self.state.limit = size
        self.state.offset = size * (page - 1)
        return self

    def from_(self, offset: int) -> Self:
        """Skip the first `offset` hits."""
        if offset < 0:
            raise InvalidPaginationError(f"Offset must not be negative, got {offset}")
        self.state.offset = offset
        return self

    def size(self, size: int) -> Self:
        """Return at most `size` hits."""
        if size <= 0:
            raise InvalidPaginationError(f"Page size must be positive, got {size}")
        self.state.limit = size
        return self

    def select(self, *fields: str) -> Self:
        """Only return these `_source` fields."""
        for field in fields:
            if not isinstance(field, str) or not field:
                raise InvalidClauseError(f"Source field must be a non-empty string, got {field!r}")
        self.state.source = list(fields)
        return self

    def highlight(self, field: str, **options: Any) -> Self:
        """Highlight matches in `field`, e.g. `highlight("body", fragment_size=150)`."""
        if not field:
            raise InvalidClauseError("Highlight field must be a non-empty string")
        self.state.highlight[field] = options
        return self

    def min_score(self, score: float) -> Self:
        """Drop hits scoring below `score`."""
        self.state.min_score = score
        return self

    def aggregate(self, configurator: Callable[[AggregationBuilder], Any]) -> Self:
        """Register aggregations; repeated calls add to the same root scope."""
        configurator(AggregationBuilder(self.aggregations.roots))
        return self

    def suggest(self, configurator: Callable[[SuggestionBuilder], Any]) -> Self:
        """Register suggesters."""
        configurator(SuggestionBuilder(self.suggestions))
        return self

    def to_dsl(self) -> RequestDocument:
        """Compile the accumulated state without executing it."""
        return compile_request(self.state, self.aggregations, self.suggestions)

    def to_json(self) -> bytes:
        """Compile and serialize to JSON bytes."""
        return orjson.dumps(self.to_dsl())

    async def execute(self) -> SearchResult:
        """Compile, send through the transport and wrap the response."""
        if self.transport is None:
            raise RuntimeError("QueryBuilder needs a transport to execute queries.")

        document = self.to_dsl()
        log.bind(index=self.index).opt(lazy=True).debug(
            "Executing search: {}",
            lambda: orjson.dumps(document, default=str).decode(),
        )
        response = await self.transport.search(self.index, document)

        result = SearchResult.from_response(response, self.hydrator)
        log.bind(index=self.index).debug(
            f"Search returned {len(result.hits)} of {result.total} hits in {result.took}ms"
        )
        return result

    async def get(self) -> SearchResult:
        """Alias of `execute()`."""
        return await self.execute()
