"""Aggregation tree and its fluent builder.

Nodes are registered by name into the current scope; `within()` opens the
children of an existing bucket node. A bucket's `children` stays `None` until
something is registered under it, so the compiler can tell "no sub-aggregations"
apart from an empty mapping and omit the `aggs` key.
"""

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Literal, Self

from searchable.dsl.clauses import Clause
from searchable.errors import DuplicateAggregationNameError, InvalidAggregationError

MetricType = Literal[
    "avg",
    "sum",
    "min",
    "max",
    "stats",
    "extended_stats",
    "cardinality",
    "value_count",
    "percentiles",
]
BucketType = Literal["terms", "date_histogram", "histogram", "range", "filter", "nested"]
PipelineType = Literal[
    "avg_bucket",
    "sum_bucket",
    "max_bucket",
    "min_bucket",
    "cumulative_sum",
    "derivative",
]


@dataclass(frozen=True, kw_only=True, slots=True)
class Metric:
    """Single-value or multi-value metric over a field."""

    type: MetricType
    field: str
    options: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, kw_only=True, slots=True)
class Pipeline:
    """Aggregation computed from the output of sibling aggregations."""

    type: PipelineType
    buckets_path: str
    options: Mapping[str, Any] = field(default_factory=dict)


@dataclass(kw_only=True, slots=True)
class Bucket:
    """Partition of matching documents; may own sub-aggregations."""

    type: BucketType
    params: Mapping[str, Any]
    filter_clause: Clause | None = None
    children: dict[str, "AggregationNode"] | None = None

    def child_scope(self) -> dict[str, "AggregationNode"]:
        """Return the children mapping, creating it on first use."""
        if self.children is None:
            self.children = {}
        return self.children


AggregationNode = Metric | Bucket | Pipeline


@dataclass(slots=True)
class AggregationState:
    """Root aggregations keyed by name, in registration order."""

    roots: dict[str, AggregationNode] = field(default_factory=dict)


def _require(value: str, what: str) -> str:
    if not isinstance(value, str) or not value:
        raise InvalidAggregationError(f"Aggregation {what} must be a non-empty string")
    return value


class AggregationBuilder:
    """Registers aggregation nodes into one scope of the tree."""

    def __init__(
        self,
        scope: dict[str, AggregationNode] | None = None,
        owner: Bucket | None = None,
    ) -> None:
        """Bind to an existing scope mapping, or to a bucket's (lazy) children."""
        self._scope: dict[str, AggregationNode] | None = scope
        self._owner: Bucket | None = owner

    def _register(self, name: str, node: AggregationNode) -> Self:
        _require(name, "name")
        if self._scope is None:
            if self._owner is None:
                raise InvalidAggregationError("Aggregation builder is not bound to a scope")
            self._scope = self._owner.child_scope()
        if name in self._scope:
            raise DuplicateAggregationNameError(name)
        self._scope[name] = node
        return self

    def _metric(
        self, type_: MetricType, name: str, field_: str, options: Mapping[str, Any] | None
    ) -> Self:
        return self._register(
            name, Metric(type=type_, field=_require(field_, "field"), options=dict(options or {}))
        )

    def _bucket(self, name: str, type_: BucketType, params: dict[str, Any]) -> Self:
        return self._register(name, Bucket(type=type_, params=params))

    def _pipeline(
        self, type_: PipelineType, name: str, buckets_path: str, options: Mapping[str, Any] | None
    ) -> Self:
        return self._register(
            name,
            Pipeline(
                type=type_,
                buckets_path=_require(buckets_path, "buckets_path"),
                options=dict(options or {}),
            ),
        )

    # Metrics

    def average(self, name: str, field: str, options: Mapping[str, Any] | None = None) -> Self:
        """Average of a numeric field."""
        return self._metric("avg", name, field, options)

    avg = average

    def sum(self, name: str, field: str, options: Mapping[str, Any] | None = None) -> Self:
        """Sum of a numeric field."""
        return self._metric("sum", name, field, options)

    def min(self, name: str, field: str, options: Mapping[str, Any] | None = None) -> Self:
        """Minimum of a numeric field."""
        return self._metric("min", name, field, options)

    def max(self, name: str, field: str, options: Mapping[str, Any] | None = None) -> Self:
        """Maximum of a numeric field."""
        return self._metric("max", name, field, options)

    def stats(self, name: str, field: str, options: Mapping[str, Any] | None = None) -> Self:
        """Count, min, max, avg and sum of a numeric field."""
        return self._metric("stats", name, field, options)

    def extended_stats(
        self, name: str, field: str, options: Mapping[str, Any] | None = None
    ) -> Self:
        return self._metric("extended_stats", name, field, options)

    def cardinality(
        self, name: str, field: str, options: Mapping[str, Any] | None = None
    ) -> Self:
        """Approximate count of distinct values."""
        return self._metric("cardinality", name, field, options)

    def value_count(
        self, name: str, field: str, options: Mapping[str, Any] | None = None
    ) -> Self:
        return self._metric("value_count", name, field, options)

    def percentiles(
        self,
        name: str,
        field: str,
        percents: Sequence[float] | None = None,
        options: Mapping[str, Any] | None = None,
    ) -> Self:
        """Percentiles of a numeric field, engine defaults unless `percents` given."""
        merged = dict(options or {})
        if percents is not None:
            merged["percents"] = list(percents)
        return self._metric("percentiles", name, field, merged)

    # Buckets

    def terms(self, name: str, field: str, options: Mapping[str, Any] | None = None) -> Self:
        """One bucket per distinct value, e.g. `{"size": 10, "order": {"_count": "desc"}}`."""
        return self._bucket(name, "terms", {"field": _require(field, "field"), **(options or {})})

    def date_histogram(
        self,
        name: str,
        field: str,
        calendar_interval: str | None = None,
        options: Mapping[str, Any] | None = None,
    ) -> Self:
        """Buckets by date interval; pass `fixed_interval` through `options` instead if needed."""
        params: dict[str, Any] = {"field": _require(field, "field")}
        if calendar_interval is not None:
            params["calendar_interval"] = calendar_interval
        params.update(options or {})
        return self._bucket(name, "date_histogram", params)

    def histogram(
        self,
        name: str,
        field: str,
        interval: float,
        options: Mapping[str, Any] | None = None,
    ) -> Self:
        """Fixed-width numeric buckets."""
        if interval <= 0:
            raise InvalidAggregationError(f"Histogram interval must be positive, got {interval}")
        return self._bucket(
            name,
            "histogram",
            {"field": _require(field, "field"), "interval": interval, **(options or {})},
        )

    def range(
        self,
        name: str,
        field: str,
        ranges: Sequence[Mapping[str, Any]],
        options: Mapping[str, Any] | None = None,
    ) -> Self:
        """Buckets for explicit ranges, e.g. `[{"to": 50}, {"from": 50}]`."""
        if not ranges:
            raise InvalidAggregationError(f"Range aggregation '{name}' requires at least one range")
        return self._bucket(
            name,
            "range",
            {
                "field": _require(field, "field"),
                "ranges": [dict(r) for r in ranges],
                **(options or {}),
            },
        )

    def filter(self, name: str, clause: Clause) -> Self:
        """Single bucket of the documents matching `clause`."""
        return self._register(name, Bucket(type="filter", params={}, filter_clause=clause))

    def nested(self, name: str, path: str) -> Self:
        """Single bucket over the nested documents under `path`."""
        return self._bucket(name, "nested", {"path": _require(path, "path")})

    # Pipelines

    def avg_bucket(
        self, name: str, buckets_path: str, options: Mapping[str, Any] | None = None
    ) -> Self:
        return self._pipeline("avg_bucket", name, buckets_path, options)

    def sum_bucket(
        self, name: str, buckets_path: str, options: Mapping[str, Any] | None = None
    ) -> Self:
        return self._pipeline("sum_bucket", name, buckets_path, options)

    def max_bucket(
        self, name: str, buckets_path: str, options: Mapping[str, Any] | None = None
    ) -> Self:
        return self._pipeline("max_bucket", name, buckets_path, options)

    def min_bucket(
        self, name: str, buckets_path: str, options: Mapping[str, Any] | None = None
    ) -> Self:
        return self._pipeline("min_bucket", name, buckets_path, options)

    def cumulative_sum(
        self, name: str, buckets_path: str, options: Mapping[str, Any] | None = None
    ) -> Self:
        """Running total across the buckets of the parent histogram."""
        return self._pipeline("cumulative_sum", name, buckets_path, options)

    def derivative(
        self, name: str, buckets_path: str, options: Mapping[str, Any] | None = None
    ) -> Self:
        """Change between consecutive buckets of the parent histogram."""
        return self._pipeline("derivative", name, buckets_path, options)

    # Scoping

    def within(self, name: str, configurator: Callable[["AggregationBuilder"], Any]) -> Self:
        """Register sub-aggregations under the bucket named `name` in this scope."""
        node = (self._scope or {}).get(name)
        if node is None:
            raise InvalidAggregationError(f"No aggregation named '{name}' in this scope")
        if not isinstance(node, Bucket):
            raise InvalidAggregationError(
                f"Aggregation '{name}' is a {node.type} aggregation and cannot hold sub-aggregations"
            )
        configurator(AggregationBuilder(node.children, owner=node))
        return self
