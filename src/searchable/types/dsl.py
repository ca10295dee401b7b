from collections.abc import Mapping
from typing import Any, Literal, NotRequired, TypedDict

Scalar = str | int | float | bool | None
Options = Mapping[str, Scalar]

SortDirection = Literal["asc", "desc"]
RangeOperator = Literal["gte", "gt", "lte", "lt"]
RANGE_OPERATORS: tuple[RangeOperator, ...] = ("gte", "gt", "lte", "lt")

BoolOccurrence = Literal["must", "must_not", "should", "filter"]
BOOL_OCCURRENCES: tuple[BoolOccurrence, ...] = ("must", "must_not", "should", "filter")

ClauseDict = dict[str, Any]


class ESBooleanQuery(TypedDict):
    """An Elasticsearch boolean query."""

    must: NotRequired[list[ClauseDict]]
    must_not: NotRequired[list[ClauseDict]]
    should: NotRequired[list[ClauseDict]]
    filter: NotRequired[list[ClauseDict]]
    minimum_should_match: NotRequired[int | str]
    boost: NotRequired[float]


class ESNestedQuery(TypedDict):
    """An Elasticsearch nested query."""

    path: str
    query: ClauseDict
    score_mode: NotRequired[str]


class ESSuggester(TypedDict):
    """A single named suggester in the `suggest` section."""

    text: str
    term: NotRequired[dict[str, Any]]
    phrase: NotRequired[dict[str, Any]]
    completion: NotRequired[dict[str, Any]]


RequestDocument = TypedDict(
    "RequestDocument",
    {
        "query": NotRequired[ClauseDict],
        "sort": NotRequired[list[dict[str, SortDirection]]],
        "from": NotRequired[int],
        "size": NotRequired[int],
        "_source": NotRequired[list[str]],
        "min_score": NotRequired[float],
        "highlight": NotRequired[dict[str, Any]],
        "aggs": NotRequired[dict[str, Any]],
        "suggest": NotRequired[dict[str, ESSuggester]],
    },
)
"""A compiled Elasticsearch request body."""


class ESTotal(TypedDict):
    """Total hits as reported by Elasticsearch 7+."""

    value: int
    relation: str


class ESDocument(TypedDict):
    """A single hit returned from Elasticsearch."""

    _id: str
    _index: NotRequired[str]
    _score: NotRequired[float | None]
    _source: NotRequired[dict[str, Any]]
    sort: NotRequired[list[Any]]
    highlight: NotRequired[dict[str, list[str]]]


class ESHits(TypedDict):
    """A collection of Elasticsearch documents returned as hits."""

    total: NotRequired[ESTotal | int]
    max_score: NotRequired[float | None]
    hits: list[ESDocument]


class ESResponse(TypedDict):
    """An Elasticsearch search response."""

    took: NotRequired[int]
    timed_out: NotRequired[bool]
    hits: ESHits
    aggregations: NotRequired[dict[str, Any]]
    suggest: NotRequired[dict[str, list[dict[str, Any]]]]


class ESBulkItemResult(TypedDict):
    """Result of one action inside a bulk response."""

    _id: str
    _index: NotRequired[str]
    status: int
    result: NotRequired[str]
    error: NotRequired[dict[str, Any]]


class ESBulkResponse(TypedDict):
    """An Elasticsearch bulk response."""

    took: NotRequired[int]
    errors: bool
    items: list[dict[str, ESBulkItemResult]]
