from collections.abc import Callable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Self

from searchable.types.dsl import ESDocument, ESResponse

Hydrator = Callable[[str, Mapping[str, Any]], Any]
"""Turns a hit's document id and `_source` into an application record."""


def source_only(_doc_id: str, source: Mapping[str, Any]) -> Any:
    """Default hydrator: the stored source document itself."""
    return source


@dataclass(frozen=True, kw_only=True, slots=True)
class SearchHit:
    """A single hit, as returned by the engine."""

    id: str
    index: str | None
    score: float | None
    source: dict[str, Any]
    sort: list[Any] | None = None
    highlight: dict[str, list[str]] | None = None

    @classmethod
    def from_dict(cls, doc: ESDocument) -> Self:
        """Parse one entry of `hits.hits`."""
        return cls(
            id=doc["_id"],
            index=doc.get("_index"),
            score=doc.get("_score"),
            source=doc.get("_source", {}),
            sort=doc.get("sort"),
            highlight=doc.get("highlight"),
        )


class HydratedRecords:
    """Lazy view over hits; every iteration hydrates from the start again."""

    def __init__(self, hits: Sequence[SearchHit], hydrator: Hydrator) -> None:
        """Keep hits and hydrator; nothing is hydrated until iteration."""
        self._hits: Sequence[SearchHit] = hits
        self._hydrator: Hydrator = hydrator

    def __iter__(self) -> Iterator[Any]:
        """Hydrate hits in rank order."""
        for hit in self._hits:
            yield self._hydrator(hit.id, hit.source)

    def __len__(self) -> int:
        """Number of hits on this page."""
        return len(self._hits)


@dataclass(frozen=True, kw_only=True, slots=True)
class SearchResult:
    """Search response with convenience accessors."""

    total: int
    max_score: float | None
    took: int
    timed_out: bool
    hits: tuple[SearchHit, ...]
    aggregations: dict[str, Any] = field(default_factory=dict)
    suggestions: dict[str, list[dict[str, Any]]] = field(default_factory=dict)
    hydrator: Hydrator = source_only

    @classmethod
    def from_response(cls, response: ESResponse, hydrator: Hydrator | None = None) -> Self:
        """Parse a raw search response."""
        if "hits" not in response:
            raise RuntimeError(f"Invalid ES response: no hits in response body: {response}")

        raw_total = response["hits"].get("total", 0)
        # ES 7+ reports {"value": n, "relation": "eq"}, older versions a bare int
        total = raw_total["value"] if isinstance(raw_total, Mapping) else int(raw_total)

        return cls(
            total=total,
            max_score=response["hits"].get("max_score"),
            took=response.get("took", 0),
            timed_out=response.get("timed_out", False),
            hits=tuple(SearchHit.from_dict(doc) for doc in response["hits"]["hits"]),
            aggregations=response.get("aggregations", {}),
            suggestions=response.get("suggest", {}),
            hydrator=hydrator or source_only,
        )

    @property
    def ids(self) -> list[str]:
        """Document ids in rank order."""
        return [hit.id for hit in self.hits]

    @property
    def records(self) -> HydratedRecords:
        """Hits hydrated through this result's hydrator."""
        return HydratedRecords(self.hits, self.hydrator)

    def hydrate(self, hydrator: Hydrator) -> HydratedRecords:
        """Hits hydrated through a different hydrator."""
        return HydratedRecords(self.hits, hydrator)
