"""Batch synchronization of source records into an index.

Each `save`/`reindex`/`delete` call issues exactly one `_bulk` request. Items the
engine rejects are reported per record instead of failing the whole batch, so
the caller can retry just `report.failed`. A failure of the request itself
(unreachable cluster, malformed body) is raised as a `TransportError`.
"""

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Literal

from loguru import logger as log

from searchable.config.general import CONFIG
from searchable.transport.base import SearchTransport
from searchable.types.dsl import ESBulkResponse

BulkAction = Literal["index", "update", "delete"]

HTTP_NOT_FOUND = 404


@dataclass(frozen=True, kw_only=True, slots=True)
class SourceRecord:
    """A document as supplied by the application: its id and field values."""

    id: str
    fields: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, kw_only=True, slots=True)
class BulkOutcome:
    """What happened to one record of a bulk request."""

    id: str
    action: BulkAction
    status: int
    result: str | None = None
    error: dict[str, Any] | None = None

    @property
    def ok(self) -> bool:
        """Whether the engine applied the action; deleting a missing document counts."""
        if self.error is not None:
            return False
        if self.action == "delete" and self.status == HTTP_NOT_FOUND:
            return True
        return 200 <= self.status < 300  # noqa: PLR2004


@dataclass(frozen=True, kw_only=True, slots=True)
class BulkReport:
    """Per-record outcomes of one bulk call, in input order."""

    index: str
    outcomes: tuple[BulkOutcome, ...] = ()
    took: int = 0

    @property
    def succeeded(self) -> list[BulkOutcome]:
        """Outcomes the engine applied."""
        return [o for o in self.outcomes if o.ok]

    @property
    def failed(self) -> list[BulkOutcome]:
        """Outcomes the engine rejected."""
        return [o for o in self.outcomes if not o.ok]

    @property
    def failed_ids(self) -> list[str]:
        """Ids worth retrying."""
        return [o.id for o in self.failed]

    @property
    def has_errors(self) -> bool:
        """True if any record was rejected."""
        return any(not o.ok for o in self.outcomes)


def index_operations(records: Iterable[SourceRecord]) -> list[dict[str, Any]]:
    """Full-document `index` actions."""
    operations: list[dict[str, Any]] = []
    for record in records:
        operations.extend([{"index": {"_id": record.id}}, dict(record.fields)])
    return operations


def update_operations(records: Iterable[SourceRecord]) -> list[dict[str, Any]]:
    """Partial `update` actions that create the document when it is missing."""
    operations: list[dict[str, Any]] = []
    for record in records:
        operations.extend(
            [
                {"update": {"_id": record.id}},
                {"doc": dict(record.fields), "doc_as_upsert": True},
            ]
        )
    return operations


def delete_operations(ids: Iterable[str]) -> list[dict[str, Any]]:
    """`delete` actions."""
    return [{"delete": {"_id": doc_id}} for doc_id in ids]


def parse_bulk_response(response: ESBulkResponse) -> list[BulkOutcome]:
    """Turn the `items` of a bulk response into outcomes, preserving order."""
    outcomes: list[BulkOutcome] = []
    for item in response.get("items", []):
        action, details = next(iter(item.items()))
        outcomes.append(
            BulkOutcome(
                id=str(details.get("_id")),
                action=action,  # pyright:ignore[reportArgumentType] engine only echoes our actions
                status=details.get("status", 0),
                result=details.get("result"),
                error=details.get("error"),
            )
        )
    return outcomes


class DocumentSynchronizer:
    """Keeps an index in step with application records."""

    def __init__(self, transport: SearchTransport, index: str | None = None) -> None:
        """Sync into `index`, or the configured default index."""
        self.transport: SearchTransport = transport
        self.index: str = index or CONFIG.elasticsearch.index_name

    async def _send(self, operations: Sequence[dict[str, Any]], count: int) -> BulkReport:
        if count == 0:
            return BulkReport(index=self.index)

        response = await self.transport.bulk(operations, index=self.index)
        report = BulkReport(
            index=self.index,
            outcomes=tuple(parse_bulk_response(response)),
            took=response.get("took", 0),
        )

        if report.has_errors:
            log.bind(index=self.index).warning(
                f"Bulk request applied {len(report.succeeded)}/{count} records, rejected: {report.failed_ids}"
            )
        else:
            log.bind(index=self.index).debug(f"Bulk request applied {count} records")
        return report

    async def save(self, records: Sequence[SourceRecord]) -> BulkReport:
        """Upsert the given fields of each record."""
        return await self._send(update_operations(records), len(records))

    async def reindex(self, records: Sequence[SourceRecord]) -> BulkReport:
        """Replace each stored document with the record's full field set."""
        return await self._send(index_operations(records), len(records))

    async def delete(self, records: Sequence[SourceRecord | str]) -> BulkReport:
        """Remove documents by record or id."""
        ids = [r if isinstance(r, str) else r.id for r in records]
        return await self._send(delete_operations(ids), len(ids))
