from collections.abc import Sequence
from typing import Any, cast, override

import pytest

from searchable.errors import TransportConnectionError
from searchable.sync.bulk import (
    BulkOutcome,
    DocumentSynchronizer,
    SourceRecord,
    delete_operations,
    index_operations,
    update_operations,
)
from searchable.transport.base import SearchTransport
from searchable.types.dsl import ESBulkResponse, ESResponse, RequestDocument


def bulk_response(took: int, *items: dict[str, Any]) -> ESBulkResponse:
    return cast(ESBulkResponse, cast(object, {"took": took, "errors": False, "items": list(items)}))


class BulkRecordingTransport(SearchTransport):
    """Records bulk calls and replays one canned response."""

    def __init__(self, response: ESBulkResponse | None = None, error: Exception | None = None) -> None:
        self.response = response
        self.error = error
        self.calls: list[tuple[list[dict[str, Any]], str]] = []

    @override
    async def connect(self) -> None:
        return None

    @override
    async def search(self, index: str, body: RequestDocument) -> ESResponse:
        raise NotImplementedError

    @override
    async def bulk(self, operations: Sequence[dict[str, Any]], index: str) -> ESBulkResponse:
        self.calls.append((list(operations), index))
        if self.error is not None:
            raise self.error
        return cast(ESBulkResponse, self.response)

    @override
    async def close(self) -> None:
        return None


RECORDS = [
    SourceRecord(id="1", fields={"title": "Quick fox"}),
    SourceRecord(id="2", fields={"title": "Lazy dog"}),
    SourceRecord(id="3", fields={"title": "Sleepy cat"}),
]


def test_operation_builders():
    assert index_operations(RECORDS[:1]) == [{"index": {"_id": "1"}}, {"title": "Quick fox"}]
    assert update_operations(RECORDS[:1]) == [
        {"update": {"_id": "1"}},
        {"doc": {"title": "Quick fox"}, "doc_as_upsert": True},
    ]
    assert delete_operations(["1", "2"]) == [{"delete": {"_id": "1"}}, {"delete": {"_id": "2"}}]


@pytest.mark.asyncio
async def test_save_sends_one_request_and_reports_per_record():
    transport = BulkRecordingTransport(
        bulk_response(
            12,
            {"update": {"_id": "1", "status": 200, "result": "updated"}},
            {
                "update": {
                    "_id": "2",
                    "status": 400,
                    "error": {"type": "mapper_parsing_exception", "reason": "failed to parse [title]"},
                }
            },
            {"update": {"_id": "3", "status": 201, "result": "created"}},
        )
    )

    report = await DocumentSynchronizer(transport, index="posts").save(RECORDS)

    assert len(transport.calls) == 1
    operations, index = transport.calls[0]
    assert index == "posts"
    assert len(operations) == 6
    assert [o.id for o in report.outcomes] == ["1", "2", "3"]
    assert report.took == 12
    assert report.has_errors
    assert report.failed_ids == ["2"]
    assert [o.id for o in report.succeeded] == ["1", "3"]
    assert report.failed[0].error == {"type": "mapper_parsing_exception", "reason": "failed to parse [title]"}


@pytest.mark.asyncio
async def test_reindex_uses_full_document_actions():
    transport = BulkRecordingTransport(
        bulk_response(3, {"index": {"_id": "1", "status": 200, "result": "updated"}})
    )
    report = await DocumentSynchronizer(transport, index="posts").reindex(RECORDS[:1])

    assert transport.calls[0][0] == [{"index": {"_id": "1"}}, {"title": "Quick fox"}]
    assert not report.has_errors


@pytest.mark.asyncio
async def test_delete_accepts_records_and_ids_and_tolerates_missing_documents():
    transport = BulkRecordingTransport(
        bulk_response(
            2,
            {"delete": {"_id": "1", "status": 200, "result": "deleted"}},
            {"delete": {"_id": "missing", "status": 404, "result": "not_found"}},
        )
    )
    report = await DocumentSynchronizer(transport, index="posts").delete([RECORDS[0], "missing"])

    assert transport.calls[0][0] == [{"delete": {"_id": "1"}}, {"delete": {"_id": "missing"}}]
    assert not report.has_errors
    assert report.failed_ids == []


@pytest.mark.parametrize(
    "outcome, ok",
    [
        (BulkOutcome(id="1", action="index", status=201), True),
        (BulkOutcome(id="1", action="update", status=404), False),
        (BulkOutcome(id="1", action="delete", status=404), True),
        (BulkOutcome(id="1", action="index", status=429), False),
        (BulkOutcome(id="1", action="delete", status=200, error={"type": "x"}), False),
    ],
)
def test_outcome_ok(outcome: BulkOutcome, ok: bool):
    assert outcome.ok is ok


@pytest.mark.asyncio
async def test_empty_batch_makes_no_request():
    transport = BulkRecordingTransport()
    synchronizer = DocumentSynchronizer(transport, index="posts")

    for report in (await synchronizer.save([]), await synchronizer.reindex([]), await synchronizer.delete([])):
        assert report.outcomes == ()
        assert not report.has_errors

    assert transport.calls == []


@pytest.mark.asyncio
async def test_records_are_not_mutated():
    fields = {"title": "Quick fox", "tags": ["a"]}
    record = SourceRecord(id="1", fields=fields)
    transport = BulkRecordingTransport(
        bulk_response(1, {"update": {"_id": "1", "status": 200, "result": "noop"}})
    )

    await DocumentSynchronizer(transport, index="posts").save([record])
    transport.calls[0][0][1]["doc"]["title"] = "changed"

    assert record.fields == {"title": "Quick fox", "tags": ["a"]}


@pytest.mark.asyncio
async def test_whole_request_failure_is_raised():
    transport = BulkRecordingTransport(error=TransportConnectionError("cluster unreachable"))
    with pytest.raises(TransportConnectionError):
        await DocumentSynchronizer(transport, index="posts").delete(["1"])
    assert len(transport.calls) == 1


def test_synchronizer_defaults_to_configured_index():
    assert DocumentSynchronizer(BulkRecordingTransport()).index == "documents"
