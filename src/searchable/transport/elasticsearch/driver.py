import asyncio
from collections.abc import Sequence
from typing import Any, NoReturn, cast, override

import orjson
from elasticsearch import AsyncElasticsearch
from elasticsearch import exceptions as es_exceptions
from loguru import logger as log
from opentelemetry import trace

from searchable.config.general import CONFIG
from searchable.errors import (
    RequestRejectedError,
    TransportConnectionError,
    TransportError,
)
from searchable.transport.base import SearchTransport
from searchable.types.dsl import ESBulkResponse, ESResponse, RequestDocument
from searchable.utils.general import Singleton

tracer = trace.get_tracer("searchable.transport.tracer")


def raise_transport_error(exc: Exception, action: str) -> NoReturn:
    """Re-raise an Elasticsearch client exception as a searchable TransportError."""
    if isinstance(exc, es_exceptions.ApiError):
        raise RequestRejectedError(
            f"Elasticsearch rejected {action}: {exc.message}",
            status=exc.meta.status,
            info=exc.body,
        ) from exc
    if isinstance(exc, es_exceptions.ConnectionError | es_exceptions.ConnectionTimeout):
        raise TransportConnectionError(
            f"Could not reach Elasticsearch during {action}: {exc}"
        ) from exc
    raise TransportError(f"Elasticsearch {action} failed: {exc}") from exc


class ElasticSearchDriver(SearchTransport, metaclass=Singleton):
    """An Elasticsearch transport."""

    es_connection: AsyncElasticsearch | None = None
    _failed: bool = False

    def setup_es_connection(self) -> None:
        """Setup connection to Elasticsearch instance."""
        settings = CONFIG.elasticsearch
        auth = None
        if settings.username is not None:
            password = settings.password.get_secret_value() if settings.password else ""
            auth = (settings.username, password)

        self.es_connection = AsyncElasticsearch(
            settings.url,
            basic_auth=auth,
            verify_certs=settings.verify_certs,
            request_timeout=settings.query_timeout,
        )

    async def check_es_connection(self) -> bool:
        """A thin layer around es.ping() method to check es connection."""
        # es.ping() always resolves to True/False, no try-catch needed
        if self.es_connection is None:
            raise ValueError(
                "ES Connection must be initialized before it can be tested."
            )
        is_connected = await self.es_connection.ping()

        if is_connected:
            log.success("Elasticsearch connection successful!")

        return is_connected

    async def retry_es_connection(self, retries: int) -> None:
        """Retry connection to Elasticsearch and raise exception if retries exceeded."""
        if retries < CONFIG.elasticsearch.connect_retries:
            await self.close()
            await asyncio.sleep(1)
            log.error(
                f"Could not establish connection to elasticsearch, trying again... retry {retries + 1}"
            )
            return await self.connect(retries + 1)

        # Retry limit reached
        self._failed = True
        try:
            connection_info = await cast(AsyncElasticsearch, self.es_connection).info()
        except Exception as e:
            log.error(f"Could not establish connection to elasticsearch, error: {e}")
            raise TransportConnectionError(
                f"Could not establish connection to elasticsearch at {CONFIG.elasticsearch.url}"
            ) from e
        finally:
            await self.close()

        # Corner case: ping() failed but info() succeeded
        log.error(
            f"Could not establish connection to elasticsearch, more info: {connection_info}"
        )
        raise TransportConnectionError(
            f"Could not establish connection to elasticsearch, info: {connection_info}"
        )

    @override
    async def connect(self, retries: int = 0) -> None:
        """Initialize a persistent connection to Elasticsearch instance."""
        log.info(f"Checking Elasticsearch connection at {CONFIG.elasticsearch.url}...")

        if self.es_connection is None:
            self.setup_es_connection()

        is_connected = await self.check_es_connection()

        if not is_connected:
            await self.retry_es_connection(retries)
        else:
            self._failed = False

    @override
    async def close(self) -> None:
        """Close connection to Elasticsearch instance, if present."""
        if self.es_connection is not None:
            await self.es_connection.close()
        self.es_connection = None

    def _require_connection(self) -> AsyncElasticsearch:
        if self.es_connection is None:
            raise RuntimeError(
                "Must use ElasticSearchDriver.connect() before sending requests."
            )
        return self.es_connection

    @override
    @tracer.start_as_current_span("elasticsearch_search")
    async def search(self, index: str, body: RequestDocument) -> ESResponse:
        """Send a compiled request document to the `_search` endpoint."""
        es_connection = self._require_connection()

        otel_span = trace.get_current_span()
        if otel_span.is_recording():
            otel_span.add_event(
                "elasticsearch_search_start",
                attributes={"index": index, "query_body": orjson.dumps(body, default=str).decode()},
            )

        try:
            response = await es_connection.search(index=index, body=dict(body))
        except es_exceptions.ApiError as e:
            log.exception("Elasticsearch search returned non-200 HTTP status")
            raise_transport_error(e, "search")
        except es_exceptions.TransportError as e:
            log.exception("Elasticsearch search encountered a transport error")
            raise_transport_error(e, "search")

        if otel_span.is_recording():
            otel_span.add_event("elasticsearch_search_end")

        return cast(ESResponse, response.body)

    @override
    @tracer.start_as_current_span("elasticsearch_bulk")
    async def bulk(
        self, operations: Sequence[dict[str, Any]], index: str
    ) -> ESBulkResponse:
        """Send bulk actions through the `_bulk` endpoint in one request."""
        es_connection = self._require_connection()

        try:
            response = await es_connection.bulk(
                operations=list(operations),
                index=index,
                refresh=CONFIG.elasticsearch.refresh_on_bulk,
            )
        except es_exceptions.ApiError as e:
            log.exception("Elasticsearch bulk request returned non-200 HTTP status")
            raise_transport_error(e, "bulk request")
        except es_exceptions.TransportError as e:
            log.exception("Elasticsearch bulk request encountered a transport error")
            raise_transport_error(e, "bulk request")

        return cast(ESBulkResponse, response.body)
