from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

from searchable.types.dsl import ESBulkResponse, ESResponse, RequestDocument


class SearchTransport(ABC):
    """Hands compiled documents to a search backend.

    The transport is completely abstracted from the builders: it receives a request
    document (or bulk operations) and answers with the engine's raw response.
    """

    _failed: bool = False

    @property
    def is_failed(self) -> bool:
        """Returns True if the backend connection has failed unrecoverably."""
        return self._failed

    @abstractmethod
    async def connect(self) -> None:
        """Initialize a persistent connection to the search backend."""

    @abstractmethod
    async def search(self, index: str, body: RequestDocument) -> ESResponse:
        """Run a search request against `index` and return the raw response."""

    @abstractmethod
    async def bulk(
        self, operations: Sequence[dict[str, Any]], index: str
    ) -> ESBulkResponse:
        """Send a batch of bulk actions in a single request."""

    @abstractmethod
    async def close(self) -> None:
        """Close the connection so the application can wrap up."""
