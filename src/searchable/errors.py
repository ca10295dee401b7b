from typing import Any


class SearchableError(Exception):
    """Base class for all errors raised by searchable."""


class InvalidClauseError(SearchableError, ValueError):
    """A query clause was built from malformed arguments."""


class InvalidPaginationError(SearchableError, ValueError):
    """Pagination was requested with a non-positive size or page."""


class DuplicateAggregationNameError(SearchableError, KeyError):
    """An aggregation name was registered twice in the same scope."""

    def __init__(self, name: str) -> None:
        """Record the offending aggregation name."""
        super().__init__(name)
        self.name: str = name

    def __str__(self) -> str:
        """Render without KeyError's repr quoting."""
        return f"Aggregation '{self.name}' is already registered in this scope."


class InvalidAggregationError(SearchableError, ValueError):
    """An aggregation was registered or scoped incorrectly."""


class TransportError(SearchableError):
    """Any failure reported by the network collaborator."""


class TransportConnectionError(TransportError):
    """The search engine could not be reached."""


class RequestRejectedError(TransportError):
    """The search engine answered, but rejected the request.

    The engine's diagnostic payload is kept on `info` so callers can inspect
    the root cause (e.g. a `parsing_exception` with its reason).
    """

    def __init__(self, message: str, status: int, info: Any = None) -> None:
        """Keep the engine's status code and diagnostic body."""
        super().__init__(message)
        self.status: int = status
        self.info: Any = info
