"""Error taxonomy shared by the store, ingestor, repair tool and query engine.

Query outcomes carry the ``result`` code of the response envelope so the
API layer can map them without inspecting exception types one by one.
"""

from __future__ import annotations


class SchemaError(ValueError):
    """Raised when a row or snapshot does not match the declared columns."""

    def __init__(self, message: str, line: int | None = None) -> None:
        super().__init__(message)
        self.line = line


class ConflictError(Exception):
    """Raised when a write reuses an existing key with different content."""


class NotFound(LookupError):
    """Raised when a requested Version does not exist."""


class QueryError(Exception):
    """Base class for query outcomes that replace the result rows."""

    result: int = -1
    message: str = 'error'

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)
        if message:
            self.message = message


class TruncatedResult(QueryError):
    result = 2
    message = 'too many results'

    def __init__(self, n_rows: int, max_results: int) -> None:
        super().__init__()
        self.n_rows = n_rows
        self.max_results = max_results


class EmptyResult(QueryError):
    result = -2
    message = 'no results'


class QueryTimeout(QueryError, TimeoutError):
    result = -1
    message = 'query timed out'


class InvalidQuery(QueryError, ValueError):
    result = -1
    message = 'invalid query parameters'
