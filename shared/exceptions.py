"""Exception hierarchy for the RAG index.

Backend clients raise the subclass matching their client type, services let
them propagate. Only the sync coordinator wraps a failure (SyncAbortedError)
so that callers also receive the partial progress of the run.
"""

from typing import Any


class RAGIndexError(Exception):
    """Base exception for all RAG index errors."""
    pass


class ClientRequestError(RAGIndexError):
    """A request against a backend failed (transport error or bad status)."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class EmbeddingError(ClientRequestError):
    """Embedding backend unreachable, bad status, malformed body, dimension or count mismatch."""
    pass


class StoreError(ClientRequestError):
    """Failure against the chunk store, the document store or the watermark store."""
    pass


class ConfigurationUnavailable(RAGIndexError):
    """No embedding credentials could be resolved, retrieval is not possible."""
    pass


class SyncAbortedError(RAGIndexError):
    """A sync run stopped on a hard failure.

    Attributes:
        stats: The partial SyncStats of the run (documents processed before the failure).
    """

    def __init__(self, message: str, stats: Any):
        super().__init__(message)
        self.stats = stats
