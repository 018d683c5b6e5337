"""Pydantic models for documents, chunks and sync state.

Hierarchy:
  Document      : a persona or private document as read from the document store.
  ChunkRow      : one embedded slice of a document, as written to the chunk store.
  ChunkMatch    : one ranked similarity hit returned by the chunk store.
  SyncWatermark : per-user (timestamp, id) cursor of the incremental sync.
  IndexResult   : outcome of re-indexing a single document.
  SyncStats     : outcome of one incremental sync run.
"""

from datetime import datetime, timezone

from pydantic import BaseModel, field_validator

PRIVATE_SCOPE_PREFIX = "private:"


def private_scope(user_id: str) -> str:
    """Return the scope marker for the private (persona-less) documents of a user.

    Args:
        user_id (str): The owning user.

    Returns:
        str: The scope string, e.g. "private:user-1".
    """
    return f"{PRIVATE_SCOPE_PREFIX}{user_id}"


def to_utc(value: datetime) -> datetime:
    """Normalise a datetime to timezone-aware UTC. Naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Document(BaseModel):
    """A freeform text document visible to a user.

    owner_scope is the persona id for persona documents and the private
    marker (see private_scope()) for private documents.
    """

    id: str
    owner_scope: str
    persona_id: str | None = None
    title: str | None = None
    content: str = ""
    updated_at: datetime
    is_folder: bool = False

    @field_validator("updated_at")
    @classmethod
    def _normalise_updated_at(cls, value: datetime) -> datetime:
        return to_utc(value)

    def get_cursor(self) -> tuple[datetime, str]:
        """Return the (updated_at, id) sort key used by the incremental sync."""
        return (self.updated_at, self.id)

    def build_index_text(self) -> str:
        """Return the text that gets chunked: title and content separated by a blank line."""
        title = (self.title or "").strip()
        return f"{title}\n\n{self.content}" if title else self.content


class ChunkRow(BaseModel):
    """One embedded chunk. Identity is (owner_user_id, doc_id, chunk_index)."""

    owner_user_id: str
    doc_id: str
    owner_scope: str
    chunk_index: int
    content: str
    embedding: list[float]
    doc_updated_at: datetime


class ChunkMatch(BaseModel):
    """A chunk-level similarity hit."""

    doc_id: str
    score: float
    chunk_index: int | None = None


class SyncWatermark(BaseModel):
    """How far the incremental sync of a user has progressed.

    Ordered lexicographically on (last_indexed_at, last_indexed_doc_id).
    """

    last_indexed_at: datetime
    last_indexed_doc_id: str

    @field_validator("last_indexed_at")
    @classmethod
    def _normalise_last_indexed_at(cls, value: datetime) -> datetime:
        return to_utc(value)

    def get_cursor(self) -> tuple[datetime, str]:
        return (self.last_indexed_at, self.last_indexed_doc_id)

    def is_before(self, document: Document) -> bool:
        """Whether the document lies strictly after this watermark and still needs indexing."""
        if document.updated_at > self.last_indexed_at:
            return True
        return document.updated_at == self.last_indexed_at and document.id > self.last_indexed_doc_id


class IndexResult(BaseModel):
    chunk_count: int = 0


class SyncStats(BaseModel):
    """Progress report of a sync run.

    indexed_at / indexed_doc_id hold the cursor of the last successfully
    processed document of this run, or None if nothing was processed.
    """

    docs_fetched: int = 0
    docs_indexed: int = 0
    chunks_indexed: int = 0
    indexed_at: datetime | None = None
    indexed_doc_id: str | None = None
