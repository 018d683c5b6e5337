"""VectorPoint model: metadata stored alongside each chunk vector in a RAG backend."""

from pydantic import BaseModel

from shared.models.document import ChunkRow


class VectorPoint(BaseModel):
    """Payload stored alongside each chunk vector.

    owner_user_id and doc_id identify the chunk set of one document for one
    user; owner_scope is the partition searched by retrieval.

    Attributes:
        owner_user_id:  User whose index the chunk belongs to.
        doc_id:         Document ID in the document store.
        owner_scope:    Persona id or private marker of the document.
        chunk_index:    Zero-based position of this chunk within the document.
        chunk_text:     Raw text content of this chunk.
        doc_updated_at: ISO-8601 timestamp of the document version the chunk was built from.
    """

    owner_user_id: str
    doc_id: str
    owner_scope: str
    chunk_index: int
    chunk_text: str
    doc_updated_at: str

    @classmethod
    def from_chunk_row(cls, row: ChunkRow) -> "VectorPoint":
        return cls(
            owner_user_id=row.owner_user_id,
            doc_id=row.doc_id,
            owner_scope=row.owner_scope,
            chunk_index=row.chunk_index,
            chunk_text=row.content,
            doc_updated_at=row.doc_updated_at.isoformat(),
        )
