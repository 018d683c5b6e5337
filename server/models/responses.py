from datetime import datetime

from pydantic import BaseModel

from shared.models.document import Document, SyncStats


class IndexAbortedResponse(BaseModel):
    detail: str
    stats: SyncStats


class DocumentResultItem(BaseModel):
    id: str
    owner_scope: str
    persona_id: str | None
    title: str | None
    content: str
    updated_at: datetime

    @classmethod
    def from_document(cls, document: Document) -> "DocumentResultItem":
        return cls(
            id=document.id,
            owner_scope=document.owner_scope,
            persona_id=document.persona_id,
            title=document.title,
            content=document.content,
            updated_at=document.updated_at,
        )


class QueryResponse(BaseModel):
    query: str
    results: list[DocumentResultItem]
    total: int
