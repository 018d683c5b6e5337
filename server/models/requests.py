from pydantic import BaseModel, Field


class IndexRequest(BaseModel):
    user_id: str = Field(min_length=1)


class QueryRequest(BaseModel):
    query: str
    scopes: list[str]
    max_results: int = 6
