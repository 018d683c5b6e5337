from fastapi import APIRouter, Depends, HTTPException, Request

from server.dependencies.auth import verify_api_key
from server.models.requests import QueryRequest
from server.models.responses import DocumentResultItem, QueryResponse
from shared.exceptions import ClientRequestError, ConfigurationUnavailable

router = APIRouter(prefix="/query", tags=["query"])


@router.post("")
async def query_documents(
    request: Request,
    body: QueryRequest,
    _: None = Depends(verify_api_key),
) -> QueryResponse:
    """Return the documents within the given scopes most relevant to a query.

    Args:
        request (Request): FastAPI request (provides app.state.retriever).
        body (QueryRequest): JSON body with query string, scopes and max_results.
        _ (None): Auth dependency result (unused).

    Returns:
        QueryResponse: Matching documents, best first.

    Raises:
        HTTPException: 503 if no embedding provider is configured, 502 if a backend fails.
    """
    retriever = request.app.state.retriever
    try:
        documents = await retriever.do_retrieve(body.query, body.scopes, max_results=body.max_results)
    except ConfigurationUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))
    except ClientRequestError as e:
        raise HTTPException(status_code=502, detail=str(e))

    results = [DocumentResultItem.from_document(document) for document in documents]
    return QueryResponse(query=body.query, results=results, total=len(results))
