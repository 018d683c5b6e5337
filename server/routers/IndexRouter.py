from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from server.dependencies.auth import verify_api_key
from server.models.requests import IndexRequest
from server.models.responses import IndexAbortedResponse
from shared.exceptions import RAGIndexError, SyncAbortedError
from shared.models.document import SyncStats

router = APIRouter(prefix="/index", tags=["index"])


@router.post("", responses={502: {"model": IndexAbortedResponse}})
async def index_user(
    request: Request,
    body: IndexRequest,
    _: None = Depends(verify_api_key),
) -> SyncStats:
    """Bring the index of a user up to date and report the progress.

    Args:
        request (Request): FastAPI request (provides app.state.sync_coordinator).
        body (IndexRequest): JSON body with the user_id.
        _ (None): Auth dependency result (unused).

    Returns:
        SyncStats: Documents fetched and indexed in this run. A run that stopped
            on a failing document answers 502 with the partial stats.
    """
    coordinator = request.app.state.sync_coordinator
    try:
        return await coordinator.do_ensure_up_to_date(body.user_id)
    except SyncAbortedError as e:
        payload = IndexAbortedResponse(detail=str(e), stats=e.stats)
        return JSONResponse(status_code=502, content=payload.model_dump(mode="json"))
    except RAGIndexError as e:
        raise HTTPException(status_code=502, detail=str(e))


@router.post("/background", status_code=202)
async def index_user_background(
    request: Request,
    body: IndexRequest,
    background_tasks: BackgroundTasks,
    _: None = Depends(verify_api_key),
) -> dict:
    """Schedule an index run for a user and return immediately.

    Args:
        request (Request): FastAPI request (provides app.state.sync_coordinator).
        body (IndexRequest): JSON body with the user_id.
        background_tasks (BackgroundTasks): FastAPI background task queue.
        _ (None): Auth dependency result (unused).

    Returns:
        dict: Acknowledgement payload with status and user_id.
    """
    coordinator = request.app.state.sync_coordinator
    already_running = coordinator.is_running(body.user_id)
    background_tasks.add_task(_run_logged, coordinator, request.app.state.logging, body.user_id)
    return {"status": "accepted", "user_id": body.user_id, "already_running": already_running}


async def _run_logged(coordinator, logger, user_id: str) -> None:
    # background runs have no caller to report to
    try:
        await coordinator.do_ensure_up_to_date(user_id)
    except RAGIndexError as e:
        logger.error("Background index run for user '%s' failed: %s", user_id, e)
