"""FastAPI application entry point for the persona RAG index."""

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from shared.logging.logging_setup import setup_logging
from shared.helper.HelperConfig import HelperConfig
from services.rag_index.Backends import Backends
from server.routers.IndexRouter import router as index_router
from server.routers.QueryRouter import router as query_router

logging = setup_logging()
app_version = os.getenv("APP_VERSION", "unknown")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    app.state.logging = logging
    app.state.helper_config = HelperConfig(logger=logging)

    backends = Backends.from_config(app.state.helper_config)
    await backends.boot()
    try:
        app.state.backends = backends
        app.state.embed_available = backends.embed_client is not None
        app.state.sync_coordinator = backends.create_sync_coordinator()
        app.state.retriever = backends.create_retriever()

        # unreachable backends only fail the requests that need them
        if not await backends.check_connections():
            logging.warning("Starting with unreachable backends, affected requests answer 502.")
        await backends.do_ensure_collection()

        yield
    finally:
        logging.info("Shutting down, closing all clients...")
        await backends.close()


app = FastAPI(
    title="persona_rag_index",
    description=(
        "Incremental per-user vector index over persona documents and private documents. "
        "POST /index brings the index of a user up to date, "
        "POST /query returns the documents most relevant to a query."
    ),
    version=app_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(index_router)
app.include_router(query_router)


@app.get("/healthz", tags=["health"])
async def healthz(request: Request) -> dict:
    return {
        "status": "ok",
        "version": app_version,
        "embedding_available": bool(getattr(request.app.state, "embed_available", False)),
    }


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("APP_PORT", "8000"))
    logging.info("Starting persona_rag_index API server v%s on port %d...", app_version, port)
    uvicorn.run(app, host="0.0.0.0", port=port)
