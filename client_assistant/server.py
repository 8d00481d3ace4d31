"""FastAPI server for the client assistant.

Run with:
    uvicorn client_assistant.server:app --reload --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from client_assistant.agent import build_chat_model, create_assistant_graph
from client_assistant.agents import build_agents
from client_assistant.api.routes import router
from client_assistant.config import CORS_ORIGINS, SERVER_HOST, SERVER_PORT
from client_assistant.services.ghl_client import GHLClient
from client_assistant.services.jobtread_client import JobTreadClient

# ── Logging ──────────────────────────────────────────────────────────
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)


# ── Lifespan: initialise / tear-down shared resources ────────────────
@asynccontextmanager
async def lifespan(application: FastAPI):
    """Build both API clients and compile the graph once; close clients on shutdown."""
    crm = GHLClient()
    jobtread = JobTreadClient()
    logger.info("Compiling assistant graph…")
    application.state.crm = crm
    application.state.graph = create_assistant_graph(
        build_chat_model(), build_agents(crm, jobtread),
    )
    logger.info("Assistant ready.")
    try:
        yield
    finally:
        await crm.aclose()
        await jobtread.aclose()


# ── FastAPI application ──────────────────────────────────────────────
app = FastAPI(
    title="Client Assistant",
    description=(
        "Team assistant that answers questions about clients and jobs from "
        "GoHighLevel and JobTread, and creates JobTread tasks."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

# ── CORS (needed for the browser UI) ────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Request-ID middleware ────────────────────────────────────────────
@app.middleware("http")
async def add_request_id(request: Request, call_next) -> Response:
    """Attach a unique request ID to every request for log correlation.

    The ID is echoed in the ``X-Request-ID`` response header.
    """
    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
    request.state.request_id = request_id
    logger.info(
        "[%s] %s %s", request_id, request.method, request.url.path,
    )
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# ── Register routes ──────────────────────────────────────────────────
app.include_router(router, prefix="/api")


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "service": "Client Assistant",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/api/health",
    }


# ── CLI entry point ──────────────────────────────────────────────────

if __name__ == "__main__":
    logger.info("Starting client assistant API server on %s:%d", SERVER_HOST, SERVER_PORT)
    uvicorn.run(
        "client_assistant.server:app",
        host=SERVER_HOST,
        port=SERVER_PORT,
        reload=True,
    )
