"""FastAPI route definitions for the client assistant API."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request

from client_assistant.agent import route_message
from client_assistant.api.schemas import (
    AuthRequest,
    AuthResponse,
    ChatRequest,
    ChatResponse,
    ContactsResponse,
    ContactSummary,
    HealthResponse,
    NotesRequest,
    NotesResponse,
    OpportunitiesResponse,
    OpportunitySummary,
)
from client_assistant.auth import issue_token, validate_token
from client_assistant.formatting import extract_job_id
from client_assistant.models import ConversationTurn, SessionContext, communication_channel_for
from client_assistant.services.base_client import APIError
from client_assistant.services.ghl_client import GHLClient
from client_assistant.transcripts import ingest_transcript

logger = logging.getLogger(__name__)

router = APIRouter()

MIN_CONTACT_QUERY_CHARS = 2


def require_auth(authorization: str | None = Header(None)) -> None:
    """Reject requests without a valid ``Authorization: Bearer`` token."""
    if not validate_token(authorization):
        raise HTTPException(status_code=401, detail="Unauthorized")


def _get_state(request: Request, name: str):
    """Retrieve a resource built during the FastAPI lifespan (see ``server.py``)."""
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(
            status_code=503,
            detail="The assistant is still starting up. Please try again in a moment.",
        )
    return value


def _get_graph(request: Request):
    return _get_state(request, "graph")


def _get_crm(request: Request) -> GHLClient:
    return _get_state(request, "crm")


# ── Endpoints ────────────────────────────────────────────────────────


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse()


@router.post("/auth", response_model=AuthResponse)
async def authenticate(request: AuthRequest):
    """Exchange the team PIN for a bearer token."""
    token = issue_token(request.pin)
    if token is None:
        raise HTTPException(status_code=401, detail="Invalid PIN")
    return AuthResponse(token=token)


@router.post("/chat", response_model=ChatResponse, dependencies=[Depends(require_auth)])
async def chat(request: ChatRequest, http_request: Request):
    """Answer the latest user turn with whichever agent fits it best.

    The full conversation is sent with every request; nothing is kept
    server-side between requests.
    """
    graph = _get_graph(http_request)
    request_id = getattr(http_request.state, "request_id", "?")

    if request.messages[-1].role != "user":
        raise HTTPException(status_code=422, detail="The last message must come from the user.")

    session = SessionContext.build(
        client_id=request.client_id,
        client_name=request.client_name,
        opportunity_id=request.opportunity_id,
        opportunity_name=request.opportunity_name,
        external_job_id=request.external_job_id,
        pipeline_stage=request.pipeline_stage,
    )
    turns = [ConversationTurn(role=m.role, content=m.content) for m in request.messages]

    try:
        result = await route_message(graph, turns, session)
    except Exception as e:
        # Full traceback stays server-side
        logger.exception("[%s] Error processing chat request", request_id)
        raise HTTPException(
            status_code=500,
            detail="An internal error occurred. Please try again.",
        ) from e

    logger.info("[%s] Reply from %s (%d chars)", request_id, result.agent_name, len(result.reply))
    return ChatResponse(reply=result.reply, agent=result.agent_name)


@router.get("/contacts", response_model=ContactsResponse, dependencies=[Depends(require_auth)])
async def search_contacts(http_request: Request, q: str = Query("", max_length=200)):
    """Search CRM contacts for the client picker."""
    if len(q.strip()) < MIN_CONTACT_QUERY_CHARS:
        return ContactsResponse()

    crm = _get_crm(http_request)
    try:
        contacts = await crm.search_contacts(q.strip())
    except APIError as e:
        logger.error("Contact search failed: %s", e)
        raise HTTPException(status_code=502, detail="Contact search failed.") from e
    return ContactsResponse(contacts=[ContactSummary(**c) for c in contacts])


def _stage_names(pipelines: list[dict[str, Any]]) -> dict[str, tuple[str, str]]:
    """Map stage id → (pipeline name, stage name)."""
    names = {}
    for pipeline in pipelines:
        for stage in pipeline.get("stages") or []:
            if stage.get("id"):
                names[stage["id"]] = (pipeline.get("name") or "", stage.get("name") or "")
    return names


def _summarize_opportunity(
    opp: dict[str, Any], stages: dict[str, tuple[str, str]],
) -> OpportunitySummary:
    stage_id = opp.get("pipelineStageId") or ""
    pipeline_name, resolved_stage = stages.get(stage_id, ("", ""))
    stage_name = (
        opp.get("stageName")
        or (opp.get("stage") or {}).get("name")
        or opp.get("pipelineStageName")
        or resolved_stage
    )
    return OpportunitySummary(
        id=opp.get("id", ""),
        name=opp.get("name") or "Unnamed Opportunity",
        status=opp.get("status") or "",
        pipeline_id=opp.get("pipelineId") or "",
        pipeline_name=opp.get("pipelineName") or (opp.get("pipeline") or {}).get("name") or pipeline_name,
        stage_id=stage_id,
        stage_name=stage_name or "",
        monetary_value=opp.get("monetaryValue") or 0,
        external_job_id=extract_job_id(opp.get("customFields")),
        communication_channel=communication_channel_for(stage_name).value,
    )


@router.get(
    "/opportunities", response_model=OpportunitiesResponse, dependencies=[Depends(require_auth)],
)
async def list_opportunities(http_request: Request, client_id: str = Query("")):
    """List a client's opportunities with their linked JobTread job id."""
    if not client_id:
        return OpportunitiesResponse()

    crm = _get_crm(http_request)
    try:
        raw = await crm.list_opportunities(client_id)
    except APIError as e:
        logger.error("Opportunity lookup for %s failed: %s", client_id, e)
        raise HTTPException(status_code=502, detail="Opportunity lookup failed.") from e

    stages: dict[str, tuple[str, str]] = {}
    if any(not opp.get("stageName") for opp in raw):
        try:
            stages = _stage_names(await crm.list_pipelines())
        except APIError as e:
            # Stage names are cosmetic; the opportunities are still usable
            logger.warning("Pipeline lookup failed: %s", e)

    return OpportunitiesResponse(
        opportunities=[_summarize_opportunity(opp, stages) for opp in raw],
    )


@router.post("/notes", response_model=NotesResponse, dependencies=[Depends(require_auth)])
async def upload_notes(request: NotesRequest, http_request: Request):
    """Store a meeting transcript on the contact, split into CRM-sized notes."""
    if not request.transcript.strip():
        raise HTTPException(status_code=400, detail="Missing client id or transcript.")

    crm = _get_crm(http_request)
    try:
        parts = await ingest_transcript(
            crm,
            request.client_id,
            request.transcript,
            meeting_type=request.meeting_type,
            meeting_date=request.meeting_date,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except APIError as e:
        logger.error("Saving notes for %s failed: %s", request.client_id, e)
        raise HTTPException(status_code=502, detail="Failed to save notes.") from e
    return NotesResponse(parts_created=parts)
