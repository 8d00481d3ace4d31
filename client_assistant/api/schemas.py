"""Pydantic schemas for the FastAPI endpoints."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class ChatTurn(BaseModel):
    role: Literal["user", "assistant"]
    content: str = Field(..., min_length=1, max_length=20_000)


class ChatRequest(BaseModel):
    """Conversation so far plus what the user has selected in the UI."""

    messages: list[ChatTurn] = Field(..., min_length=1, description="Ordered conversation turns")
    client_id: str | None = Field(None, description="CRM contact id")
    client_name: str | None = None
    opportunity_id: str | None = Field(None, description="CRM opportunity id")
    opportunity_name: str | None = None
    external_job_id: str | None = Field(None, description="Linked JobTread job id")
    pipeline_stage: str | None = Field(None, description="Pipeline stage label of the opportunity")


class ChatResponse(BaseModel):
    reply: str = Field(..., description="The assistant's reply")
    agent: str = Field(..., description="Name of the agent that produced the reply")


class AuthRequest(BaseModel):
    pin: str = Field(..., min_length=1, max_length=64)


class AuthResponse(BaseModel):
    token: str


class ContactSummary(BaseModel):
    id: str
    name: str = ""
    email: str = ""
    phone: str = ""
    company_name: str = ""


class ContactsResponse(BaseModel):
    contacts: list[ContactSummary] = Field(default_factory=list)


class OpportunitySummary(BaseModel):
    id: str
    name: str
    status: str = ""
    pipeline_id: str = ""
    pipeline_name: str = ""
    stage_id: str = ""
    stage_name: str = ""
    monetary_value: float = 0
    external_job_id: str | None = None
    communication_channel: str = "unknown"


class OpportunitiesResponse(BaseModel):
    opportunities: list[OpportunitySummary] = Field(default_factory=list)


class NotesRequest(BaseModel):
    client_id: str = Field(..., min_length=1)
    transcript: str = Field(..., min_length=1)
    meeting_type: str = Field("Meeting", max_length=100)
    meeting_date: str | None = Field(None, max_length=50)


class NotesResponse(BaseModel):
    success: bool = True
    parts_created: int


class HealthResponse(BaseModel):
    status: str = "ok"
    service: str = "client-assistant"
