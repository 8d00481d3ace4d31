"""Per-request data types: session context, conversation turns, results."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from enum import Enum
from typing import Literal


class CommunicationChannel(str, Enum):
    """Where client communication currently happens for an opportunity."""

    CRM = "crm"
    PROJECT_SYSTEM = "project-system"
    UNKNOWN = "unknown"


# Pipeline stages where communication goes through the CRM
CRM_STAGES = frozenset({
    "new inquiry",
    "initial call scheduled",
    "discovery scheduled",
    "no-show",
    "nurture",
    "completed",
    "closed/not interested",
    "gbp review requested",
})

# Pipeline stages where communication goes through JobTread
PROJECT_STAGES = frozenset({
    "leads",
    "in-design",
    "ready",
    "in-production",
    "final billing",
})


def communication_channel_for(stage: str | None) -> CommunicationChannel:
    """Map a pipeline stage label to its communication channel."""
    normalized = (stage or "").lower().strip()
    if normalized in CRM_STAGES:
        return CommunicationChannel.CRM
    if normalized in PROJECT_STAGES:
        return CommunicationChannel.PROJECT_SYSTEM
    return CommunicationChannel.UNKNOWN


@dataclass(frozen=True)
class SessionContext:
    """Caller-selected client/opportunity for one request.

    Built once at request entry with :meth:`build` and never mutated.
    """

    client_id: str | None = None
    client_name: str | None = None
    opportunity_id: str | None = None
    opportunity_name: str | None = None
    external_job_id: str | None = None
    pipeline_stage: str | None = None
    communication_channel: CommunicationChannel = CommunicationChannel.UNKNOWN

    @classmethod
    def build(
        cls,
        *,
        client_id: str | None = None,
        client_name: str | None = None,
        opportunity_id: str | None = None,
        opportunity_name: str | None = None,
        external_job_id: str | None = None,
        pipeline_stage: str | None = None,
    ) -> SessionContext:
        return cls(
            client_id=client_id or None,
            client_name=client_name or None,
            opportunity_id=opportunity_id or None,
            opportunity_name=opportunity_name or None,
            external_job_id=external_job_id or None,
            pipeline_stage=pipeline_stage or None,
            communication_channel=communication_channel_for(pipeline_stage),
        )

    def with_job_id(self, job_id: str) -> SessionContext:
        """Return a copy carrying a job id resolved from CRM custom fields."""
        return dataclasses.replace(self, external_job_id=job_id)


@dataclass(frozen=True)
class ConversationTurn:
    role: Literal["user", "assistant"]
    content: str


@dataclass(frozen=True)
class AgentResult:
    """The reply for one request plus the handler that produced it."""

    agent_name: str
    reply: str
