"""Read-only research agent that answers questions from CRM and JobTread data."""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Any

from client_assistant.agents.base import tool_result
from client_assistant.fetchers import (
    FetchedContext,
    fetch_active_jobs,
    fetch_client_context,
    fetch_customers,
    fetch_opportunity_context,
    fetch_team,
    fetch_vendors,
    gather_sections,
)
from client_assistant.intent import Intent
from client_assistant.models import SessionContext
from client_assistant.prompts import know_it_all_prompt
from client_assistant.services.ghl_client import GHLClient
from client_assistant.services.jobtread_client import JobTreadClient

logger = logging.getLogger(__name__)

_QUESTION_RE = re.compile(
    r"\?|what|who|when|where|how|tell me|show me|summary|overview|status|history|"
    r"latest|update|details|information|look up|find out|check on",
    re.IGNORECASE,
)
_REFERENCE_RE = re.compile(
    r"client|project|job|contact|note|message|communication",
    re.IGNORECASE,
)


class KnowItAll:
    name = "Know it All"
    description = (
        "Pulls data from the CRM and JobTread to answer any question about "
        "clients, projects, history, and status."
    )
    tools: list[dict[str, Any]] = []

    def __init__(self, crm: GHLClient, jobtread: JobTreadClient):
        self._crm = crm
        self._jobtread = jobtread

    def score(self, message: str) -> float:
        if _QUESTION_RE.search(message):
            return 0.8
        if _REFERENCE_RE.search(message):
            return 0.5
        # Low base score so this agent is the fallback
        return 0.3

    def system_prompt(self, session: SessionContext) -> str:
        return know_it_all_prompt(session)

    async def fetch_context(self, session: SessionContext, intent: Intent) -> FetchedContext:
        """Fetch, concurrently, only the sources the message asks about."""
        intent = intent.with_fallback(has_client=bool(session.client_id))

        fetches = []
        if session.client_id and intent.crm:
            fetches.append(fetch_client_context(self._crm, session.client_id))
        if intent.jobs:
            fetches.append(fetch_active_jobs(self._jobtread))
        if intent.team:
            fetches.append(fetch_team(self._jobtread))
        if intent.customers:
            fetches.append(fetch_customers(self._jobtread))
        if intent.vendors:
            fetches.append(fetch_vendors(self._jobtread))

        logger.debug("Know it All fetching %d sources for %s", len(fetches), intent.topics)
        opportunity, text = await asyncio.gather(
            fetch_opportunity_context(self._crm, session),
            gather_sections(*fetches),
        )
        if opportunity.text:
            text = f"{text}\n\n{opportunity.text}" if text else opportunity.text
        return FetchedContext(text=text, job_id=opportunity.job_id)

    async def execute_tool(
        self, name: str, tool_input: dict[str, Any], session: SessionContext,
    ) -> str:
        return tool_result(False, error=f"{self.name} does not execute tools (requested: {name})")
