"""Agent that writes to JobTread: currently task creation on a job."""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Any

from client_assistant.agents.base import tool_result
from client_assistant.fetchers import (
    FetchedContext,
    fetch_memberships,
    fetch_opportunity_context,
    join_sections,
    section,
)
from client_assistant.intent import Intent
from client_assistant.models import SessionContext
from client_assistant.prompts import data_entry_prompt
from client_assistant.services.ghl_client import GHLClient
from client_assistant.services.jobtread_client import JobTreadClient

logger = logging.getLogger(__name__)

CREATE_TASK_TOOL = "create_jobtread_task"

_CREATE_TASK_RE = re.compile(r"(create|add|schedule|new|make).*task", re.IGNORECASE)
_ACTION_ON_JOBTREAD_RE = re.compile(
    r"(create|add|update|edit|delete|remove|schedule|assign|change|modify)"
    r".*(jobtread|job\s*tread|budget|comment|item)",
    re.IGNORECASE,
)
_ACTION_ON_ENTRY_RE = re.compile(
    r"(create|add|schedule|assign).*(task|item|entry|comment)",
    re.IGNORECASE,
)
_ACTION_RE = re.compile(r"create|add|schedule|update|edit|delete|assign", re.IGNORECASE)


class DataEntrySpecialist:
    name = "JT Entry Specialist"
    description = "Creates tasks in JobTread for the selected job."
    tools: list[dict[str, Any]] = [
        {
            "name": CREATE_TASK_TOOL,
            "description": "Create a new task in JobTread for the selected job/project.",
            "input_schema": {
                "type": "object",
                "properties": {
                    "jobId": {
                        "type": "string",
                        "description": "The JobTread Job ID. Use the one from the context if available.",
                    },
                    "name": {"type": "string", "description": "The task title/name"},
                    "description": {"type": "string", "description": "Detailed description of the task"},
                    "startDate": {"type": "string", "description": "Start date in YYYY-MM-DD format (optional)"},
                    "endDate": {"type": "string", "description": "Due/end date in YYYY-MM-DD format (optional)"},
                    "assigneeIds": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "JobTread membership ids to assign (optional)",
                    },
                },
                "required": ["jobId", "name"],
            },
        },
    ]

    def __init__(self, crm: GHLClient, jobtread: JobTreadClient):
        self._crm = crm
        self._jobtread = jobtread

    def score(self, message: str) -> float:
        if _CREATE_TASK_RE.search(message):
            return 0.95
        if _ACTION_ON_JOBTREAD_RE.search(message):
            return 0.9
        if _ACTION_ON_ENTRY_RE.search(message):
            return 0.7
        if _ACTION_RE.search(message):
            return 0.4
        return 0.1

    def system_prompt(self, session: SessionContext) -> str:
        return data_entry_prompt(session)

    async def fetch_context(self, session: SessionContext, intent: Intent) -> FetchedContext:
        """Resolve the job id from the opportunity and list assignable members."""
        opportunity, members = await asyncio.gather(
            fetch_opportunity_context(self._crm, session),
            fetch_memberships(self._jobtread),
        )

        summary = []
        if session.client_name:
            summary.append(f"Client: {session.client_name}")
        if session.opportunity_name:
            summary.append(f"Opportunity: {session.opportunity_name}")
        if session.pipeline_stage:
            summary.append(f"Pipeline Stage: {session.pipeline_stage}")
        job_id = session.external_job_id or opportunity.job_id
        if job_id:
            summary.append(f"JobTread Job ID: {job_id}")

        text = join_sections([
            section("CONTEXT", "\n".join(summary)) if summary else "",
            opportunity.text,
            members,
        ])
        return FetchedContext(text=text, job_id=job_id)

    async def execute_tool(
        self, name: str, tool_input: dict[str, Any], session: SessionContext,
    ) -> str:
        try:
            if name == CREATE_TASK_TOOL:
                return await self._create_task(tool_input, session)
            return tool_result(False, error=f"Unknown tool: {name}")
        except Exception as exc:
            logger.exception("Tool %s failed", name)
            return tool_result(False, error=str(exc) or "Tool execution failed")

    async def _create_task(self, tool_input: dict[str, Any], session: SessionContext) -> str:
        job_id = tool_input.get("jobId") or session.external_job_id
        if not job_id:
            return tool_result(
                False,
                error=(
                    "No JobTread Job ID available. Please select an opportunity "
                    "linked to a JobTread job."
                ),
            )
        task_name = (tool_input.get("name") or "").strip()
        if not task_name:
            return tool_result(False, error="A task name is required.")

        created = await self._jobtread.create_task(
            str(job_id),
            task_name,
            description=tool_input.get("description") or "",
            start_date=tool_input.get("startDate"),
            end_date=tool_input.get("endDate"),
            assignee_ids=tool_input.get("assigneeIds") or None,
        )
        logger.info("Task %s created on job %s", created.get("id"), job_id)
        return tool_result(True, result=created)
