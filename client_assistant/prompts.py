"""System prompts for each agent and the data block appended to the user turn.

Instructions live in the system prompt; facts fetched from the CRM and
JobTread are appended to the latest user message between fixed markers so
the model can tell the two apart.
"""

from __future__ import annotations

from datetime import datetime

from client_assistant.config import COMPANY_NAME, COMPANY_PROFILE
from client_assistant.models import CommunicationChannel, SessionContext

CONTEXT_START = "--- SYSTEM DATA (use this to answer the question) ---"
CONTEXT_END = "--- END SYSTEM DATA ---"

KNOW_IT_ALL_TEMPLATE = """You are "Know it All," the AI research assistant for {company_name}, {company_profile}.

Today is {current_date}.

## Your Role
Your specialty is knowing EVERYTHING about every client and project. You pull
data from the CRM (GoHighLevel) and project management (JobTread) and give
comprehensive, detailed answers.

## Guidelines
- When summarizing a client or project, include ALL available information:
  full profile, every note in its entirety, all communication history, tasks,
  custom fields, tags, opportunities, and any other data provided. Do not skip
  or truncate any information.
- Be specific, reference real data, and be concise but thorough.
- If data is missing, or a section says ERROR, say so honestly. Never invent
  data that is not in the SYSTEM DATA block.
- You are read-only. If the user asks you to create or change something, tell
  them to phrase it as a request to create a task.
{session_lines}"""

DATA_ENTRY_TEMPLATE = """You are the "JobTread Entry Specialist" for {company_name}. You are precise, methodical, and thorough.

Today is {current_date}.

## Your Role
You create data in JobTread when the team asks you to, using the
`create_jobtread_task` tool.

## Rules
- Confirm the details you are about to use (task name, description, dates,
  assignees) in your reply.
- Dates must be YYYY-MM-DD. Resolve relative dates ("next Friday") from today.
- To assign people, use the membership ids listed in the SYSTEM DATA block.
- If the tool returns success: false, explain the error to the user. Do not
  retry with guessed values.
- After creating a task, confirm what was created with its details.
{job_lines}{session_lines}"""

_JOB_ID_PRESENT = (
    "\nJobTread Job ID for this opportunity: {job_id}\n"
    "Use this ID when creating tasks.\n"
)
_JOB_ID_MISSING = (
    "\nWARNING: No JobTread Job ID found for the selected opportunity. You cannot "
    "create tasks without one. Tell the user that task creation is unavailable "
    "and ask them to select an opportunity that is linked to a JobTread job. "
    "Never guess a job id.\n"
)


def _today() -> str:
    # Local time: relative dates are resolved from the team's calendar day
    now = datetime.now()
    return now.strftime("%A, %d %B %Y")


def _session_lines(session: SessionContext) -> str:
    lines = []
    if session.opportunity_name:
        lines.append(f"Selected Opportunity: {session.opportunity_name}")
    if session.pipeline_stage:
        lines.append(f"Pipeline Stage: {session.pipeline_stage}")
    if session.communication_channel is not CommunicationChannel.UNKNOWN:
        lines.append(
            "Current communication channel for this opportunity: "
            f"{session.communication_channel.value.upper()} "
            f"(based on pipeline stage: {session.pipeline_stage or 'unknown'})"
        )
    if not lines:
        return ""
    return "\n" + "\n".join(lines) + "\n"


def know_it_all_prompt(session: SessionContext) -> str:
    prompt = KNOW_IT_ALL_TEMPLATE.format(
        company_name=COMPANY_NAME,
        company_profile=COMPANY_PROFILE,
        current_date=_today(),
        session_lines=_session_lines(session),
    )
    if session.external_job_id:
        prompt += f"JobTread Job ID: {session.external_job_id}\n"
    return prompt


def data_entry_prompt(session: SessionContext) -> str:
    if session.external_job_id:
        job_lines = _JOB_ID_PRESENT.format(job_id=session.external_job_id)
    else:
        job_lines = _JOB_ID_MISSING
    return DATA_ENTRY_TEMPLATE.format(
        company_name=COMPANY_NAME,
        current_date=_today(),
        job_lines=job_lines,
        session_lines=_session_lines(session),
    )


def build_context_block(session: SessionContext, context_text: str) -> str:
    """Wrap fetched sections and session labels between the data markers."""
    header = []
    if session.client_name:
        header.append(f"Selected Client: {session.client_name}")
    if session.opportunity_name:
        header.append(f"Selected Opportunity: {session.opportunity_name}")
    if session.external_job_id:
        header.append(f"JobTread Job ID: {session.external_job_id}")
    if session.pipeline_stage:
        header.append(f"Pipeline Stage: {session.pipeline_stage}")
    if session.communication_channel is not CommunicationChannel.UNKNOWN:
        header.append(f"Communication Channel: {session.communication_channel.value.upper()}")

    lines = [CONTEXT_START, *header, "", context_text, CONTEXT_END]
    return "\n".join(lines)


def inject_context(user_text: str, session: SessionContext, context_text: str) -> str:
    """Append the data block to *user_text*; unchanged when nothing was fetched."""
    if not context_text:
        return user_text
    return f"{user_text}\n\n{build_context_block(session, context_text)}"
