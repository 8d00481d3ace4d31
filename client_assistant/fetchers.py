"""Context fetchers: pull upstream data and render it as prompt sections.

Every fetcher returns text made of ``=== TITLE ===`` sections.  Upstream
failures never propagate out of a fetcher; they become an
``=== <TITLE> ERROR ===`` section so the model can tell the user what is
missing while the rest of the data still gets through.

All independent reads inside a fetcher run concurrently and are awaited with
``asyncio.gather(..., return_exceptions=True)`` (all-settled semantics).
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import Any

from client_assistant.formatting import (
    extract_job_id,
    format_contact_profile,
    format_custom_fields,
    format_date,
)
from client_assistant.models import SessionContext
from client_assistant.services.ghl_client import GHLClient
from client_assistant.services.jobtread_client import JobTreadClient

logger = logging.getLogger(__name__)

# ── Size bounds ──────────────────────────────────────────────────────
MAX_NOTES = 50
MAX_NOTE_CHARS = 65_000
MAX_CONVERSATIONS = 10
MESSAGES_PER_CONVERSATION = 40
MAX_MESSAGE_CHARS = 2_000
MAX_TASKS = 50
MAX_TASK_DESCRIPTION_CHARS = 500
ACTIVE_JOBS_LIMIT = 30

SECTION_SEPARATOR = "\n\n"


@dataclass(frozen=True)
class FetchedContext:
    """Rendered context plus any ids discovered while fetching it."""

    text: str = ""
    job_id: str | None = None


def section(title: str, body: str) -> str:
    return f"=== {title} ===\n{body}"


def error_section(title: str, exc: BaseException) -> str:
    return section(f"{title} ERROR", str(exc) or type(exc).__name__)


def join_sections(parts: list[str]) -> str:
    return SECTION_SEPARATOR.join(p for p in parts if p)


async def gather_sections(*fetches: Awaitable[str]) -> str:
    """Run fetchers concurrently and join their non-empty output.

    A fetcher that raises anyway is rendered as a ``CONTEXT ERROR`` section.
    """
    results = await asyncio.gather(*fetches, return_exceptions=True)
    parts = []
    for result in results:
        if isinstance(result, BaseException):
            logger.warning("Context fetch failed: %s", result)
            parts.append(error_section("CONTEXT", result))
        else:
            parts.append(result)
    return join_sections(parts)


# ── CRM: contact profile, notes, messages, tasks ────────────────────


def _render_notes(notes: list[dict[str, Any]]) -> str:
    if not notes:
        return ""
    rendered = []
    for note in notes[:MAX_NOTES]:
        date = format_date(note["dateAdded"]) if note.get("dateAdded") else "No date"
        rendered.append(f"[{date}] {(note.get('body') or '')[:MAX_NOTE_CHARS]}")
    return section(f"CRM NOTES ({len(notes)} total)", "\n---\n".join(rendered))


def _render_tasks(tasks: list[dict[str, Any]]) -> str:
    if not tasks:
        return ""
    lines = []
    for task in tasks[:MAX_TASKS]:
        status = "DONE" if task.get("completed") else "OPEN"
        title = task.get("title") or task.get("body") or "No title"
        line = f"- [{status}] {title}"
        if task.get("dueDate"):
            line += f" (Due: {format_date(task['dueDate'])})"
        if task.get("assignedTo"):
            line += f" [Assigned: {task['assignedTo']}]"
        if task.get("description"):
            line += f" - {task['description'][:MAX_TASK_DESCRIPTION_CHARS]}"
        lines.append(line)
    return section(f"TASKS ({len(tasks)} total)", "\n".join(lines))


def _render_message(message: dict[str, Any]) -> str:
    date = format_date(message["dateAdded"]) if message.get("dateAdded") else ""
    direction = message.get("direction") or "?"
    kind = message.get("messageType") or message.get("type") or ""
    body = (message.get("body") or "")[:MAX_MESSAGE_CHARS]
    return f"[{date} {direction} {kind}] {body}"


async def _fetch_messages(crm: GHLClient, conversations: list[dict[str, Any]]) -> str:
    """Expand the newest conversations into their messages.

    Conversations are fetched concurrently; one that fails is skipped.
    """
    selected = [c for c in conversations[:MAX_CONVERSATIONS] if c.get("id")]
    results = await asyncio.gather(
        *(crm.list_messages(c["id"], MESSAGES_PER_CONVERSATION) for c in selected),
        return_exceptions=True,
    )
    lines: list[str] = []
    for conversation, result in zip(selected, results):
        if isinstance(result, BaseException):
            logger.warning("Skipping conversation %s: %s", conversation["id"], result)
            continue
        lines.extend(_render_message(m) for m in result)
    if not lines:
        return ""
    return section(f"MESSAGES ({len(lines)} total)", "\n".join(lines))


async def fetch_client_context(crm: GHLClient, client_id: str) -> str:
    """Profile, notes, messages and tasks for one CRM contact."""
    if not client_id:
        return ""

    profile, notes, conversations, tasks = await asyncio.gather(
        crm.get_contact(client_id),
        crm.list_notes(client_id),
        crm.search_conversations(client_id),
        crm.list_tasks(client_id),
        return_exceptions=True,
    )

    parts: list[str] = []

    if isinstance(profile, BaseException):
        logger.warning("Contact profile fetch failed for %s: %s", client_id, profile)
        parts.append(error_section("CONTACT PROFILE", profile))
    elif profile:
        lines = format_contact_profile(profile)
        if lines:
            parts.append(section("CONTACT PROFILE", "\n".join(lines)))

    if isinstance(notes, BaseException):
        logger.warning("Notes fetch failed for %s: %s", client_id, notes)
        parts.append(error_section("CRM NOTES", notes))
    else:
        parts.append(_render_notes(notes))

    if isinstance(conversations, BaseException):
        logger.warning("Conversation search failed for %s: %s", client_id, conversations)
        parts.append(error_section("MESSAGES", conversations))
    else:
        parts.append(await _fetch_messages(crm, conversations))

    if isinstance(tasks, BaseException):
        logger.warning("Tasks fetch failed for %s: %s", client_id, tasks)
        parts.append(error_section("TASKS", tasks))
    else:
        parts.append(_render_tasks(tasks))

    return join_sections(parts)


# ── CRM: selected opportunity ───────────────────────────────────────


async def fetch_opportunity_context(crm: GHLClient, session: SessionContext) -> FetchedContext:
    """Detail for the selected opportunity plus its linked JobTread job id."""
    if not session.opportunity_id:
        return FetchedContext()

    try:
        opp = await crm.get_opportunity(session.opportunity_id)
    except Exception as exc:
        logger.warning("Opportunity fetch failed for %s: %s", session.opportunity_id, exc)
        return FetchedContext(text=error_section("OPPORTUNITY", exc))

    custom_fields = opp.get("customFields")
    job_id = session.external_job_id or extract_job_id(custom_fields)
    stage = (
        session.pipeline_stage
        or opp.get("pipelineStageName")
        or opp.get("stageName")
        or "N/A"
    )
    lines = [
        f"Name: {opp.get('name') or 'N/A'}",
        f"Status: {opp.get('status') or 'N/A'}",
        f"Pipeline Stage: {stage}",
        f"Monetary Value: {opp.get('monetaryValue') or 'N/A'}",
        f"Communication Channel: {session.communication_channel.value.upper()}",
    ]
    if job_id:
        lines.append(f"JobTread Job ID: {job_id}")
    lines.extend(format_custom_fields(custom_fields, default_key="Field"))

    return FetchedContext(text=section("SELECTED OPPORTUNITY", "\n".join(lines)), job_id=job_id)


# ── JobTread ────────────────────────────────────────────────────────


async def fetch_active_jobs(jobtread: JobTreadClient, limit: int = ACTIVE_JOBS_LIMIT) -> str:
    try:
        jobs = await jobtread.list_active_jobs(limit)
    except Exception as exc:
        logger.warning("Active jobs fetch failed: %s", exc)
        return error_section("JT JOBS", exc)

    if not jobs:
        return section("JOBTREAD JOBS", "No active jobs found.")
    lines = [
        f"- #{j.get('number') or '?'} {j.get('name') or 'Unnamed'}"
        f" | Status: {j.get('status') or 'N/A'}"
        f" | ID: {j.get('id') or 'N/A'}"
        for j in jobs
    ]
    return section("JOBTREAD ACTIVE JOBS", "\n".join(lines))


def _person_name(user: dict[str, Any]) -> str:
    name = user.get("name") or f"{user.get('firstName') or ''} {user.get('lastName') or ''}"
    return name.strip() or "Unknown"


async def fetch_team(jobtread: JobTreadClient) -> str:
    try:
        members = await jobtread.list_team_members()
    except Exception as exc:
        logger.warning("Team fetch failed: %s", exc)
        return error_section("JT TEAM", exc)

    if not members:
        return ""
    lines = []
    for member in members:
        user = member.get("user") or {}
        role = member.get("role")
        role_name = (role or {}).get("name") if isinstance(role, dict) else role
        email = user.get("emailAddress") or user.get("email") or ""
        lines.append(f"- {_person_name(user)} ({role_name or 'member'}) {email}".rstrip())
    return section("JOBTREAD TEAM", "\n".join(lines))


def _render_accounts(accounts: list[dict[str, Any]]) -> list[str]:
    lines = []
    for account in accounts:
        contact = account.get("primaryContact") or {}
        email = account.get("email") or contact.get("emailAddress") or ""
        phone = account.get("phone") or contact.get("phoneNumber") or ""
        lines.append(f"- {account.get('name') or 'Unknown'} | {email} {phone}".rstrip())
    return lines


async def fetch_customers(jobtread: JobTreadClient) -> str:
    try:
        customers = await jobtread.list_customers()
    except Exception as exc:
        logger.warning("Customers fetch failed: %s", exc)
        return error_section("JT CUSTOMERS", exc)
    if not customers:
        return ""
    return section("JOBTREAD CUSTOMERS", "\n".join(_render_accounts(customers)))


async def fetch_vendors(jobtread: JobTreadClient) -> str:
    try:
        vendors = await jobtread.list_vendors()
    except Exception as exc:
        logger.warning("Vendors fetch failed: %s", exc)
        return error_section("JT VENDORS", exc)
    if not vendors:
        return ""
    return section("JOBTREAD VENDORS", "\n".join(_render_accounts(vendors)))


async def fetch_memberships(jobtread: JobTreadClient) -> str:
    """Assignable team members with their membership ids."""
    try:
        members = await jobtread.list_members()
    except Exception as exc:
        logger.warning("Membership fetch failed: %s", exc)
        return error_section("JT MEMBERS", exc)
    if not members:
        return ""
    lines = [f"- {m['name'] or 'Unknown'} (membership id: {m['id']})" for m in members]
    return section("JOBTREAD TEAM MEMBERS (assignable)", "\n".join(lines))
