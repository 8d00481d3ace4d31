"""HTTP client for the GoHighLevel (LeadConnector) CRM API v2.

All requests carry the location's private integration token as a Bearer
token plus the ``Version`` header the API requires.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from client_assistant.config import GHL_API_KEY, GHL_API_VERSION, GHL_BASE_URL, GHL_LOCATION_ID
from client_assistant.services.base_client import APIError, BaseAPIClient

logger = logging.getLogger(__name__)

CONTACT_SEARCH_LIMIT = 10


class GHLAPIError(APIError):
    """Raised when a GoHighLevel API call fails."""


class GHLClient(BaseAPIClient):
    """Read/write access to contacts, notes, conversations, tasks and
    opportunities for one GoHighLevel location."""

    service_name = "ghl"
    error_class = GHLAPIError

    def __init__(
        self,
        token: str | None = None,
        location_id: str | None = None,
        base_url: str | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._location_id = location_id or GHL_LOCATION_ID
        super().__init__(
            base_url or GHL_BASE_URL,
            headers={
                "Authorization": f"Bearer {token or GHL_API_KEY}",
                "Content-Type": "application/json",
                "Accept": "application/json",
                "Version": GHL_API_VERSION,
            },
            transport=transport,
        )

    # ── Contacts ─────────────────────────────────────────────────────

    async def get_contact(self, contact_id: str) -> dict[str, Any]:
        """Return the full contact record (unwrapped from ``{"contact": …}``)."""
        data = await self._request("GET", f"/contacts/{contact_id}")
        return data.get("contact") or data

    async def search_contacts(self, query: str) -> list[dict[str, Any]]:
        """Search contacts by free text; returns slim summaries."""
        data = await self._request(
            "GET",
            "/contacts/",
            params={
                "locationId": self._location_id,
                "query": query,
                "limit": CONTACT_SEARCH_LIMIT,
            },
        )
        return [
            {
                "id": c.get("id", ""),
                "name": f"{c.get('firstName') or ''} {c.get('lastName') or ''}".strip(),
                "email": c.get("email") or "",
                "phone": c.get("phone") or "",
                "company_name": c.get("companyName") or "",
            }
            for c in data.get("contacts", [])
        ]

    # ── Notes ────────────────────────────────────────────────────────

    async def list_notes(self, contact_id: str) -> list[dict[str, Any]]:
        data = await self._request("GET", f"/contacts/{contact_id}/notes")
        return data.get("notes", [])

    async def create_note(self, contact_id: str, body: str) -> dict[str, Any]:
        data = await self._request(
            "POST", f"/contacts/{contact_id}/notes", json_body={"body": body},
        )
        logger.info("Created note on contact %s (%d chars)", contact_id, len(body))
        return data.get("note") or data

    # ── Tasks ────────────────────────────────────────────────────────

    async def list_tasks(self, contact_id: str) -> list[dict[str, Any]]:
        data = await self._request("GET", f"/contacts/{contact_id}/tasks")
        return data.get("tasks", [])

    # ── Conversations ────────────────────────────────────────────────

    async def search_conversations(self, contact_id: str) -> list[dict[str, Any]]:
        """List the contact's conversations, newest first."""
        data = await self._request(
            "GET",
            "/conversations/search",
            params={"locationId": self._location_id, "contactId": contact_id},
        )
        return data.get("conversations", [])

    async def list_messages(self, conversation_id: str, limit: int = 40) -> list[dict[str, Any]]:
        """List up to *limit* messages of a conversation.

        The API nests the page as ``{"messages": {"messages": [...]}}``; a
        flat list is accepted too.
        """
        data = await self._request(
            "GET",
            f"/conversations/{conversation_id}/messages",
            params={"limit": limit},
        )
        messages = data.get("messages", [])
        if isinstance(messages, dict):
            messages = messages.get("messages", [])
        return messages if isinstance(messages, list) else []

    # ── Opportunities ────────────────────────────────────────────────

    async def list_opportunities(self, contact_id: str) -> list[dict[str, Any]]:
        data = await self._request(
            "GET",
            "/opportunities/search",
            params={"location_id": self._location_id, "contact_id": contact_id},
        )
        return data.get("opportunities", [])

    async def get_opportunity(self, opportunity_id: str) -> dict[str, Any]:
        data = await self._request("GET", f"/opportunities/{opportunity_id}")
        return data.get("opportunity") or data

    async def list_pipelines(self) -> list[dict[str, Any]]:
        data = await self._request(
            "GET",
            "/opportunities/pipelines",
            params={"locationId": self._location_id},
        )
        return data.get("pipelines", [])
