"""Client for the JobTread Pave API.

Pave is JobTread's JSON query language: every call is a single ``POST /pave``
whose body is ``{"query": {...}}``.  The grant key travels inside the query
under ``"$"`` rather than in an HTTP header.  Fields are requested by naming
them with an empty object, e.g. ``{"jobs": {"nodes": {"id": {}, "name": {}}}}``.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from client_assistant.config import JOBTREAD_API_KEY, JOBTREAD_BASE_URL
from client_assistant.services.base_client import APIError, BaseAPIClient

logger = logging.getLogger(__name__)

PAVE_PATH = "/pave"
DEFAULT_PAGE_SIZE = 100


class JobTreadAPIError(APIError):
    """Raised when a JobTread API call fails."""


def _nodes(data: dict[str, Any], collection: str) -> list[dict[str, Any]]:
    return (data.get(collection) or {}).get("nodes") or []


class JobTreadClient(BaseAPIClient):
    """Jobs, memberships, accounts and task creation in JobTread."""

    service_name = "jobtread"
    error_class = JobTreadAPIError

    def __init__(
        self,
        grant_key: str | None = None,
        base_url: str | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._grant_key = grant_key or JOBTREAD_API_KEY
        super().__init__(
            base_url or JOBTREAD_BASE_URL,
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    async def _query(self, query: dict[str, Any]) -> dict[str, Any]:
        """Run one Pave query with the grant key injected."""
        body = {"query": {"$": {"grantKey": self._grant_key}, **query}}
        return await self._request("POST", PAVE_PATH, json_body=body)

    # ── Jobs ─────────────────────────────────────────────────────────

    async def list_active_jobs(self, limit: int = 30) -> list[dict[str, Any]]:
        """Open (not closed) jobs, newest first."""
        data = await self._query({
            "jobs": {
                "$": {
                    "first": limit,
                    "where": {"closedOn": {"eq": None}},
                    "orderBy": {"createdAt": "DESC"},
                },
                "nodes": {
                    "id": {},
                    "name": {},
                    "number": {},
                    "status": {},
                    "createdAt": {},
                },
            },
        })
        return _nodes(data, "jobs")

    # ── People ───────────────────────────────────────────────────────

    async def list_members(self) -> list[dict[str, str]]:
        """Membership ids with display names (the ids tasks are assigned to)."""
        data = await self._query({
            "memberships": {
                "$": {"first": DEFAULT_PAGE_SIZE},
                "nodes": {"id": {}, "user": {"id": {}, "name": {}}},
            },
        })
        return [
            {"id": node.get("id", ""), "name": (node.get("user") or {}).get("name") or ""}
            for node in _nodes(data, "memberships")
        ]

    async def list_team_members(self) -> list[dict[str, Any]]:
        """Memberships with role and contact details."""
        data = await self._query({
            "memberships": {
                "$": {"first": DEFAULT_PAGE_SIZE},
                "nodes": {
                    "id": {},
                    "role": {"name": {}},
                    "user": {"id": {}, "name": {}, "emailAddress": {}},
                },
            },
        })
        return _nodes(data, "memberships")

    async def _list_accounts(self, account_type: str) -> list[dict[str, Any]]:
        data = await self._query({
            "accounts": {
                "$": {
                    "first": DEFAULT_PAGE_SIZE,
                    "where": {"type": {"eq": account_type}},
                    "orderBy": {"name": "ASC"},
                },
                "nodes": {
                    "id": {},
                    "name": {},
                    "type": {},
                    "primaryContact": {"name": {}, "emailAddress": {}, "phoneNumber": {}},
                },
            },
        })
        return _nodes(data, "accounts")

    async def list_customers(self) -> list[dict[str, Any]]:
        return await self._list_accounts("customer")

    async def list_vendors(self) -> list[dict[str, Any]]:
        return await self._list_accounts("vendor")

    # ── Tasks ────────────────────────────────────────────────────────

    async def create_task(
        self,
        job_id: str,
        name: str,
        *,
        description: str | None = None,
        start_date: str | None = None,
        end_date: str | None = None,
        assignee_ids: list[str] | None = None,
    ) -> dict[str, str]:
        """Create a task on a job and return ``{"id", "name"}``.

        Raises:
            JobTreadAPIError: if the call fails or no task comes back.
        """
        params: dict[str, Any] = {"targetId": job_id, "targetType": "job", "name": name}
        if description:
            params["description"] = description
        if start_date:
            params["startDate"] = start_date
        if end_date:
            params["endDate"] = end_date
        if assignee_ids:
            params["assignedMembershipIds"] = assignee_ids

        data = await self._query({
            "createTask": {
                "$": params,
                "createdTask": {"id": {}, "name": {}},
            },
        })
        created = (data.get("createTask") or {}).get("createdTask") or {}
        if not created.get("id"):
            raise JobTreadAPIError(f"Task creation failed: {json.dumps(data)[:300]}")

        logger.info("Created JobTread task %s on job %s", created["id"], job_id)
        return {"id": created["id"], "name": created.get("name") or name}
