"""Tests for the GoHighLevel client and the shared retry logic."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from client_assistant.services.base_client import INITIAL_BACKOFF_SECONDS, MAX_RETRIES
from client_assistant.services.ghl_client import GHLAPIError, GHLClient

# ── Helpers ──────────────────────────────────────────────────────────


def _client(handler) -> GHLClient:
    return GHLClient(
        token="test-token",
        location_id="loc-1",
        base_url="https://ghl.test",
        transport=httpx.MockTransport(handler),
    )


def _scripted(*responses):
    """Handler that replays *responses* (an httpx.Response or an exception) in order."""
    requests: list[httpx.Request] = []
    queue = list(responses)

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        item = queue.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    handler.requests = requests
    return handler


# ── Tests: requests and response shapes ─────────────────────────────


class TestContacts:
    @pytest.mark.asyncio
    async def test_get_contact_unwraps_and_sends_headers(self):
        handler = _scripted(httpx.Response(200, json={"contact": {"id": "c1", "firstName": "Jane"}}))
        client = _client(handler)

        contact = await client.get_contact("c1")

        assert contact == {"id": "c1", "firstName": "Jane"}
        request = handler.requests[0]
        assert request.url.path == "/contacts/c1"
        assert request.headers["Authorization"] == "Bearer test-token"
        assert request.headers["Version"] == "2021-07-28"

    @pytest.mark.asyncio
    async def test_search_contacts_returns_summaries(self):
        handler = _scripted(httpx.Response(200, json={"contacts": [
            {"id": "c1", "firstName": "Jane", "lastName": "Doe", "email": "j@x.com",
             "companyName": "Doe Co", "phone": None},
        ]}))
        client = _client(handler)

        contacts = await client.search_contacts("jane")

        assert contacts == [{
            "id": "c1", "name": "Jane Doe", "email": "j@x.com",
            "phone": "", "company_name": "Doe Co",
        }]
        params = handler.requests[0].url.params
        assert params["locationId"] == "loc-1"
        assert params["query"] == "jane"


class TestNotesAndMessages:
    @pytest.mark.asyncio
    async def test_create_note_posts_body(self):
        handler = _scripted(httpx.Response(201, json={"note": {"id": "n1"}}))
        client = _client(handler)

        note = await client.create_note("c1", "--- Call | 1/1/2025 ---\n\nhello")

        assert note == {"id": "n1"}
        request = handler.requests[0]
        assert request.method == "POST"
        assert request.url.path == "/contacts/c1/notes"
        assert json.loads(request.content) == {"body": "--- Call | 1/1/2025 ---\n\nhello"}

    @pytest.mark.asyncio
    async def test_list_messages_handles_nested_page(self):
        handler = _scripted(httpx.Response(200, json={"messages": {"messages": [{"id": "m1"}]}}))
        client = _client(handler)
        assert await client.list_messages("conv-1") == [{"id": "m1"}]
        assert handler.requests[0].url.params["limit"] == "40"

    @pytest.mark.asyncio
    async def test_list_messages_handles_flat_list(self):
        handler = _scripted(httpx.Response(200, json={"messages": [{"id": "m2"}]}))
        client = _client(handler)
        assert await client.list_messages("conv-1") == [{"id": "m2"}]


class TestOpportunities:
    @pytest.mark.asyncio
    async def test_list_opportunities_filters_by_contact(self):
        handler = _scripted(httpx.Response(200, json={"opportunities": [{"id": "o1"}]}))
        client = _client(handler)

        assert await client.list_opportunities("c1") == [{"id": "o1"}]
        params = handler.requests[0].url.params
        assert params["contact_id"] == "c1"
        assert params["location_id"] == "loc-1"

    @pytest.mark.asyncio
    async def test_get_opportunity_unwraps(self):
        handler = _scripted(httpx.Response(200, json={"opportunity": {"id": "o1", "name": "Kitchen"}}))
        client = _client(handler)
        assert await client.get_opportunity("o1") == {"id": "o1", "name": "Kitchen"}


# ── Tests: retry logic ──────────────────────────────────────────────


class TestRetryLogic:
    @pytest.mark.asyncio
    @patch("client_assistant.services.base_client.asyncio.sleep", new_callable=AsyncMock)
    async def test_retries_on_timeout(self, mock_sleep):
        handler = _scripted(
            httpx.ReadTimeout("timeout"),
            httpx.Response(200, json={"notes": [{"id": "n1"}]}),
        )
        client = _client(handler)

        assert await client.list_notes("c1") == [{"id": "n1"}]
        mock_sleep.assert_awaited_once_with(INITIAL_BACKOFF_SECONDS)

    @pytest.mark.asyncio
    @patch("client_assistant.services.base_client.asyncio.sleep", new_callable=AsyncMock)
    async def test_retries_on_500_error(self, mock_sleep):
        handler = _scripted(
            httpx.Response(503, text="unavailable"),
            httpx.Response(200, json={"tasks": []}),
        )
        client = _client(handler)

        assert await client.list_tasks("c1") == []
        assert len(handler.requests) == 2

    @pytest.mark.asyncio
    @patch("client_assistant.services.base_client.asyncio.sleep", new_callable=AsyncMock)
    async def test_does_not_retry_on_400_error(self, mock_sleep):
        handler = _scripted(httpx.Response(404, text="Contact not found"))
        client = _client(handler)

        with pytest.raises(GHLAPIError) as excinfo:
            await client.get_contact("missing")

        assert excinfo.value.status_code == 404
        assert "Contact not found" in str(excinfo.value)
        mock_sleep.assert_not_called()

    @pytest.mark.asyncio
    @patch("client_assistant.services.base_client.asyncio.sleep", new_callable=AsyncMock)
    async def test_raises_after_max_retries(self, mock_sleep):
        handler = _scripted(*[httpx.ConnectError("refused") for _ in range(MAX_RETRIES)])
        client = _client(handler)

        with pytest.raises(GHLAPIError, match="failed after 3 retries"):
            await client.list_pipelines()

        assert len(handler.requests) == MAX_RETRIES
        # Backoff doubles between attempts; no sleep after the last one
        assert [c.args[0] for c in mock_sleep.await_args_list] == [
            INITIAL_BACKOFF_SECONDS, INITIAL_BACKOFF_SECONDS * 2,
        ]

    @pytest.mark.asyncio
    @patch("client_assistant.services.base_client.asyncio.sleep", new_callable=AsyncMock)
    async def test_final_server_error_keeps_status(self, mock_sleep):
        handler = _scripted(*[httpx.Response(502, text="bad gateway") for _ in range(MAX_RETRIES)])
        client = _client(handler)

        with pytest.raises(GHLAPIError) as excinfo:
            await client.search_conversations("c1")

        assert excinfo.value.status_code == 502
