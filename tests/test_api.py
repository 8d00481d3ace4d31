"""Tests for the FastAPI endpoints."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient
from langchain_core.messages import AIMessage

from client_assistant.auth import issue_token
from client_assistant.server import app, lifespan
from client_assistant.services.ghl_client import GHLAPIError

PIN = "4321"


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {issue_token(PIN, expected_pin=PIN)}"}


@pytest.fixture
def mock_graph():
    """A compiled-graph double attached to app state (mirrors the lifespan)."""
    graph = MagicMock()
    graph.ainvoke = AsyncMock(return_value={
        "messages": [AIMessage(content="The Smith kitchen job is active.")],
        "agent_name": "Know it All",
    })
    app.state.graph = graph
    yield graph
    app.state.graph = None


@pytest.fixture
def mock_crm(crm):
    app.state.crm = crm
    yield crm
    app.state.crm = None


@pytest.fixture
def client(mock_graph, mock_crm):
    """FastAPI test client with mock resources wired up."""
    return TestClient(app)


def _chat_body(**extra):
    body = {"messages": [{"role": "user", "content": "What jobs are active?"}]}
    body.update(extra)
    return body


class TestHealthEndpoint:
    def test_health_returns_ok(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["service"] == "client-assistant"


class TestAuthEndpoint:
    def test_correct_pin_returns_token(self, client):
        response = client.post("/api/auth", json={"pin": PIN})
        assert response.status_code == 200
        assert response.json()["token"]

    def test_wrong_pin_rejected(self, client):
        response = client.post("/api/auth", json={"pin": "0000"})
        assert response.status_code == 401

    def test_protected_endpoint_requires_token(self, client):
        response = client.post("/api/chat", json=_chat_body())
        assert response.status_code == 401

    def test_bad_token_rejected(self, client):
        response = client.post(
            "/api/chat", json=_chat_body(), headers={"Authorization": "Bearer not-a-token"},
        )
        assert response.status_code == 401


class TestChatEndpoint:
    def test_chat_returns_reply_and_agent(self, client, auth_headers):
        response = client.post("/api/chat", json=_chat_body(), headers=auth_headers)
        assert response.status_code == 200
        assert response.json() == {
            "reply": "The Smith kitchen job is active.",
            "agent": "Know it All",
        }

    def test_chat_passes_session_to_graph(self, client, mock_graph, auth_headers):
        client.post(
            "/api/chat",
            json=_chat_body(
                client_id="c1", client_name="Jane Doe",
                opportunity_id="o1", pipeline_stage="In-Design",
            ),
            headers=auth_headers,
        )
        state = mock_graph.ainvoke.call_args.args[0]
        session = state["session"]
        assert session.client_id == "c1"
        assert session.opportunity_id == "o1"
        assert session.communication_channel.value == "project-system"
        assert state["messages"][-1].content == "What jobs are active?"

    def test_chat_validates_empty_messages(self, client, mock_graph, auth_headers):
        response = client.post("/api/chat", json={"messages": []}, headers=auth_headers)
        assert response.status_code == 422
        mock_graph.ainvoke.assert_not_called()

    def test_chat_validates_empty_content(self, client, auth_headers):
        response = client.post(
            "/api/chat", json={"messages": [{"role": "user", "content": ""}]}, headers=auth_headers,
        )
        assert response.status_code == 422

    def test_chat_rejects_assistant_last_turn(self, client, mock_graph, auth_headers):
        body = {"messages": [{"role": "assistant", "content": "Hi"}]}
        response = client.post("/api/chat", json=body, headers=auth_headers)
        assert response.status_code == 422
        mock_graph.ainvoke.assert_not_called()

    def test_chat_handles_graph_error(self, client, mock_graph, auth_headers):
        mock_graph.ainvoke.side_effect = RuntimeError("LLM exploded")
        response = client.post("/api/chat", json=_chat_body(), headers=auth_headers)
        assert response.status_code == 500
        # Verify we do NOT leak the internal error message to the client
        detail = response.json()["detail"]
        assert "LLM exploded" not in detail
        assert "internal error" in detail.lower()

    def test_response_includes_request_id_header(self, client, auth_headers):
        response = client.post("/api/chat", json=_chat_body(), headers=auth_headers)
        assert "X-Request-ID" in response.headers

    def test_client_supplied_request_id_is_echoed(self, client, auth_headers):
        response = client.post(
            "/api/chat",
            json=_chat_body(),
            headers={**auth_headers, "X-Request-ID": "my-trace-id-123"},
        )
        assert response.headers["X-Request-ID"] == "my-trace-id-123"


class TestGraphNotReady:
    def test_returns_503_when_graph_not_initialised(self, auth_headers):
        """Before the lifespan has built the graph, chat returns 503."""
        app.state.graph = None
        response = TestClient(app).post("/api/chat", json=_chat_body(), headers=auth_headers)
        assert response.status_code == 503
        assert "starting up" in response.json()["detail"].lower()


class TestContactsEndpoint:
    def test_short_query_returns_empty(self, client, mock_crm, auth_headers):
        response = client.get("/api/contacts", params={"q": "j"}, headers=auth_headers)
        assert response.json() == {"contacts": []}
        mock_crm.search_contacts.assert_not_called()

    def test_returns_contacts(self, client, mock_crm, auth_headers):
        mock_crm.search_contacts.return_value = [
            {"id": "c1", "name": "Jane Doe", "email": "j@x.com", "phone": "", "company_name": ""},
        ]
        response = client.get("/api/contacts", params={"q": "jane"}, headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["contacts"][0]["name"] == "Jane Doe"

    def test_upstream_failure_is_502(self, client, mock_crm, auth_headers):
        mock_crm.search_contacts.side_effect = GHLAPIError("down", status_code=503)
        response = client.get("/api/contacts", params={"q": "jane"}, headers=auth_headers)
        assert response.status_code == 502


class TestOpportunitiesEndpoint:
    def test_missing_client_id_returns_empty(self, client, auth_headers):
        response = client.get("/api/opportunities", headers=auth_headers)
        assert response.json() == {"opportunities": []}

    def test_extracts_job_id_and_resolves_stage(self, client, mock_crm, auth_headers):
        mock_crm.list_opportunities.return_value = [{
            "id": "o1",
            "name": "Kitchen Remodel",
            "status": "open",
            "pipelineId": "p1",
            "pipelineStageId": "s2",
            "monetaryValue": 85000,
            "customFields": [{"fieldKey": "opportunity.jt_job_id", "value": "JT-77"}],
        }]
        mock_crm.list_pipelines.return_value = [{
            "id": "p1",
            "name": "Projects",
            "stages": [{"id": "s1", "name": "Leads"}, {"id": "s2", "name": "In-Production"}],
        }]

        response = client.get("/api/opportunities", params={"client_id": "c1"}, headers=auth_headers)

        assert response.status_code == 200
        (opp,) = response.json()["opportunities"]
        assert opp["external_job_id"] == "JT-77"
        assert opp["stage_name"] == "In-Production"
        assert opp["pipeline_name"] == "Projects"
        assert opp["communication_channel"] == "project-system"
        assert opp["monetary_value"] == 85000

    def test_unnamed_opportunity_without_job_id(self, client, mock_crm, auth_headers):
        mock_crm.list_opportunities.return_value = [
            {"id": "o2", "stageName": "New Inquiry"},
        ]
        response = client.get("/api/opportunities", params={"client_id": "c1"}, headers=auth_headers)
        (opp,) = response.json()["opportunities"]
        assert opp["name"] == "Unnamed Opportunity"
        assert opp["external_job_id"] is None
        assert opp["communication_channel"] == "crm"
        mock_crm.list_pipelines.assert_not_called()

    def test_pipeline_failure_still_lists_opportunities(self, client, mock_crm, auth_headers):
        mock_crm.list_opportunities.return_value = [{"id": "o3", "name": "Porch"}]
        mock_crm.list_pipelines.side_effect = GHLAPIError("down", status_code=500)
        response = client.get("/api/opportunities", params={"client_id": "c1"}, headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["opportunities"][0]["communication_channel"] == "unknown"

    def test_upstream_failure_is_502(self, client, mock_crm, auth_headers):
        mock_crm.list_opportunities.side_effect = GHLAPIError("down", status_code=503)
        response = client.get("/api/opportunities", params={"client_id": "c1"}, headers=auth_headers)
        assert response.status_code == 502


class TestNotesEndpoint:
    def test_uploads_transcript(self, client, mock_crm, auth_headers):
        response = client.post(
            "/api/notes",
            json={"client_id": "c1", "transcript": "We agreed on the tile.", "meeting_type": "Call"},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert response.json() == {"success": True, "parts_created": 1}
        body = mock_crm.create_note.await_args.args[1]
        assert body.startswith("--- Call | ")

    def test_blank_transcript_is_400(self, client, mock_crm, auth_headers):
        response = client.post(
            "/api/notes", json={"client_id": "c1", "transcript": "   "}, headers=auth_headers,
        )
        assert response.status_code == 400
        mock_crm.create_note.assert_not_called()

    def test_upstream_failure_is_502(self, client, mock_crm, auth_headers):
        mock_crm.create_note.side_effect = GHLAPIError("rejected", status_code=422)
        response = client.post(
            "/api/notes", json={"client_id": "c1", "transcript": "hello"}, headers=auth_headers,
        )
        assert response.status_code == 502


class TestRootEndpoint:
    def test_root_returns_service_info(self, client):
        response = client.get("/")
        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "Client Assistant"
        assert "docs" in data


class TestLifespan:
    @pytest.mark.asyncio
    async def test_builds_graph_and_closes_both_clients(self):
        crm, jobtread = AsyncMock(), AsyncMock()
        with (
            patch("client_assistant.server.GHLClient", return_value=crm),
            patch("client_assistant.server.JobTreadClient", return_value=jobtread),
            patch("client_assistant.server.build_chat_model"),
            patch("client_assistant.server.build_agents") as build_agents,
            patch("client_assistant.server.create_assistant_graph", return_value="graph"),
        ):
            async with lifespan(app):
                assert app.state.graph == "graph"
                assert app.state.crm is crm
                assert not hasattr(app.state, "jobtread")
                build_agents.assert_called_once_with(crm, jobtread)
        crm.aclose.assert_awaited_once()
        jobtread.aclose.assert_awaited_once()
        app.state.graph = None
        app.state.crm = None
