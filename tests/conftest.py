"""Shared test fixtures for the client assistant test suite."""

from __future__ import annotations

import os
from unittest.mock import AsyncMock

import pytest


def pytest_configure(config):
    """Set test environment variables BEFORE collection starts.

    This runs before any imports, so config.py won't fail on module load.
    """
    os.environ.setdefault("ANTHROPIC_API_KEY", "test-anthropic-key-123")
    os.environ.setdefault("GHL_API_KEY", "test-ghl-token-456")
    os.environ.setdefault("GHL_LOCATION_ID", "loc-test")
    os.environ.setdefault("JOBTREAD_API_KEY", "test-jobtread-grant-789")
    os.environ.setdefault("APP_PIN", "4321")
    os.environ.setdefault("METRICS_ENABLED", "false")


@pytest.fixture
def crm():
    """A GHLClient double whose reads all succeed with empty results."""
    from client_assistant.services.ghl_client import GHLClient

    mock = AsyncMock(spec=GHLClient)
    mock.get_contact.return_value = {}
    mock.list_notes.return_value = []
    mock.search_conversations.return_value = []
    mock.list_messages.return_value = []
    mock.list_tasks.return_value = []
    mock.list_opportunities.return_value = []
    mock.get_opportunity.return_value = {}
    mock.list_pipelines.return_value = []
    mock.search_contacts.return_value = []
    mock.create_note.return_value = {"id": "note-1"}
    return mock


@pytest.fixture
def jobtread():
    """A JobTreadClient double whose reads all succeed with empty results."""
    from client_assistant.services.jobtread_client import JobTreadClient

    mock = AsyncMock(spec=JobTreadClient)
    mock.list_active_jobs.return_value = []
    mock.list_members.return_value = []
    mock.list_team_members.return_value = []
    mock.list_customers.return_value = []
    mock.list_vendors.return_value = []
    mock.create_task.return_value = {"id": "task-1", "name": "Task"}
    return mock
