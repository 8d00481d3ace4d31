"""Agent registry and selection.

Selection is a linear max-scan over a fixed-order list: the agent with the
strictly highest score wins, and the first (default) agent keeps ties and
all-zero cases.  Selection only looks at the latest user message.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from client_assistant.agents.base import AgentModule, tool_result
from client_assistant.agents.data_entry import DataEntrySpecialist
from client_assistant.agents.know_it_all import KnowItAll
from client_assistant.services.ghl_client import GHLClient
from client_assistant.services.jobtread_client import JobTreadClient

logger = logging.getLogger(__name__)

__all__ = [
    "AgentModule",
    "DataEntrySpecialist",
    "KnowItAll",
    "build_agents",
    "select_agent",
    "tool_result",
]


def build_agents(crm: GHLClient, jobtread: JobTreadClient) -> list[AgentModule]:
    """Return the registry; the first entry is the default agent."""
    return [
        KnowItAll(crm, jobtread),
        DataEntrySpecialist(crm, jobtread),
    ]


def select_agent(message: str, agents: Sequence[AgentModule]) -> AgentModule:
    if not agents:
        raise ValueError("No agents registered")

    best = agents[0]
    best_score = 0.0
    for agent in agents:
        score = agent.score(message)
        logger.debug("Agent %r scored %.2f", agent.name, score)
        if score > best_score:
            best, best_score = agent, score
    return best
