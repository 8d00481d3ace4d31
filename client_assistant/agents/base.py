"""The shape every specialist agent implements.

Agents are plain objects satisfying :class:`AgentModule`; there is no shared
base class.  The router scores every registered agent against the latest
user message and hands the conversation to the best one.
"""

from __future__ import annotations

import json
from typing import Any, Protocol

from client_assistant.fetchers import FetchedContext
from client_assistant.intent import Intent
from client_assistant.models import SessionContext


class AgentModule(Protocol):
    name: str
    description: str
    # Anthropic tool definitions ({"name", "description", "input_schema"})
    tools: list[dict[str, Any]]

    def score(self, message: str) -> float:
        """Confidence in [0, 1] that this agent should handle *message*."""
        ...

    def system_prompt(self, session: SessionContext) -> str: ...

    async def fetch_context(self, session: SessionContext, intent: Intent) -> FetchedContext: ...

    async def execute_tool(
        self, name: str, tool_input: dict[str, Any], session: SessionContext,
    ) -> str:
        """Run a tool call and return a JSON payload.  Must never raise."""
        ...


def tool_result(success: bool, *, result: Any = None, error: str | None = None) -> str:
    """Encode a tool outcome as ``{"success", "result"}`` or ``{"success", "error"}``."""
    payload: dict[str, Any] = {"success": success}
    if success:
        payload["result"] = result
    else:
        payload["error"] = error or "Tool execution failed"
    return json.dumps(payload, default=str)
