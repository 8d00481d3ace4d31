"""LangGraph orchestration: pick an agent, fetch its context, run the tool loop.

Architecture:
  One StateGraph per process, four nodes:

    1. **select_agent**   - scores every registered agent against the latest
                            user message (regex tiers, no LLM call)
    2. **fetch_context**  - runs the chosen agent's fetchers, appends the
                            SYSTEM DATA block to the latest user message and
                            builds the agent's system prompt
    3. **chatbot**        - Claude with the chosen agent's tools bound
    4. **tools**          - executes every tool call from the last model
                            turn concurrently and feeds the results back

  Routing:
    select_agent → fetch_context → chatbot → (tool calls and under cap?) → tools → chatbot
                                           → (text only or cap reached)  → END

  The graph has no checkpointer: each request carries its full history and
  nothing is kept between requests.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Sequence
from typing import Annotated, Any

from langchain_anthropic import ChatAnthropic
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import (
    AIMessage,
    AnyMessage,
    BaseMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
)
from langgraph.graph import END, StateGraph
from langgraph.graph.message import add_messages
from typing_extensions import TypedDict

from client_assistant.agents import AgentModule, select_agent, tool_result
from client_assistant.config import ANTHROPIC_API_KEY, MAX_TOKENS, MAX_TOOL_ITERATIONS, MODEL_NAME
from client_assistant.intent import classify
from client_assistant.models import AgentResult, ConversationTurn, SessionContext
from client_assistant.prompts import inject_context
from client_assistant.services.metrics import metrics

logger = logging.getLogger(__name__)

NO_RESPONSE = "No response generated."


# ── State schema ─────────────────────────────────────────────────────


class AssistantState(TypedDict):
    """The state that flows through the graph.

    ``messages`` uses the ``add_messages`` reducer: nodes append, and a
    message returned with an existing id replaces the original (this is how
    the context block lands on the latest user turn).
    """

    messages: Annotated[list[AnyMessage], add_messages]
    session: SessionContext
    agent_name: str
    system_prompt: str
    tool_iterations: int


# ── Helpers ──────────────────────────────────────────────────────────


def message_text(message: BaseMessage | None) -> str:
    """Concatenate the text blocks of a message, ignoring tool-use blocks."""
    if message is None:
        return ""
    content = message.content
    if isinstance(content, str):
        return content
    parts = []
    for block in content:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


def _last_human(messages: Sequence[BaseMessage]) -> HumanMessage | None:
    for message in reversed(messages):
        if isinstance(message, HumanMessage):
            return message
    return None


def build_chat_model() -> ChatAnthropic:
    """Build the Claude model shared by every agent."""
    return ChatAnthropic(
        model=MODEL_NAME,
        api_key=ANTHROPIC_API_KEY,
        temperature=0.2,
        max_tokens=MAX_TOKENS,
    )


# ── Graph assembly ───────────────────────────────────────────────────


def create_assistant_graph(
    llm: BaseChatModel,
    agents: Sequence[AgentModule],
    *,
    max_tool_iterations: int = MAX_TOOL_ITERATIONS,
):
    """Build and compile the assistant graph.

    Args:
        llm: Chat model; agents with tools get ``llm.bind_tools(agent.tools)``.
        agents: Registry in priority order; the first entry is the default.
        max_tool_iterations: Cap on tool round-trips per request.

    Returns a compiled graph; use :func:`route_message` to run it.
    """
    agents_by_name = {agent.name: agent for agent in agents}
    models = {
        agent.name: llm.bind_tools(agent.tools) if agent.tools else llm
        for agent in agents
    }

    def select_agent_node(state: AssistantState) -> dict:
        text = message_text(_last_human(state["messages"]))
        agent = select_agent(text, agents)
        logger.info("Routing to agent: %s", agent.name)
        return {"agent_name": agent.name}

    async def fetch_context_node(state: AssistantState) -> dict:
        agent = agents_by_name[state["agent_name"]]
        session = state["session"]
        last = _last_human(state["messages"])
        text = message_text(last)

        fetched = await agent.fetch_context(session, classify(text))
        if fetched.job_id and not session.external_job_id:
            logger.debug("Resolved JobTread job id %s from CRM data", fetched.job_id)
            session = session.with_job_id(fetched.job_id)

        update: dict[str, Any] = {
            "session": session,
            "system_prompt": agent.system_prompt(session),
        }
        augmented = inject_context(text, session, fetched.text)
        if last is not None and augmented != text:
            update["messages"] = [HumanMessage(content=augmented, id=last.id)]
        return update

    async def chatbot_node(state: AssistantState) -> dict:
        name = state["agent_name"]
        system = SystemMessage(content=state["system_prompt"])
        logger.debug("chatbot node invoked - agent: %s, model: %s", name, MODEL_NAME)
        async with metrics.track("anthropic", "llm_invoke"):
            response = await models[name].ainvoke([system] + state["messages"])
        return {"messages": [response]}

    async def tools_node(state: AssistantState) -> dict:
        agent = agents_by_name[state["agent_name"]]
        calls = state["messages"][-1].tool_calls
        results = await asyncio.gather(
            *(agent.execute_tool(call["name"], call.get("args") or {}, state["session"]) for call in calls),
            return_exceptions=True,
        )
        tool_messages = []
        for call, result in zip(calls, results):
            if isinstance(result, BaseException):
                logger.error("Tool %s raised past its executor: %s", call["name"], result)
                result = tool_result(False, error=str(result) or "Tool execution failed")
            tool_messages.append(ToolMessage(content=result, tool_call_id=call["id"], name=call["name"]))
        return {
            "messages": tool_messages,
            "tool_iterations": state.get("tool_iterations", 0) + 1,
        }

    def should_use_tools(state: AssistantState) -> str:
        last_message = state["messages"][-1]
        if not getattr(last_message, "tool_calls", None):
            return END
        if state.get("tool_iterations", 0) >= max_tool_iterations:
            logger.warning(
                "Tool iteration cap (%d) reached for %s; returning current reply",
                max_tool_iterations, state["agent_name"],
            )
            return END
        return "tools"

    graph = StateGraph(AssistantState)

    graph.add_node("select_agent", select_agent_node)
    graph.add_node("fetch_context", fetch_context_node)
    graph.add_node("chatbot", chatbot_node)
    graph.add_node("tools", tools_node)

    graph.set_entry_point("select_agent")
    graph.add_edge("select_agent", "fetch_context")
    graph.add_edge("fetch_context", "chatbot")
    graph.add_conditional_edges(
        "chatbot", should_use_tools, {"tools": "tools", END: END},
    )
    graph.add_edge("tools", "chatbot")

    compiled = graph.compile()
    logger.debug(
        "Assistant graph compiled - agents: %s, tool cap: %d",
        ", ".join(agents_by_name), max_tool_iterations,
    )
    return compiled


# ── Entry point ──────────────────────────────────────────────────────


def _to_message(turn: ConversationTurn) -> BaseMessage:
    if turn.role == "assistant":
        return AIMessage(content=turn.content, id=str(uuid.uuid4()))
    return HumanMessage(content=turn.content, id=str(uuid.uuid4()))


async def route_message(
    graph,
    turns: Sequence[ConversationTurn],
    session: SessionContext,
    *,
    max_tool_iterations: int = MAX_TOOL_ITERATIONS,
) -> AgentResult:
    """Answer the latest user turn and report which agent handled it.

    Raises:
        ValueError: if there are no turns or the last turn is not from the user.
    """
    if not turns:
        raise ValueError("No messages provided")
    if turns[-1].role != "user":
        raise ValueError("The last message must come from the user")

    result = await graph.ainvoke(
        {
            "messages": [_to_message(turn) for turn in turns],
            "session": session,
            "agent_name": "",
            "system_prompt": "",
            "tool_iterations": 0,
        },
        config={"recursion_limit": 2 * max_tool_iterations + 10},
    )

    reply = message_text(result["messages"][-1]) if result.get("messages") else ""
    return AgentResult(agent_name=result["agent_name"], reply=reply or NO_RESPONSE)
