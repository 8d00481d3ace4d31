"""Client assistant: a team chat assistant over GoHighLevel and JobTread.

Architecture Overview
=====================

Each chat request carries the whole conversation plus the client and
opportunity the user has selected.  A **LangGraph** state machine then:

1. **select_agent** scores every registered agent against the latest user
   message and picks the best one (the research agent wins ties).
2. **fetch_context** runs that agent's fetchers against the CRM and the
   project system and appends the results to the latest user message.
3. **chatbot** calls Claude with the agent's system prompt and tools.
4. **tools** executes tool calls and loops back, up to a fixed cap.

Agents
------
- **Know it All** answers questions from CRM notes, messages, tasks and
  JobTread jobs, team, customers and vendors.  It has no tools.
- **JT Entry Specialist** creates tasks on the selected JobTread job.

Key Design Decisions
--------------------
- **Stateless requests**: no checkpointer; history comes from the caller.
- **Partial failure**: every upstream read is isolated; a failed read shows
  up as an error section in the context instead of failing the request.
- **Resilience**: both HTTP clients retry timeouts and 5xx responses with
  exponential backoff (3 attempts).
- **Dual Interface**: FastAPI server (production) + CLI chat loop (development).

Package Structure
-----------------
- ``client_assistant/agent.py`` - LangGraph StateGraph definition
- ``client_assistant/agents/`` - agent registry, scoring and tools
- ``client_assistant/fetchers.py`` - context fetchers
- ``client_assistant/intent.py`` - keyword intent classifier
- ``client_assistant/prompts.py`` - system prompts and context block
- ``client_assistant/transcripts.py`` - transcript splitting and upload
- ``client_assistant/services/`` - CRM, JobTread and metrics clients
- ``client_assistant/api/`` - FastAPI routes and Pydantic schemas
"""
