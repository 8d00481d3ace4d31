"""CLI entry point for the client assistant.

A terminal chat loop for development.  For production, use the FastAPI
server (``client_assistant/server.py``).

Usage:
    python -m client_assistant.main --client-id abc123 --client-name "Jane Doe"
    python -m client_assistant.main --debug    # shows API calls
"""

from __future__ import annotations

import argparse
import asyncio
import logging

from dotenv import load_dotenv

from client_assistant.agent import build_chat_model, create_assistant_graph, route_message
from client_assistant.agents import build_agents
from client_assistant.models import ConversationTurn, SessionContext
from client_assistant.services.ghl_client import GHLClient
from client_assistant.services.jobtread_client import JobTreadClient

logger = logging.getLogger(__name__)


def _configure_logging(debug: bool = False) -> None:
    """Set up logging: WARNING by default, DEBUG when --debug is passed."""
    root_level = logging.DEBUG if debug else logging.WARNING
    logging.basicConfig(
        level=root_level,
        format="%(asctime)s %(levelname)-8s %(name)s - %(message)s",
    )

    if not debug:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)

    logging.getLogger("client_assistant").setLevel(logging.DEBUG if debug else logging.INFO)


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Client assistant CLI")
    parser.add_argument("--client-id", help="GoHighLevel contact id")
    parser.add_argument("--client-name")
    parser.add_argument("--opportunity-id", help="GoHighLevel opportunity id")
    parser.add_argument("--opportunity-name")
    parser.add_argument("--job-id", help="JobTread job id linked to the opportunity")
    parser.add_argument("--stage", help="Pipeline stage of the opportunity")
    parser.add_argument(
        "--debug", action="store_true",
        help="Show all log messages including HTTP requests",
    )
    return parser.parse_args(argv)


async def _chat_loop(args: argparse.Namespace) -> None:
    session = SessionContext.build(
        client_id=args.client_id,
        client_name=args.client_name,
        opportunity_id=args.opportunity_id,
        opportunity_name=args.opportunity_name,
        external_job_id=args.job_id,
        pipeline_stage=args.stage,
    )
    crm = GHLClient()
    jobtread = JobTreadClient()
    graph = create_assistant_graph(build_chat_model(), build_agents(crm, jobtread))
    history: list[ConversationTurn] = []
    logger.info("Started session for client %s", session.client_name or session.client_id or "(none)")

    try:
        while True:
            try:
                user_input = (await asyncio.to_thread(input, "You: ")).strip()
            except (KeyboardInterrupt, EOFError):
                print("\n\nGoodbye!")
                break

            if not user_input:
                continue

            if user_input.lower() in ("exit", "quit", "q"):
                print("\nGoodbye!")
                break

            if user_input.lower() == "new":
                history = []
                print("\n>> Conversation cleared.\n")
                continue

            history.append(ConversationTurn(role="user", content=user_input))
            try:
                result = await route_message(graph, history, session)
            except Exception as e:
                logger.exception("Error processing message")
                history.pop()
                print(f"\nAssistant: Something went wrong: {e}")
                print("     Please try again or type 'new' to start over.\n")
                continue

            history.append(ConversationTurn(role="assistant", content=result.reply))
            print(f"\n[{result.agent_name}] {result.reply}\n")
    finally:
        await crm.aclose()
        await jobtread.aclose()


def main(argv: list[str] | None = None):
    """Run the interactive CLI chat loop."""
    args = _parse_args(argv)

    load_dotenv()
    _configure_logging(debug=args.debug)

    print("\n" + "=" * 60)
    print("  Client Assistant - CLI Chat")
    print("=" * 60)
    print("  Type your message and press Enter.")
    print("  Commands: 'quit' to exit, 'new' to clear the conversation.")
    print("=" * 60 + "\n")

    try:
        asyncio.run(_chat_loop(args))
    except KeyboardInterrupt:
        print("\n\nGoodbye!")


if __name__ == "__main__":
    main()
