"""Ask the agent to send the fixed test joke with the smtp_send tool.

Prints every assistant message the agent produces.

Usage:
    python scripts/send_joke.py [recipient]
"""

import argparse
import asyncio
import json
import os
import sys

from mail_agent.config import settings
from mail_agent.core.logging import setup_logging
from mail_agent.exceptions import MailAgentServiceException
from mail_agent.runtime.agent import AnthropicAgentRuntime, create_agent_options
from mail_agent.runtime.events import AssistantText, ToolResult, normalize
from mail_agent.services.email_service import JOKE_TEXT, create_email_service
from mail_agent.services.search_service import create_search_service
from mail_agent.tools import build_toolset

SUBJECT = "Agent Joke Test"


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Send a test email through the agent")
    parser.add_argument("to", nargs="?", default=os.environ.get("SEND_TO"), help="Recipient address")
    return parser.parse_args()


def build_prompt(to: str) -> str:
    return "\n".join([
        "Use the tool `smtp_send` to send exactly one email.",
        f"to: {to}",
        f"subject: {SUBJECT}",
        f"text: {JOKE_TEXT}",
        'Do not ask for confirmation. After sending, reply with "done".',
    ])


async def main() -> int:
    args = parse_args()
    if not args.to:
        print("send-joke failed: recipient required (argument or SEND_TO)", file=sys.stderr)
        return 2

    setup_logging()
    tools = build_toolset(create_email_service(settings), create_search_service(settings))
    runtime = AnthropicAgentRuntime(create_agent_options(settings, tools))

    try:
        async for raw in runtime.run(build_prompt(args.to), tools):
            event = normalize(raw)
            if isinstance(event, AssistantText):
                print(f"Agent message: {event.text}")
            elif isinstance(event, ToolResult):
                print(f"Tool {event.tool_name}: {json.dumps(event.result, ensure_ascii=False)}")
    except MailAgentServiceException as e:
        print(f"send-joke failed: {e.message}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
