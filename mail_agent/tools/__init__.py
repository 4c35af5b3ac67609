"""Agent tool adapters."""

from typing import Optional

from mail_agent.services.email_service import EmailService
from mail_agent.services.search_service import SearchService

from .base import AgentTool, ResultSlot, ToolSet, canonical_tool_name
from .search_tool import SEARCH_TOOL_NAME, create_search_tool
from .smtp_tool import SMTP_TOOL_NAME, create_smtp_tool


def build_toolset(
    email_service: EmailService,
    search_service: SearchService,
    result_slot: Optional[ResultSlot] = None,
) -> ToolSet:
    """Bind the shared services into one session's tool set."""
    return ToolSet.of([
        create_smtp_tool(email_service, result_slot),
        create_search_tool(search_service),
    ])


__all__ = [
    "AgentTool",
    "ResultSlot",
    "SEARCH_TOOL_NAME",
    "SMTP_TOOL_NAME",
    "ToolSet",
    "build_toolset",
    "canonical_tool_name",
    "create_search_tool",
    "create_smtp_tool",
]
