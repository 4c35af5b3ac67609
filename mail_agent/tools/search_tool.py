"""web_search tool: lets the agent research the recipient."""

from __future__ import annotations

from typing import Any, Dict

from mail_agent.schemas.email import SearchRequest
from mail_agent.services.search_service import SearchService

from .base import AgentTool

SEARCH_TOOL_NAME = "web_search"


def search_handler(search_service: SearchService):
    async def handler(params: SearchRequest) -> Dict[str, Any]:
        results = await search_service.search(params.query, params.limit, params.site)
        return {"ok": True, "results": [r.model_dump(exclude_none=True) for r in results]}

    return handler


def create_search_tool(search_service: SearchService) -> AgentTool:
    return AgentTool(
        name=SEARCH_TOOL_NAME,
        description="Search the web and return top results",
        input_model=SearchRequest,
        handler=search_handler(search_service),
    )
