"""Tool declarations and dispatch for the agent runtime."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Type

from pydantic import BaseModel, ValidationError

from mail_agent.core.logging import get_logger

logger = get_logger(__name__)

# MCP server name the tools were historically published under
MCP_SERVER_NAME = "local-tools"
MCP_TOOL_PREFIX = f"mcp__{MCP_SERVER_NAME}__"

ToolHandler = Callable[[Any], Awaitable[Dict[str, Any]]]


def canonical_tool_name(name: str) -> str:
    """Strip the MCP qualification from a tool name."""
    if name.startswith(MCP_TOOL_PREFIX):
        return name[len(MCP_TOOL_PREFIX):]
    return name


@dataclass
class ResultSlot:
    """Last delivery id produced by the mail tool within one session."""

    message_id: Optional[str] = None

    def record(self, message_id: str) -> None:
        self.message_id = message_id


@dataclass
class AgentTool:
    """A capability the agent may invoke."""

    name: str
    description: str
    input_model: Type[BaseModel]
    handler: ToolHandler

    def declaration(self) -> Dict[str, Any]:
        """Anthropic tool declaration."""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_model.model_json_schema(),
        }

    async def invoke(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        try:
            params = self.input_model.model_validate(arguments or {})
        except ValidationError as e:
            return {"ok": False, "error": _format_validation_error(e)}
        return await self.handler(params)


@dataclass
class ToolSet:
    """The tools declared to one agent run."""

    tools: List[AgentTool] = field(default_factory=list)

    def __post_init__(self) -> None:
        self._by_name = {tool.name: tool for tool in self.tools}

    @property
    def names(self) -> List[str]:
        return [tool.name for tool in self.tools]

    @property
    def allowed_names(self) -> List[str]:
        """Plain names plus their MCP-qualified aliases."""
        return self.names + [f"{MCP_TOOL_PREFIX}{name}" for name in self.names]

    def declarations(self) -> List[Dict[str, Any]]:
        return [tool.declaration() for tool in self.tools]

    async def invoke(self, name: str, arguments: Dict[str, Any]) -> Dict[str, Any]:
        """Invoke a tool by name. Never raises for unknown tools."""
        tool = self._by_name.get(canonical_tool_name(name))
        if tool is None:
            logger.warning("Agent requested unknown tool", tool_name=name)
            return {"ok": False, "error": f"Unknown tool: {name}"}
        return await tool.invoke(arguments)

    @classmethod
    def of(cls, tools: Iterable[AgentTool]) -> "ToolSet":
        return cls(tools=list(tools))


def _format_validation_error(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        loc = ".".join(str(p) for p in item.get("loc", ())) or "input"
        parts.append(f"{loc}: {item.get('msg', 'invalid')}")
    return "; ".join(parts)
