"""Normalization of raw agent runtime events.

The agent runtime's event schema is not stable: assistant text may arrive as a
bare string, as a list of typed content parts, or nested under ``message``;
tool results use several names for the tool and for its payload. ``normalize``
is the single place that absorbs those variations. It is a pure function of its
input and never raises: anything it does not recognise becomes ``Other``.
"""

from __future__ import annotations

import dataclasses
import json
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from mail_agent.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class AssistantText:
    text: str


@dataclass(frozen=True)
class ToolResult:
    tool_name: str
    result: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Other:
    event_type: Optional[str] = None


NormalizedEvent = Union[AssistantText, ToolResult, Other]


# Accepted field-name aliases per variant
TOOL_RESULT_TYPES = frozenset({
    "tool_result", "tool_use_result", "tool_call_result", "tool_call_completed", "mcp_tool_result",
})
TOOL_NAME_KEYS: Tuple[str, ...] = ("tool_name", "toolName", "name", "tool")
TOOL_RESULT_KEYS: Tuple[str, ...] = ("result", "tool_result", "toolResult", "output", "tool_output", "content")
ASSISTANT_TYPES = frozenset({"assistant", "message", "assistant_message", "text"})
ASSISTANT_ROLES = frozenset({"assistant"})
TEXT_KEYS: Tuple[str, ...] = ("content", "text")
TEXT_PART_TYPES = frozenset({"text", "output_text"})


def normalize(raw: Any) -> NormalizedEvent:
    """Classify one raw agent event."""
    try:
        event = _as_mapping(raw)
        if event is None:
            return Other()
        return _classify(event)
    except Exception as e:
        logger.debug("Unrecognised agent event", error=str(e))
        return Other()


def _classify(event: Mapping[str, Any]) -> NormalizedEvent:
    event_type = _str_or_none(event.get("type"))

    if event_type in TOOL_RESULT_TYPES or _looks_like_tool_result(event):
        tool_event = _tool_result(event)
        if tool_event is not None:
            return tool_event

    message = _as_mapping(event.get("message"))
    if message is not None and _str_or_none(message.get("role")) in ASSISTANT_ROLES:
        text = _text_of(message)
        return AssistantText(text) if text else Other(event_type)

    role = _str_or_none(event.get("role"))
    if event_type in ASSISTANT_TYPES or role in ASSISTANT_ROLES:
        if role is not None and role not in ASSISTANT_ROLES:
            return Other(event_type)
        text = _text_of(event)
        if text:
            return AssistantText(text)

    return Other(event_type)


def _looks_like_tool_result(event: Mapping[str, Any]) -> bool:
    has_name = any(isinstance(event.get(key), str) for key in TOOL_NAME_KEYS[:2])
    has_result = any(key in event for key in TOOL_RESULT_KEYS[:5])
    return has_name and has_result


def _tool_result(event: Mapping[str, Any]) -> Optional[ToolResult]:
    name = _first_str(event, TOOL_NAME_KEYS)
    if not name:
        return None
    for key in TOOL_RESULT_KEYS:
        if key in event:
            return ToolResult(tool_name=name, result=_payload_of(event[key]))
    return ToolResult(tool_name=name)


def _payload_of(value: Any) -> Dict[str, Any]:
    """Coerce a tool result payload into a map."""
    mapping = _as_mapping(value)
    if mapping is not None:
        # MCP-style results wrap the handler output in text content parts
        if "content" in mapping and isinstance(mapping["content"], list) and len(mapping) <= 2:
            parsed = _parse_json_object(_join_text_parts(mapping["content"]))
            if parsed is not None:
                return parsed
        return dict(mapping)
    if isinstance(value, str):
        return _parse_json_object(value) or {"content": value}
    if isinstance(value, list):
        text = _join_text_parts(value)
        return _parse_json_object(text) or {"content": text}
    return {}


def _text_of(event: Mapping[str, Any]) -> str:
    for key in TEXT_KEYS:
        value = event.get(key)
        if isinstance(value, str):
            return value
        if isinstance(value, list):
            text = _join_text_parts(value)
            if text:
                return text
    return ""


def _join_text_parts(parts: list) -> str:
    texts = []
    for part in parts:
        if isinstance(part, str):
            texts.append(part)
            continue
        part_map = _as_mapping(part)
        if part_map is None:
            continue
        if _str_or_none(part_map.get("type"), "text") in TEXT_PART_TYPES and isinstance(part_map.get("text"), str):
            texts.append(part_map["text"])
    return "".join(texts)


def _parse_json_object(text: str) -> Optional[Dict[str, Any]]:
    try:
        value = json.loads(text)
    except (TypeError, ValueError):
        return None
    return value if isinstance(value, dict) else None


def _as_mapping(value: Any) -> Optional[Mapping[str, Any]]:
    """View dicts, pydantic models, dataclasses and plain objects as mappings."""
    if value is None or isinstance(value, (str, bytes, int, float, bool, list, tuple)):
        return None
    if isinstance(value, Mapping):
        return value
    if hasattr(value, "model_dump"):
        return value.model_dump()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if hasattr(value, "__dict__"):
        return {k: v for k, v in vars(value).items() if not k.startswith("_")}
    return None


def _first_str(event: Mapping[str, Any], keys: Tuple[str, ...]) -> Optional[str]:
    for key in keys:
        value = event.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def _str_or_none(value: Any, default: Optional[str] = None) -> Optional[str]:
    if value is None:
        return default
    return value if isinstance(value, str) else default
