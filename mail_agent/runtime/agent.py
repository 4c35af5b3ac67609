"""Agent runtime boundary and its Anthropic implementation."""

from __future__ import annotations

import json
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional, Protocol

from anthropic import APIError, AsyncAnthropic

from mail_agent.config import Settings
from mail_agent.core.logging import get_logger
from mail_agent.exceptions import UpstreamFailureError
from mail_agent.tools import ToolSet

logger = get_logger(__name__)

DEFAULT_SYSTEM_PROMPT = """You are a persistent email assistant with two tools.

- `web_search` finds public information about a person or organisation.
- `smtp_send` delivers one email. It returns {"ok": true, "messageId": "..."} on success.

Never ask the user for confirmation; act on the task as given. Send at most one
email per task. When the email has been sent, finish with a JSON object:
{"status": "sent", "messageId": "<the id returned by smtp_send>"}
"""

# Conversations kept for resume tokens
MAX_RESUMABLE_CONVERSATIONS = 64
# Messages kept per resume token
MAX_RESUMABLE_MESSAGES = 40


class AgentRuntime(Protocol):
    """Produces the raw event sequence of one agent run."""

    def run(
        self,
        prompt: str,
        tools: ToolSet,
        resume: Optional[str] = None,
    ) -> AsyncIterator[Any]:
        ...


@dataclass
class AgentOptions:
    """Options for one agent runtime instance."""

    model: str
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    max_turns: int = 8
    max_tokens: int = 2048
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    resume: Optional[str] = None
    allowed_tools: List[str] = field(default_factory=list)


def create_agent_options(settings: Settings, tools: Optional[ToolSet] = None) -> AgentOptions:
    return AgentOptions(
        model=settings.agent_model,
        max_turns=settings.AGENT_MAX_TURNS,
        max_tokens=settings.AGENT_MAX_TOKENS,
        api_key=settings.ANTHROPIC_API_KEY,
        base_url=settings.agent_base_url,
        resume=settings.AGENT_SESSION_ID,
        allowed_tools=tools.allowed_names if tools is not None else [],
    )


class AnthropicAgentRuntime:
    """Bounded tool-use loop over the Anthropic Messages API.

    Yields ``{"type": "assistant", "message": {...}}`` for every model turn and
    ``{"type": "tool_result", ...}`` for every tool the model called. Runs that
    share a resume token continue the same conversation.
    """

    def __init__(self, options: AgentOptions, client: Optional[AsyncAnthropic] = None):
        self.options = options
        self._client = client
        self._conversations: "OrderedDict[str, List[Dict[str, Any]]]" = OrderedDict()

    def _get_client(self) -> AsyncAnthropic:
        if self._client is None:
            kwargs: Dict[str, Any] = {"api_key": self.options.api_key}
            if self.options.base_url:
                kwargs["base_url"] = self.options.base_url
            self._client = AsyncAnthropic(**kwargs)
        return self._client

    async def run(
        self,
        prompt: str,
        tools: ToolSet,
        resume: Optional[str] = None,
    ) -> AsyncIterator[Dict[str, Any]]:
        resume = resume or self.options.resume
        history = self._conversations.get(resume, []) if resume else []
        messages = _with_prompt(history, prompt)

        params: Dict[str, Any] = {
            "model": self.options.model,
            "max_tokens": self.options.max_tokens,
            "system": self.options.system_prompt,
        }
        declarations = self._allowed_declarations(tools)
        if declarations:
            params["tools"] = declarations

        client = self._get_client()
        try:
            for turn in range(1, self.options.max_turns + 1):
                logger.debug("Agent turn", turn=turn, max_turns=self.options.max_turns)
                try:
                    response = await client.messages.create(messages=messages, **params)
                except APIError as e:
                    logger.error("Model request failed", error=str(e), model=self.options.model)
                    raise UpstreamFailureError(
                        f"Model request failed: {e}",
                        details={"model": self.options.model},
                    ) from e

                content = [block.model_dump(exclude_none=True) for block in response.content]
                messages.append({"role": "assistant", "content": content})
                yield {
                    "type": "assistant",
                    "message": {"role": "assistant", "content": content},
                    "stop_reason": response.stop_reason,
                }

                tool_uses = _tool_uses(content)
                if not tool_uses:
                    break

                # Tool results join the conversation before they are reported
                results = [await tools.invoke(use["name"], use.get("input") or {}) for use in tool_uses]
                messages.append({
                    "role": "user",
                    "content": [
                        {
                            "type": "tool_result",
                            "tool_use_id": use["id"],
                            "content": json.dumps(result, ensure_ascii=False),
                            "is_error": result.get("ok") is False,
                        }
                        for use, result in zip(tool_uses, results)
                    ],
                })
                for use, result in zip(tool_uses, results):
                    yield {
                        "type": "tool_result",
                        "tool_name": use["name"],
                        "tool_use_id": use["id"],
                        "result": result,
                    }
            else:
                logger.warning("Agent reached max turns", max_turns=self.options.max_turns)
        finally:
            if resume:
                self._remember(resume, messages, history)

    def _allowed_declarations(self, tools: ToolSet) -> List[Dict[str, Any]]:
        if not self.options.allowed_tools:
            return tools.declarations()
        allowed = set(self.options.allowed_tools)
        return [d for d in tools.declarations() if d["name"] in allowed]

    def _remember(
        self,
        resume: str,
        messages: List[Dict[str, Any]],
        history: List[Dict[str, Any]],
    ) -> None:
        conversation = _settled(messages)
        if len(conversation) < len(history):
            # The run settled nothing new; keep what was already stored
            conversation = history
        conversation = _bounded(conversation)
        if not conversation:
            self._conversations.pop(resume, None)
            return
        self._conversations[resume] = conversation
        self._conversations.move_to_end(resume)
        while len(self._conversations) > MAX_RESUMABLE_CONVERSATIONS:
            self._conversations.popitem(last=False)


def _tool_uses(content: Any) -> List[Dict[str, Any]]:
    if not isinstance(content, list):
        return []
    return [block for block in content if isinstance(block, dict) and block.get("type") == "tool_use"]


def _is_tool_results(content: Any) -> bool:
    return isinstance(content, list) and bool(content) and all(
        isinstance(block, dict) and block.get("type") == "tool_result" for block in content
    )


def _has_tool_results(content: Any) -> bool:
    return isinstance(content, list) and any(
        isinstance(block, dict) and block.get("type") == "tool_result" for block in content
    )


def _with_prompt(history: List[Dict[str, Any]], prompt: str) -> List[Dict[str, Any]]:
    """Append a user prompt, merging it into a trailing tool-result turn."""
    messages = list(history)
    if messages and messages[-1]["role"] == "user":
        last = messages.pop()
        messages.append({
            "role": "user",
            "content": list(last["content"]) + [{"type": "text", "text": prompt}],
        })
    else:
        messages.append({"role": "user", "content": prompt})
    return messages


def _settled(messages: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Longest prefix ending on a finished assistant turn or on answered tool calls."""
    end = len(messages)
    while end:
        last = messages[end - 1]
        if last["role"] == "assistant" and not _tool_uses(last["content"]):
            break
        if last["role"] == "user" and _is_tool_results(last["content"]):
            break
        end -= 1
    return messages[:end]


def _bounded(messages: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Drop the oldest turns beyond the cap; the kept part starts on a plain prompt."""
    if len(messages) <= MAX_RESUMABLE_MESSAGES:
        return messages
    for start in range(len(messages) - MAX_RESUMABLE_MESSAGES, len(messages)):
        message = messages[start]
        if message["role"] == "user" and not _has_tool_results(message["content"]):
            return messages[start:]
    return []
