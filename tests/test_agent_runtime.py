"""Tests for the Anthropic agent runtime."""
from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from anthropic import APIConnectionError

from mail_agent.config import Settings
from mail_agent.exceptions import UpstreamFailureError
from mail_agent.runtime.agent import AgentOptions, AnthropicAgentRuntime, create_agent_options
from mail_agent.runtime.events import AssistantText, ToolResult, normalize
from mail_agent.runtime.relay import SessionRelay
from mail_agent.schemas.frames import FrameKind


def block(**fields):
    """Content block double exposing model_dump like the SDK models."""
    item = MagicMock()
    item.model_dump.return_value = fields
    return item


def response(*blocks, stop_reason="end_turn"):
    return MagicMock(content=list(blocks), stop_reason=stop_reason)


def tool_use(tool_id="tu_1", name="smtp_send", **arguments):
    return block(type="tool_use", id=tool_id, name=name, input=arguments)


@pytest.fixture
def mock_client():
    client = MagicMock()
    client.messages.create = AsyncMock()
    return client


@pytest.fixture
def runtime(mock_client):
    return AnthropicAgentRuntime(AgentOptions(model="claude-test", max_turns=4), client=mock_client)


async def run_all(runtime, prompt, tools, resume=None):
    return [event async for event in runtime.run(prompt, tools, resume=resume)]


class TestToolLoop:
    """The tool-use loop and the events it yields."""

    @pytest.mark.asyncio
    async def test_tool_call_then_final_text(self, runtime, mock_client, toolset, mock_email_service):
        mock_client.messages.create.side_effect = [
            response(
                block(type="text", text="Sending now"),
                tool_use(to="bob@example.com", subject="Hello", text="Hi Bob"),
                stop_reason="tool_use",
            ),
            response(block(type="text", text='{"status": "sent", "messageId": "<m-1@example.com>"}')),
        ]

        events = await run_all(runtime, "send it", toolset)

        assert [normalize(e) for e in events] == [
            AssistantText("Sending now"),
            ToolResult("smtp_send", {"ok": True, "messageId": "<m-1@example.com>"}),
            AssistantText('{"status": "sent", "messageId": "<m-1@example.com>"}'),
        ]
        mock_email_service.send.assert_awaited_once()

        messages = mock_client.messages.create.call_args.kwargs["messages"]
        assert messages[0] == {"role": "user", "content": "send it"}
        tool_reply = messages[2]["content"][0]
        assert tool_reply["type"] == "tool_result"
        assert tool_reply["tool_use_id"] == "tu_1"
        assert json.loads(tool_reply["content"])["ok"] is True
        assert tool_reply["is_error"] is False

    @pytest.mark.asyncio
    async def test_request_parameters(self, runtime, mock_client, toolset):
        mock_client.messages.create.return_value = response(block(type="text", text="hi"))

        await run_all(runtime, "hello", toolset)

        kwargs = mock_client.messages.create.call_args.kwargs
        assert kwargs["model"] == "claude-test"
        assert kwargs["max_tokens"] == 2048
        assert "smtp_send" in kwargs["system"]
        assert [t["name"] for t in kwargs["tools"]] == ["smtp_send", "web_search"]

    @pytest.mark.asyncio
    async def test_allowed_tools_filter_declarations(self, mock_client, toolset):
        runtime = AnthropicAgentRuntime(
            AgentOptions(model="m", allowed_tools=["smtp_send"]), client=mock_client
        )
        mock_client.messages.create.return_value = response(block(type="text", text="hi"))

        await run_all(runtime, "hello", toolset)

        assert [t["name"] for t in mock_client.messages.create.call_args.kwargs["tools"]] == ["smtp_send"]

    @pytest.mark.asyncio
    async def test_failed_tool_is_reported_as_error(self, runtime, mock_client, toolset):
        mock_client.messages.create.side_effect = [
            response(tool_use(to="bob@example.com"), stop_reason="tool_use"),
            response(block(type="text", text="I could not send it")),
        ]

        events = await run_all(runtime, "send it", toolset)

        assert events[1]["result"]["ok"] is False
        tool_reply = mock_client.messages.create.call_args.kwargs["messages"][2]["content"][0]
        assert tool_reply["is_error"] is True

    @pytest.mark.asyncio
    async def test_stops_at_max_turns(self, mock_client, toolset):
        runtime = AnthropicAgentRuntime(AgentOptions(model="m", max_turns=2), client=mock_client)
        mock_client.messages.create.side_effect = [
            response(tool_use(tool_id=f"tu_{i}", name="web_search", query="Bob"), stop_reason="tool_use")
            for i in range(5)
        ]

        events = await run_all(runtime, "loop", toolset)

        assert mock_client.messages.create.await_count == 2
        assert len(events) == 4

    @pytest.mark.asyncio
    async def test_api_error_becomes_upstream_failure(self, runtime, mock_client, toolset):
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        mock_client.messages.create.side_effect = APIConnectionError(request=request)

        with pytest.raises(UpstreamFailureError, match="Model request failed"):
            await run_all(runtime, "hello", toolset)


class TestResume:
    """Conversations continue across runs with the same resume token."""

    @pytest.mark.asyncio
    async def test_resume_continues_conversation(self, runtime, mock_client, toolset):
        mock_client.messages.create.return_value = response(block(type="text", text="ok"))

        await run_all(runtime, "first", toolset, resume="r-1")
        await run_all(runtime, "second", toolset, resume="r-1")

        messages = mock_client.messages.create.call_args.kwargs["messages"]
        assert [m["role"] for m in messages] == ["user", "assistant", "user", "assistant"]
        assert messages[0]["content"] == "first"
        assert messages[2]["content"] == "second"

    @pytest.mark.asyncio
    async def test_without_resume_each_run_is_fresh(self, runtime, mock_client, toolset):
        mock_client.messages.create.return_value = response(block(type="text", text="ok"))

        await run_all(runtime, "first", toolset)
        await run_all(runtime, "second", toolset)

        messages = mock_client.messages.create.call_args.kwargs["messages"]
        assert messages[0]["content"] == "second"

    @pytest.mark.asyncio
    async def test_default_resume_from_options(self, mock_client, toolset):
        runtime = AnthropicAgentRuntime(AgentOptions(model="m", resume="default"), client=mock_client)
        mock_client.messages.create.return_value = response(block(type="text", text="ok"))

        await run_all(runtime, "first", toolset)
        await run_all(runtime, "second", toolset)

        assert len(mock_client.messages.create.call_args.kwargs["messages"]) == 4


class TestResumeAfterEarlyStop:
    """Conversations survive runs that the consumer stops early."""

    @pytest.mark.asyncio
    async def test_relay_completed_on_tool_result_can_resume(
        self, runtime, mock_client, toolset, make_session
    ):
        mock_client.messages.create.side_effect = [
            response(tool_use(to="bob@example.com", subject="Hello", text="Hi Bob"), stop_reason="tool_use"),
            response(block(type="text", text="ok")),
        ]
        relay = SessionRelay(
            session=make_session(), runtime=runtime, tools=toolset, prompt="first", resume="r-1"
        )

        frames = [frame async for frame in relay.frames()]
        assert frames[-1].kind == FrameKind.DONE

        await run_all(runtime, "second", toolset, resume="r-1")

        messages = mock_client.messages.create.call_args.kwargs["messages"]
        assert messages[0]["content"] == "first"
        assert messages[1]["content"][0]["type"] == "tool_use"
        follow_up = messages[2]["content"]
        assert follow_up[0]["type"] == "tool_result"
        assert follow_up[0]["tool_use_id"] == "tu_1"
        assert follow_up[-1] == {"type": "text", "text": "second"}

    @pytest.mark.asyncio
    async def test_unanswered_tool_call_is_not_stored(self, runtime, mock_client, toolset, mock_email_service):
        mock_client.messages.create.side_effect = [
            response(tool_use(to="bob@example.com", subject="Hello", text="Hi Bob"), stop_reason="tool_use"),
            response(block(type="text", text="ok")),
        ]
        events = runtime.run("first", toolset, resume="r-2")
        await events.__anext__()
        await events.aclose()

        await run_all(runtime, "second", toolset, resume="r-2")

        mock_email_service.send.assert_not_awaited()
        messages = mock_client.messages.create.call_args.kwargs["messages"]
        assert messages[0] == {"role": "user", "content": "second"}

    @pytest.mark.asyncio
    async def test_failed_run_keeps_stored_conversation(self, runtime, mock_client, toolset):
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        mock_client.messages.create.side_effect = [
            response(block(type="text", text="ok")),
            APIConnectionError(request=request),
            response(block(type="text", text="ok")),
        ]

        await run_all(runtime, "first", toolset, resume="r-3")
        with pytest.raises(UpstreamFailureError):
            await run_all(runtime, "second", toolset, resume="r-3")
        await run_all(runtime, "third", toolset, resume="r-3")

        messages = mock_client.messages.create.call_args.kwargs["messages"]
        assert [m["content"] for m in messages if m["role"] == "user"] == ["first", "third"]

    @pytest.mark.asyncio
    async def test_stored_history_is_capped(self, runtime, mock_client, toolset, monkeypatch):
        monkeypatch.setattr("mail_agent.runtime.agent.MAX_RESUMABLE_MESSAGES", 4)
        mock_client.messages.create.return_value = response(block(type="text", text="ok"))

        for prompt in ("first", "second", "third", "fourth"):
            await run_all(runtime, prompt, toolset, resume="r-4")

        messages = mock_client.messages.create.call_args.kwargs["messages"]
        assert [m["content"] for m in messages if m["role"] == "user"] == ["second", "third", "fourth"]


class TestOptions:
    def test_create_agent_options(self, toolset):
        settings = Settings(
            _env_file=None,
            CLAUDE_MODEL="haiku",
            ANTHROPIC_API_KEY="sk-test",
            CLAUDE_API_BASE_URL="https://proxy.example.com",
            AGENT_SESSION_ID="resume-1",
            AGENT_MAX_TURNS=3,
        )
        options = create_agent_options(settings, toolset)

        assert options.model == "claude-haiku-4-5"
        assert options.api_key == "sk-test"
        assert options.base_url == "https://proxy.example.com"
        assert options.resume == "resume-1"
        assert options.max_turns == 3
        assert "mcp__local-tools__smtp_send" in options.allowed_tools

    def test_client_built_lazily_with_base_url(self):
        runtime = AnthropicAgentRuntime(
            AgentOptions(model="m", api_key="sk-test", base_url="https://proxy.example.com")
        )
        with patch("mail_agent.runtime.agent.AsyncAnthropic") as client_cls:
            first = runtime._get_client()
            second = runtime._get_client()

        client_cls.assert_called_once_with(api_key="sk-test", base_url="https://proxy.example.com")
        assert first is second
