"""Pytest configuration and fixtures."""
from __future__ import annotations

import asyncio
from types import SimpleNamespace
from typing import Any, Dict, Iterable, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from mail_agent.runtime.session import Session, TransportMode
from mail_agent.services.email_service import EmailService
from mail_agent.services.search_service import SearchService
from mail_agent.tools import ToolSet, build_toolset


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeRuntime:
    """Agent runtime yielding a scripted list of raw events."""

    def __init__(
        self,
        events: Iterable[Any] = (),
        error: Optional[BaseException] = None,
        delay: float = 0.0,
        clock: Optional[FakeClock] = None,
        advance: float = 0.0,
    ) -> None:
        self.events = list(events)
        self.error = error
        self.delay = delay
        self.clock = clock
        self.advance = advance
        self.calls: List[Dict[str, Any]] = []
        self.consumed = 0
        self.closed = False

    async def run(self, prompt: str, tools: ToolSet, resume: Optional[str] = None):
        self.calls.append({"prompt": prompt, "tools": tools, "resume": resume})
        try:
            for event in self.events:
                if self.delay:
                    await asyncio.sleep(self.delay)
                if self.clock is not None:
                    self.clock.advance(self.advance)
                self.consumed += 1
                yield event
            if self.error is not None:
                raise self.error
        finally:
            self.closed = True


class ToolCallingRuntime(FakeRuntime):
    """Runtime that calls one tool through the tool set and reports the result."""

    def __init__(self, tool_name: str, arguments: Dict[str, Any], **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.tool_name = tool_name
        self.arguments = arguments

    async def run(self, prompt: str, tools: ToolSet, resume: Optional[str] = None):
        self.calls.append({"prompt": prompt, "tools": tools, "resume": resume})
        try:
            result = await tools.invoke(self.tool_name, self.arguments)
            self.consumed += 1
            yield {"type": "tool_result", "tool_name": self.tool_name, "result": result}
            for event in self.events:
                self.consumed += 1
                yield event
        finally:
            self.closed = True


def assistant_event(text: str) -> Dict[str, Any]:
    """Raw assistant message in the Anthropic content-block shape."""
    return {
        "type": "assistant",
        "message": {"role": "assistant", "content": [{"type": "text", "text": text}]},
    }


def tool_result_event(tool_name: str, result: Dict[str, Any]) -> Dict[str, Any]:
    return {"type": "tool_result", "tool_name": tool_name, "result": result}


@pytest.fixture(autouse=True)
def reset_sse_app_status():
    """sse-starlette keeps a process-wide exit event bound to the first event loop."""
    from sse_starlette.sse import AppStatus

    if hasattr(AppStatus, "should_exit_event"):
        AppStatus.should_exit_event = None
    yield
    if hasattr(AppStatus, "should_exit_event"):
        AppStatus.should_exit_event = None


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def mock_email_service():
    """Create a mock mail service."""
    service = MagicMock(spec=EmailService)
    service.send = AsyncMock(return_value="<m-1@example.com>")
    return service


@pytest.fixture
def mock_search_service():
    """Create a mock search service."""
    service = MagicMock(spec=SearchService)
    service.search = AsyncMock(return_value=[])
    return service


@pytest.fixture
def toolset(mock_email_service, mock_search_service):
    return build_toolset(mock_email_service, mock_search_service)


@pytest.fixture
def make_session(fake_clock):
    """Build sessions on the fake clock."""

    def factory(
        timeout_seconds: float = 30.0,
        transport_mode: TransportMode = TransportMode.STREAMING,
    ) -> Session:
        return Session(
            transport_mode=transport_mode,
            timeout_seconds=timeout_seconds,
            clock=fake_clock,
        )

    return factory


@pytest.fixture
def make_runtime():
    return FakeRuntime


@pytest.fixture
def make_tool_runtime():
    return ToolCallingRuntime


@pytest.fixture
def events():
    """Raw event builders."""
    return SimpleNamespace(assistant=assistant_event, tool_result=tool_result_event)
