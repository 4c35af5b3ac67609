"""Render a session's output frames as an HTTP response."""

from __future__ import annotations

from typing import AsyncIterator, Dict, Optional

from sse_starlette.sse import EventSourceResponse

from mail_agent.core.logging import get_logger
from mail_agent.exceptions import (
    AgentTimeoutError,
    ClientDisconnectedError,
    UpstreamFailureError,
)
from mail_agent.schemas.agent import AgentSendResponse
from mail_agent.schemas.frames import ErrorKind, FrameKind, OutputFrame

from .relay import SessionRelay
from .session import TransportMode

logger = get_logger(__name__)

EVENT_STREAM = "text/event-stream"

STREAM_HEADERS: Dict[str, str] = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
}


def select_transport(accept: Optional[str]) -> TransportMode:
    """Pick the transport from the request's Accept header."""
    if accept and EVENT_STREAM in accept.lower():
        return TransportMode.STREAMING
    return TransportMode.SINGLE_SHOT


class StreamingTransport:
    """One Server-Sent Event per output frame."""

    def render(self, relay: SessionRelay) -> EventSourceResponse:
        return EventSourceResponse(
            self._events(relay.frames()),
            headers=STREAM_HEADERS,
            media_type=EVENT_STREAM,
        )

    async def _events(self, frames: AsyncIterator[OutputFrame]) -> AsyncIterator[Dict[str, str]]:
        async for frame in frames:
            yield frame.to_sse()


class SingleShotTransport:
    """Waits for the terminal frame and returns one JSON body."""

    async def render(self, relay: SessionRelay) -> AgentSendResponse:
        session = relay.session
        terminal: Optional[OutputFrame] = None
        async for frame in relay.frames():
            if frame.is_terminal:
                terminal = frame

        if terminal is None:
            raise ClientDisconnectedError(session.session_id)

        if terminal.kind == FrameKind.DONE:
            return AgentSendResponse(ok=True, messageId=terminal.result_id or session.result_slot.message_id)

        if terminal.error_kind == ErrorKind.TIMEOUT:
            # The mail tool may have delivered even though no completion was seen in time
            fallback = session.result_slot.message_id
            if fallback:
                logger.info("Returning mail tool result after timeout", result_id=fallback)
                return AgentSendResponse(ok=True, messageId=fallback)
            raise AgentTimeoutError(session.timeout_seconds)

        raise UpstreamFailureError(terminal.message or "Agent failed")
