"""Session relay: drives one agent run and turns its events into output frames."""

from __future__ import annotations

import asyncio
from contextvars import Token
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

from mail_agent.core.logging import get_logger, session_id_ctx
from mail_agent.exceptions import (
    AgentTimeoutError,
    ClientDisconnectedError,
    UpstreamFailureError,
)
from mail_agent.schemas.frames import ErrorKind, OutputFrame
from mail_agent.tools import ToolSet

from .agent import AgentRuntime
from .completion import CompletionDetector, CompletionSignal, CompletionSource
from .events import AssistantText, normalize
from .session import Outcome, RelayState, Session, TimeoutStrategy
from .tokens import stream_text

logger = get_logger(__name__)

NO_RESPONSE_MESSAGE = "no response"

DisconnectProbe = Callable[[], Awaitable[bool]]


def visible_text(text: str, signal: Optional[CompletionSignal]) -> str:
    """Assistant text with the completion JSON object cut out."""
    if signal is None or signal.source != CompletionSource.FINAL_TEXT or signal.span is None:
        return text
    start, end = signal.span
    return text[:start] + text[end:]


def _restore_session_id(token: Token) -> None:
    try:
        session_id_ctx.reset(token)
    except ValueError:
        # Generator finalized from another context; nothing to restore there
        pass


class SessionRelay:
    """Owns one session from dispatch to close.

    ``frames()`` yields ``connected``, then tokens, then exactly one terminal
    frame, unless the client disconnects, in which case it stops without
    yielding anything further. The upstream event iterator is closed on every
    exit path.
    """

    def __init__(
        self,
        session: Session,
        runtime: AgentRuntime,
        tools: ToolSet,
        prompt: str,
        resume: Optional[str] = None,
        detector: Optional[CompletionDetector] = None,
        disconnect_probe: Optional[DisconnectProbe] = None,
        timeout_strategy: TimeoutStrategy = TimeoutStrategy.BETWEEN_EVENTS,
    ) -> None:
        self.session = session
        self.runtime = runtime
        self.tools = tools
        self.prompt = prompt
        self.resume = resume
        self.detector = detector or CompletionDetector()
        self.disconnect_probe = disconnect_probe
        self.timeout_strategy = TimeoutStrategy(timeout_strategy)

    async def frames(self) -> AsyncIterator[OutputFrame]:
        session = self.session
        context_token = session_id_ctx.set(session.session_id)
        events: Optional[AsyncIterator[Any]] = None
        try:
            if await self._disconnected():
                return
            session.state = RelayState.STREAMING
            logger.info(
                "Agent session started",
                mode=session.transport_mode.value,
                timeout_strategy=self.timeout_strategy.value,
                timeout_seconds=session.timeout_seconds,
            )
            yield OutputFrame.connected()

            terminal: Optional[OutputFrame] = None
            try:
                events = self.runtime.run(self.prompt, self.tools, resume=self.resume).__aiter__()
            except Exception as e:
                terminal = self._upstream_failed(e)

            while terminal is None:
                # Stop reading upstream as soon as the client is gone
                if await self._disconnected():
                    return
                try:
                    raw = await self._next_event(events)
                except StopAsyncIteration:
                    terminal = self._end_of_stream()
                    break
                except asyncio.TimeoutError:
                    terminal = self._timed_out()
                    break
                except Exception as e:
                    terminal = self._upstream_failed(e)
                    break

                event = normalize(raw)
                signal = self.detector.observe(event)
                if isinstance(event, AssistantText):
                    for chunk in stream_text(visible_text(event.text, signal)):
                        if await self._disconnected():
                            return
                        yield OutputFrame.token(chunk)

                if session.deadline_reached():
                    terminal = self._timed_out()
                elif signal is not None:
                    terminal = self._completed(signal)

            if await self._disconnected():
                return
            yield terminal
        finally:
            await self._close(events)
            _restore_session_id(context_token)

    async def _next_event(self, events: AsyncIterator[Any]) -> Any:
        if self.timeout_strategy == TimeoutStrategy.PREEMPTIVE:
            remaining = self.session.remaining()
            if remaining <= 0:
                raise asyncio.TimeoutError()
            return await asyncio.wait_for(events.__anext__(), timeout=remaining)
        return await events.__anext__()

    async def _disconnected(self) -> bool:
        """Poll the transport; on disconnect record the outcome and log it."""
        if self.session.state == RelayState.CLIENT_DISCONNECTED:
            return True
        if self.disconnect_probe is None:
            return False
        try:
            gone = await self.disconnect_probe()
        except Exception as e:
            logger.warning("Disconnect probe failed", error=str(e))
            return False
        if not gone:
            return False
        error = ClientDisconnectedError(self.session.session_id)
        self.session.state = RelayState.CLIENT_DISCONNECTED
        self.session.outcome = self.session.outcome or Outcome.DISCONNECTED
        logger.warning(
            "Client disconnected, stopping session",
            code=error.code,
            elapsed=round(self.session.elapsed(), 3),
        )
        return True

    def _completed(self, signal: CompletionSignal) -> OutputFrame:
        self.session.complete(signal.result_id)
        logger.info(
            "Agent session completed",
            result_id=signal.result_id,
            source=signal.source.value,
            elapsed=round(self.session.elapsed(), 3),
        )
        return OutputFrame.done(signal.result_id)

    def _timed_out(self) -> OutputFrame:
        error = AgentTimeoutError(self.session.timeout_seconds)
        self.session.finish(RelayState.TIMED_OUT, Outcome.TIMED_OUT)
        logger.warning(
            "Agent session timed out",
            code=error.code,
            elapsed=round(self.session.elapsed(), 3),
            fallback_result_id=self.session.result_slot.message_id,
        )
        return OutputFrame.error(error.message, ErrorKind.TIMEOUT)

    def _end_of_stream(self) -> OutputFrame:
        if self.session.deadline_reached():
            return self._timed_out()
        error = UpstreamFailureError(NO_RESPONSE_MESSAGE)
        self.session.finish(RelayState.UPSTREAM_ERROR, Outcome.NO_RESPONSE)
        logger.warning("Agent ended without a completion signal", code=error.code)
        return OutputFrame.error(error.message, ErrorKind.UPSTREAM_FAILURE)

    def _upstream_failed(self, exc: Exception) -> OutputFrame:
        error = UpstreamFailureError(
            f"Agent runtime failed: {exc}",
            details={"exception": type(exc).__name__},
        )
        self.session.finish(RelayState.UPSTREAM_ERROR, Outcome.ERRORED)
        logger.error("Agent runtime failed", code=error.code, error=str(exc), exc_info=True)
        return OutputFrame.error(error.message, ErrorKind.UPSTREAM_FAILURE)

    async def _close(self, events: Optional[AsyncIterator[Any]]) -> None:
        aclose = getattr(events, "aclose", None)
        if aclose is not None:
            try:
                await aclose()
            except Exception as e:
                logger.warning("Failed to close agent event stream", error=str(e))
        if self.session.outcome is None:
            # Consumer stopped iterating before a terminal frame
            self.session.outcome = Outcome.DISCONNECTED
        self.session.state = RelayState.CLOSED
        logger.info(
            "Agent session closed",
            outcome=self.session.outcome.value,
            result_id=self.session.result_id,
            elapsed=round(self.session.elapsed(), 3),
        )
