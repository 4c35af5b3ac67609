"""Agent session relay: event normalization, completion detection and transports."""

from mail_agent.runtime.agent import (
    AgentOptions,
    AgentRuntime,
    AnthropicAgentRuntime,
    create_agent_options,
)
from mail_agent.runtime.completion import CompletionDetector, CompletionSignal, CompletionSource
from mail_agent.runtime.events import AssistantText, NormalizedEvent, Other, ToolResult, normalize
from mail_agent.runtime.prompts import build_task_prompt
from mail_agent.runtime.relay import SessionRelay
from mail_agent.runtime.session import Outcome, RelayState, Session, TimeoutStrategy, TransportMode
from mail_agent.runtime.tokens import split_segments, stream_text
from mail_agent.runtime.transports import (
    SingleShotTransport,
    StreamingTransport,
    select_transport,
)

__all__ = [
    "AgentOptions",
    "AgentRuntime",
    "AnthropicAgentRuntime",
    "AssistantText",
    "CompletionDetector",
    "CompletionSignal",
    "CompletionSource",
    "NormalizedEvent",
    "Other",
    "Outcome",
    "RelayState",
    "Session",
    "SessionRelay",
    "SingleShotTransport",
    "StreamingTransport",
    "TimeoutStrategy",
    "ToolResult",
    "TransportMode",
    "build_task_prompt",
    "create_agent_options",
    "normalize",
    "select_transport",
    "split_segments",
    "stream_text",
]
