"""Detect that the delegated email task has finished.

The agent either calls the mail tool (and may say nothing parseable), or
answers in prose with an embedded JSON object. Either is sufficient; the first
one seen in stream order wins and later events are not inspected.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from mail_agent.core.logging import get_logger
from mail_agent.tools import SMTP_TOOL_NAME, canonical_tool_name

from .events import AssistantText, NormalizedEvent, ToolResult

logger = get_logger(__name__)

DELIVERY_ID_KEYS: Tuple[str, ...] = ("messageId", "message_id", "deliveryId", "delivery_id")
SENT_STATUS = "sent"


class CompletionSource(str, Enum):
    TOOL_RESULT = "tool_result"
    FINAL_TEXT = "final_text"


@dataclass(frozen=True)
class CompletionSignal:
    """The task is done; ``result_id`` is the delivery id when one was given."""

    source: CompletionSource
    result_id: Optional[str] = None
    # [start, end) of the JSON object inside the assistant text
    span: Optional[Tuple[int, int]] = None


def delivery_id(payload: Mapping[str, Any]) -> Optional[str]:
    for key in DELIVERY_ID_KEYS:
        value = payload.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def find_json_object(text: str) -> Optional[Tuple[Dict[str, Any], Tuple[int, int]]]:
    """Parse the text between the first ``{`` and the last ``}``."""
    start = text.find("{")
    end = text.rfind("}")
    if start < 0 or end <= start:
        return None
    try:
        value = json.loads(text[start:end + 1])
    except ValueError:
        return None
    if not isinstance(value, dict):
        return None
    return value, (start, end + 1)


class CompletionDetector:
    """Fires at most once per session."""

    def __init__(self, mail_tool_name: str = SMTP_TOOL_NAME) -> None:
        self.mail_tool_name = mail_tool_name
        self._signal: Optional[CompletionSignal] = None

    @property
    def fired(self) -> bool:
        return self._signal is not None

    @property
    def signal(self) -> Optional[CompletionSignal]:
        return self._signal

    def observe(self, event: NormalizedEvent) -> Optional[CompletionSignal]:
        """Return the completion signal if this event is the one that completes the task."""
        if self._signal is not None:
            return None
        if isinstance(event, ToolResult):
            signal = self._from_tool_result(event)
        elif isinstance(event, AssistantText):
            signal = self._from_text(event.text)
        else:
            signal = None
        if signal is not None:
            self._signal = signal
            logger.info(
                "Completion detected",
                source=signal.source.value,
                result_id=signal.result_id,
            )
        return signal

    def _from_tool_result(self, event: ToolResult) -> Optional[CompletionSignal]:
        if canonical_tool_name(event.tool_name) != self.mail_tool_name:
            return None
        if event.result.get("ok") is False:
            logger.warning("Mail tool reported a failure", error=str(event.result.get("error")))
            return None
        result_id = delivery_id(event.result)
        if result_id is None:
            return None
        return CompletionSignal(source=CompletionSource.TOOL_RESULT, result_id=result_id)

    def _from_text(self, text: str) -> Optional[CompletionSignal]:
        found = find_json_object(text.strip())
        if found is None:
            return None
        payload, _ = found
        result_id = delivery_id(payload)
        if result_id is None and payload.get("status") != SENT_STATUS:
            return None
        # Re-locate against the untrimmed text so the span indexes the original
        span = (text.find("{"), text.rfind("}") + 1)
        return CompletionSignal(source=CompletionSource.FINAL_TEXT, result_id=result_id, span=span)
