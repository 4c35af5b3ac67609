"""Output frames: the client-facing protocol of an agent session.

A session produces ``connected``, then any number of ``token`` frames, then
exactly one terminal frame (``done`` or ``error``). The streaming transport
sends each frame as one Server-Sent Event; the single-shot transport collapses
the sequence into one JSON body.
"""

import json
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class FrameKind(str, Enum):
    """Frame kinds, also used as the SSE event name."""

    CONNECTED = "connected"
    TOKEN = "token"
    DONE = "done"
    ERROR = "error"


class ErrorKind(str, Enum):
    """Why a session ended in an error frame."""

    TIMEOUT = "timeout"
    UPSTREAM_FAILURE = "upstream_failure"


class OutputFrame(BaseModel):
    """One unit of output sent to the client."""

    kind: FrameKind = Field(..., description="Frame kind")
    content: Optional[str] = Field(None, description="Token text")
    result_id: Optional[str] = Field(None, description="Delivery identifier on success")
    message: Optional[str] = Field(None, description="Error message")
    error_kind: Optional[ErrorKind] = Field(None, description="Error classification")

    @property
    def is_terminal(self) -> bool:
        return self.kind in (FrameKind.DONE, FrameKind.ERROR)

    def payload(self) -> Dict[str, Any]:
        """Wire payload of the frame."""
        if self.kind == FrameKind.CONNECTED:
            return {"status": "connected"}
        if self.kind == FrameKind.TOKEN:
            return {"content": self.content or ""}
        if self.kind == FrameKind.DONE:
            data: Dict[str, Any] = {"finished": True, "success": True}
            if self.result_id:
                data["messageId"] = self.result_id
            return data
        data = {"error": self.message or "Unknown error"}
        if self.error_kind == ErrorKind.TIMEOUT:
            data["timeout"] = True
        return data

    def to_sse(self) -> Dict[str, str]:
        """Format the frame as an sse-starlette event dict."""
        return {
            "event": self.kind.value,
            "data": json.dumps(self.payload(), ensure_ascii=False),
        }

    @classmethod
    def connected(cls) -> "OutputFrame":
        return cls(kind=FrameKind.CONNECTED)

    @classmethod
    def token(cls, content: str) -> "OutputFrame":
        return cls(kind=FrameKind.TOKEN, content=content)

    @classmethod
    def done(cls, result_id: Optional[str] = None) -> "OutputFrame":
        return cls(kind=FrameKind.DONE, result_id=result_id)

    @classmethod
    def error(cls, message: str, error_kind: ErrorKind) -> "OutputFrame":
        return cls(kind=FrameKind.ERROR, message=message, error_kind=error_kind)
