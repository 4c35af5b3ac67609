"""Agent send request/response schemas."""

import re
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

MIN_RECIPIENT_LENGTH = 2
MIN_INTENT_LENGTH = 5

# Values made only of these characters are unfilled form placeholders
_PLACEHOLDER_ONLY = re.compile(r"^[\s?？.。…\-_*xX#]+$")
# Template markers left behind by a client that never substituted its fields
_TEMPLATE_MARKER = re.compile(r"\{\{|\}\}|<\s*(placeholder|name|intent|recipient)\s*>", re.IGNORECASE)


def _check_text(value: str, minimum: int) -> str:
    value = value.strip()
    if not value:
        raise ValueError("must not be empty")
    if len(value) < minimum:
        raise ValueError(f"must be at least {minimum} characters")
    if _PLACEHOLDER_ONLY.match(value) or _TEMPLATE_MARKER.search(value):
        raise ValueError("must not contain placeholder characters")
    return value


class AgentSendRequest(BaseModel):
    """Task request for the agent-assisted compose-and-send endpoint.

    Immutable once accepted.
    """

    model_config = ConfigDict(frozen=True)

    to: EmailStr = Field(..., description="Recipient email address")
    recipient: str = Field(..., description="Who the recipient is (name, role, company)")
    intent: str = Field(..., description="What the email should accomplish")
    language: Literal["zh-CN", "en"] = Field(default="zh-CN", description="Email language")
    site: Optional[str] = Field(default=None, description="Preferred site for research")

    @field_validator("recipient")
    @classmethod
    def validate_recipient(cls, v: str) -> str:
        return _check_text(v, MIN_RECIPIENT_LENGTH)

    @field_validator("intent")
    @classmethod
    def validate_intent(cls, v: str) -> str:
        return _check_text(v, MIN_INTENT_LENGTH)

    @field_validator("site")
    @classmethod
    def validate_site(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None


class AgentSendResponse(BaseModel):
    """Single-shot success body."""

    ok: bool = True
    messageId: Optional[str] = None


class ErrorResponse(BaseModel):
    """Public failure envelope."""

    ok: bool = False
    error: object
