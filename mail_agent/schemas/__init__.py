"""Pydantic schemas for the mail agent service."""

from mail_agent.schemas.agent import (
    AgentSendRequest,
    AgentSendResponse,
    ErrorResponse,
)
from mail_agent.schemas.email import (
    JokeRequest,
    SearchRequest,
    SearchResponse,
    SearchResult,
    SmtpSendRequest,
    SmtpSendResponse,
)
from mail_agent.schemas.frames import ErrorKind, FrameKind, OutputFrame

__all__ = [
    # Agent schemas
    "AgentSendRequest",
    "AgentSendResponse",
    "ErrorResponse",
    # Mail and search schemas
    "JokeRequest",
    "SearchRequest",
    "SearchResponse",
    "SearchResult",
    "SmtpSendRequest",
    "SmtpSendResponse",
    # Output frames
    "ErrorKind",
    "FrameKind",
    "OutputFrame",
]
