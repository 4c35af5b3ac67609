"""Tests for request schemas and output frames."""
from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from mail_agent.schemas.agent import AgentSendRequest
from mail_agent.schemas.email import SmtpSendRequest
from mail_agent.schemas.frames import ErrorKind, FrameKind, OutputFrame


def make_request(**overrides) -> AgentSendRequest:
    data = {
        "to": "bob@example.com",
        "recipient": "Bob Smith",
        "intent": "Invite Bob to the launch",
    }
    data.update(overrides)
    return AgentSendRequest(**data)


class TestAgentSendRequest:
    """Validation of agent task requests."""

    def test_defaults(self):
        request = make_request()

        assert request.language == "zh-CN"
        assert request.site is None

    def test_trims_text_fields(self):
        request = make_request(recipient="  Bob Smith ", intent=" Invite Bob to the launch\n", site="  ")

        assert request.recipient == "Bob Smith"
        assert request.intent == "Invite Bob to the launch"
        assert request.site is None

    def test_is_immutable(self):
        request = make_request()
        with pytest.raises(ValidationError):
            request.intent = "Something else entirely"

    @pytest.mark.parametrize(
        "overrides",
        [
            {"to": "not-an-email"},
            {"recipient": "   "},
            {"recipient": "B"},
            {"recipient": "????"},
            {"intent": "Hi"},
            {"intent": "Write to {{name}} about it"},
            {"language": "fr"},
        ],
    )
    def test_rejects_invalid_values(self, overrides):
        with pytest.raises(ValidationError):
            make_request(**overrides)

    def test_accepts_english_and_site(self):
        request = make_request(language="en", site="linkedin.com")

        assert request.language == "en"
        assert request.site == "linkedin.com"


class TestSmtpSendRequest:
    def test_requires_text_or_html(self):
        with pytest.raises(ValidationError, match="Missing content"):
            SmtpSendRequest(to="bob@example.com", subject="Hi")

    def test_html_only(self):
        request = SmtpSendRequest(to="bob@example.com", subject="Hi", html="<p>Hi</p>")
        assert request.text is None


class TestOutputFrame:
    """Frame payloads as they appear on the wire."""

    def test_connected(self):
        frame = OutputFrame.connected()
        assert frame.payload() == {"status": "connected"}
        assert not frame.is_terminal

    def test_token(self):
        assert OutputFrame.token("Hel").payload() == {"content": "Hel"}

    def test_done_with_and_without_id(self):
        assert OutputFrame.done("<m-1@example.com>").payload() == {
            "finished": True,
            "success": True,
            "messageId": "<m-1@example.com>",
        }
        assert OutputFrame.done().payload() == {"finished": True, "success": True}
        assert OutputFrame.done().is_terminal

    def test_timeout_error(self):
        frame = OutputFrame.error("Agent did not finish within 30s", ErrorKind.TIMEOUT)
        assert frame.payload() == {"error": "Agent did not finish within 30s", "timeout": True}
        assert frame.is_terminal

    def test_upstream_error(self):
        frame = OutputFrame.error("no response", ErrorKind.UPSTREAM_FAILURE)
        assert frame.payload() == {"error": "no response"}

    def test_to_sse_keeps_unicode(self):
        event = OutputFrame.token("你好").to_sse()

        assert event["event"] == FrameKind.TOKEN.value
        assert "你好" in event["data"]
        assert json.loads(event["data"]) == {"content": "你好"}
