"""smtp_send tool: lets the agent deliver the composed email."""

from __future__ import annotations

from typing import Any, Dict, Optional

from mail_agent.core.logging import get_logger
from mail_agent.exceptions import EmailSendError
from mail_agent.schemas.email import SmtpSendRequest
from mail_agent.services.email_service import EmailService

from .base import AgentTool, ResultSlot

logger = get_logger(__name__)

SMTP_TOOL_NAME = "smtp_send"


def smtp_handler(email_service: EmailService, result_slot: Optional[ResultSlot] = None):
    """Build the smtp_send handler. Failures are returned, never raised."""

    async def handler(params: SmtpSendRequest) -> Dict[str, Any]:
        try:
            message_id = await email_service.send(
                to=str(params.to),
                subject=params.subject,
                text=params.text,
                html=params.html,
            )
        except EmailSendError as e:
            logger.warning("smtp_send tool failed", error=e.message)
            return {"ok": False, "error": e.message}
        if result_slot is not None:
            result_slot.record(message_id)
        return {"ok": True, "messageId": message_id}

    return handler


def create_smtp_tool(
    email_service: EmailService,
    result_slot: Optional[ResultSlot] = None,
) -> AgentTool:
    return AgentTool(
        name=SMTP_TOOL_NAME,
        description="Send an email via SMTP",
        input_model=SmtpSendRequest,
        handler=smtp_handler(email_service, result_slot),
    )
