"""Direct SMTP send endpoint."""

from fastapi import APIRouter, Depends

from mail_agent.core.logging import get_logger
from mail_agent.dependencies import get_email_service
from mail_agent.schemas.email import SmtpSendRequest, SmtpSendResponse
from mail_agent.services.email_service import EmailService

logger = get_logger(__name__)

router = APIRouter()


@router.post("/send", response_model=SmtpSendResponse)
async def smtp_send(
    payload: SmtpSendRequest,
    email_service: EmailService = Depends(get_email_service),
) -> SmtpSendResponse:
    """Send one email through the configured SMTP server."""
    message_id = await email_service.send(
        to=str(payload.to),
        subject=payload.subject,
        text=payload.text,
        html=payload.html,
    )
    return SmtpSendResponse(ok=True, messageId=message_id)
