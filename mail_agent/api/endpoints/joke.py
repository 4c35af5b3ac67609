"""Test-message endpoint: sends the fixed programmer joke."""

from fastapi import APIRouter, Depends

from mail_agent.dependencies import get_email_service
from mail_agent.exceptions import InvalidTaskRequestError
from mail_agent.schemas.email import JokeRequest, SmtpSendResponse
from mail_agent.services.email_service import JOKE_SUBJECT, JOKE_TEXT, EmailService

router = APIRouter()


@router.post("/joke", response_model=SmtpSendResponse)
async def send_joke(
    payload: JokeRequest,
    email_service: EmailService = Depends(get_email_service),
) -> SmtpSendResponse:
    to = (payload.to or "").strip()
    if not to:
        raise InvalidTaskRequestError("missing to", fields={"to": ["required"]})
    message_id = await email_service.send(to=to, subject=JOKE_SUBJECT, text=JOKE_TEXT)
    return SmtpSendResponse(ok=True, messageId=message_id)
