"""Agent-assisted compose-and-send endpoint."""

from fastapi import APIRouter, Depends, Request

from mail_agent.core.logging import get_logger
from mail_agent.dependencies import get_agent_mail_service
from mail_agent.runtime.session import TransportMode
from mail_agent.runtime.transports import (
    SingleShotTransport,
    StreamingTransport,
    select_transport,
)
from mail_agent.schemas.agent import AgentSendRequest, AgentSendResponse
from mail_agent.services.agent_service import AgentMailService

logger = get_logger(__name__)

router = APIRouter()


@router.post(
    "/send",
    response_model=AgentSendResponse,
    responses={
        200: {"content": {"text/event-stream": {}}},
        504: {"description": "Agent timed out without a result"},
    },
)
async def agent_send(
    payload: AgentSendRequest,
    request: Request,
    service: AgentMailService = Depends(get_agent_mail_service),
):
    """Let the agent research, compose and send one email.

    Clients that accept ``text/event-stream`` get the live frame stream
    (``connected``, ``token``..., then ``done`` or ``error``). Everyone else
    gets one JSON body once the session ends.
    """
    mode = select_transport(request.headers.get("accept"))
    relay = service.open_session(payload, mode, disconnect_probe=request.is_disconnected)

    if mode == TransportMode.STREAMING:
        return StreamingTransport().render(relay)
    return await SingleShotTransport().render(relay)
