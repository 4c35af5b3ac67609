"""Agent-assisted compose-and-send service."""

from __future__ import annotations

from typing import Optional

from mail_agent.config import Settings
from mail_agent.core.logging import get_logger
from mail_agent.runtime.agent import AgentRuntime
from mail_agent.runtime.completion import CompletionDetector
from mail_agent.runtime.events import AssistantText, normalize
from mail_agent.runtime.prompts import build_task_prompt
from mail_agent.runtime.relay import DisconnectProbe, SessionRelay
from mail_agent.runtime.session import Session, TimeoutStrategy, TransportMode
from mail_agent.schemas.agent import AgentSendRequest
from mail_agent.services.email_service import EmailService
from mail_agent.services.search_service import SearchService
from mail_agent.tools import ResultSlot, ToolSet, build_toolset

logger = get_logger(__name__)

PERSISTENT_AGENT_PROMPT = (
    "Initialize persistent session. You can use the smtp_send tool to send emails "
    "and the web_search tool to look things up."
)


class AgentMailService:
    """Creates one relay per accepted request.

    Collaborators are shared; the tool set and its result slot are built per
    session so concurrent sessions never see each other's delivery ids.
    """

    def __init__(
        self,
        runtime: AgentRuntime,
        email_service: EmailService,
        search_service: SearchService,
        timeout_seconds: float = 120.0,
        timeout_strategy: TimeoutStrategy = TimeoutStrategy.BETWEEN_EVENTS,
        resume: Optional[str] = None,
    ) -> None:
        self.runtime = runtime
        self.email_service = email_service
        self.search_service = search_service
        self.timeout_seconds = timeout_seconds
        self.timeout_strategy = TimeoutStrategy(timeout_strategy)
        self.resume = resume

    def tools_for(self, result_slot: Optional[ResultSlot] = None) -> ToolSet:
        return build_toolset(self.email_service, self.search_service, result_slot)

    def open_session(
        self,
        request: AgentSendRequest,
        transport_mode: TransportMode,
        disconnect_probe: Optional[DisconnectProbe] = None,
    ) -> SessionRelay:
        session = Session(transport_mode=transport_mode, timeout_seconds=self.timeout_seconds)
        logger.info(
            "Agent session accepted",
            session_id=session.session_id,
            to=str(request.to),
            language=request.language,
            site=request.site,
            mode=transport_mode.value,
        )
        return SessionRelay(
            session=session,
            runtime=self.runtime,
            tools=self.tools_for(session.result_slot),
            prompt=build_task_prompt(request),
            resume=self.resume,
            detector=CompletionDetector(),
            disconnect_probe=disconnect_probe,
            timeout_strategy=self.timeout_strategy,
        )


def create_agent_mail_service(
    settings: Settings,
    runtime: AgentRuntime,
    email_service: EmailService,
    search_service: SearchService,
) -> AgentMailService:
    return AgentMailService(
        runtime=runtime,
        email_service=email_service,
        search_service=search_service,
        timeout_seconds=settings.AGENT_TIMEOUT_SECONDS,
        timeout_strategy=TimeoutStrategy(settings.AGENT_TIMEOUT_STRATEGY),
        resume=settings.AGENT_SESSION_ID,
    )


async def run_persistent_agent(runtime: AgentRuntime, tools: ToolSet) -> None:
    """Keep one long-lived agent conversation open, logging what it says.

    Failures are logged; they never propagate to the caller.
    """
    logger.info("Starting persistent agent", tools=tools.names)
    try:
        async for raw in runtime.run(PERSISTENT_AGENT_PROMPT, tools):
            event = normalize(raw)
            if isinstance(event, AssistantText):
                logger.info("Agent message", content=event.text)
    except Exception as e:
        logger.error("Persistent agent failed", error=str(e), exc_info=True)
    else:
        logger.info("Persistent agent finished")
