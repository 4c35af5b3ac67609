"""FastAPI dependency providers.

Collaborators are built once in the application lifespan and kept on
``app.state``; handlers receive them through these providers.
"""

from fastapi import Request

from mail_agent.services.agent_service import AgentMailService
from mail_agent.services.email_service import EmailService
from mail_agent.services.search_service import SearchService


def get_email_service(request: Request) -> EmailService:
    return request.app.state.email_service


def get_search_service(request: Request) -> SearchService:
    return request.app.state.search_service


def get_agent_mail_service(request: Request) -> AgentMailService:
    return request.app.state.agent_mail_service
