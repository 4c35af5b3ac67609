"""Collaborator services."""

from mail_agent.services.email_service import EmailConfig, EmailService, create_email_service
from mail_agent.services.search_service import SearchService, create_search_service

__all__ = [
    "EmailConfig",
    "EmailService",
    "SearchService",
    "create_email_service",
    "create_search_service",
]
