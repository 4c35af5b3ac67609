"""API routes."""

from fastapi import APIRouter

from mail_agent.api.endpoints import agent, health, joke, smtp

api_router = APIRouter(prefix="/api")

# Include route modules
api_router.include_router(health.router, tags=["Health"])
api_router.include_router(smtp.router, prefix="/smtp", tags=["SMTP"])
api_router.include_router(joke.router, tags=["SMTP"])
api_router.include_router(agent.router, prefix="/agent", tags=["Agent"])
