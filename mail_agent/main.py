"""FastAPI application entry point."""

import asyncio
import time
import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict, List, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from mail_agent import __version__
from mail_agent.api import api_router
from mail_agent.config import settings
from mail_agent.core.logging import get_logger, request_id_ctx, setup_logging, startup_log
from mail_agent.exceptions import ClientDisconnectedError, MailAgentServiceException
from mail_agent.runtime.agent import AnthropicAgentRuntime, create_agent_options
from mail_agent.services.agent_service import create_agent_mail_service, run_persistent_agent
from mail_agent.services.email_service import create_email_service
from mail_agent.services.search_service import create_search_service
from mail_agent.tools import build_toolset

setup_logging()

logger = get_logger("mail_agent.main")
request_logger = get_logger("mail_agent.requests")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    startup_log("=" * 60)
    startup_log(f"🚀 {settings.SERVICE_NAME} v{__version__}")
    startup_log(f"   Environment: {settings.ENVIRONMENT}")
    startup_log(f"   SMTP: {settings.SMTP_HOST}:{settings.SMTP_PORT} (secure={settings.SMTP_SECURE})")
    startup_log(f"   Model: {settings.agent_model}")
    startup_log(
        f"   Agent timeout: {settings.AGENT_TIMEOUT_SECONDS:g}s ({settings.AGENT_TIMEOUT_STRATEGY})"
    )
    startup_log("=" * 60)

    email_service = create_email_service(settings)
    search_service = create_search_service(settings)
    tools = build_toolset(email_service, search_service)
    runtime = AnthropicAgentRuntime(create_agent_options(settings, tools))

    app.state.email_service = email_service
    app.state.search_service = search_service
    app.state.agent_runtime = runtime
    app.state.agent_mail_service = create_agent_mail_service(
        settings, runtime, email_service, search_service
    )

    persistent_task = None
    if settings.ENABLE_PERSISTENT_AGENT:
        persistent_task = asyncio.create_task(run_persistent_agent(runtime, tools))

    try:
        yield
    finally:
        # Shutdown
        if persistent_task is not None and not persistent_task.done():
            persistent_task.cancel()
            try:
                await asyncio.wait_for(persistent_task, timeout=5)
            except (asyncio.CancelledError, asyncio.TimeoutError):
                pass
        startup_log(f"👋 {settings.SERVICE_NAME} stopped")


# Create FastAPI application
app = FastAPI(
    title=settings.SERVICE_NAME,
    description="Agent-assisted email composing and sending",
    version=__version__,
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log incoming requests and their outcomes."""
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id
    request_id_ctx.set(request_id)

    method = request.method
    path = request.url.path
    start_time = time.perf_counter()

    request_logger.info(
        "request.start",
        method=method,
        path=path,
        client=request.client.host if request.client else "unknown",
    )

    try:
        response = await call_next(request)
    except Exception:
        duration_ms = (time.perf_counter() - start_time) * 1000
        request_logger.exception(
            "request.error",
            method=method,
            path=path,
            duration_ms=round(duration_ms, 2),
        )
        raise

    duration_ms = (time.perf_counter() - start_time) * 1000
    response.headers["X-Request-ID"] = request_id

    request_logger.info(
        "request.end",
        method=method,
        path=path,
        status=response.status_code,
        duration_ms=round(duration_ms, 2),
    )

    return response


def _error_response(request: Request, status_code: int, error, code: Optional[str] = None) -> JSONResponse:
    content = {"ok": False, "error": error}
    if code:
        content["code"] = code
    headers = {}
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        headers["X-Request-ID"] = request_id
    return JSONResponse(status_code=status_code, content=content, headers=headers)


@app.exception_handler(MailAgentServiceException)
async def service_exception_handler(request: Request, exc: MailAgentServiceException) -> JSONResponse:
    """Render service exceptions as the public error envelope."""
    if isinstance(exc, ClientDisconnectedError):
        logger.info("Client left before the response was ready", code=exc.code, **exc.details)
    elif exc.status_code >= 500:
        logger.error("Request failed", code=exc.code, error=exc.message, details=exc.details)
    else:
        logger.warning("Request rejected", code=exc.code, error=exc.message)
    return _error_response(request, exc.status_code, exc.message, exc.code)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report validation failures per field."""
    errors: Dict[str, List[str]] = {}
    for item in exc.errors():
        loc = [str(part) for part in item.get("loc", ()) if part != "body"]
        field = loc[0] if loc else "body"
        errors.setdefault(field, []).append(item.get("msg", "invalid"))
    logger.warning("Request validation failed", fields=sorted(errors))
    return _error_response(request, status.HTTP_400_BAD_REQUEST, errors, "VALIDATION_ERROR")


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle HTTP errors, including unknown routes."""
    error = "not found" if exc.status_code == status.HTTP_404_NOT_FOUND else exc.detail
    return _error_response(request, exc.status_code, error)


# Root endpoint
@app.get("/", include_in_schema=False)
async def root() -> dict:
    """Root endpoint with service information."""
    return {
        "service": settings.SERVICE_NAME,
        "version": __version__,
        "health_url": "/api/health",
        "docs_url": "/docs",
    }


# Include API routes
app.include_router(api_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "mail_agent.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.is_development,
        log_level=settings.LOG_LEVEL.lower(),
    )
