"""Logging configuration.

Usage:
    from mail_agent.core.logging import get_logger

    logger = get_logger(__name__)
    logger.info("Session started", session_id=session_id, mode="streaming")
"""

import logging
import sys
from contextvars import ContextVar
from typing import Optional

from pythonjsonlogger import jsonlogger

from mail_agent.config import settings

# Context variables for request tracking across async operations
request_id_ctx: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
session_id_ctx: ContextVar[Optional[str]] = ContextVar("session_id", default=None)

_logging_configured = False


class ContextFilter(logging.Filter):
    """Inject request_id and session_id from context variables."""

    def filter(self, record: logging.LogRecord) -> bool:
        request_id = request_id_ctx.get()
        if request_id:
            record.request_id = request_id
        session_id = session_id_ctx.get()
        if session_id:
            record.session_id = session_id
        return True


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter that includes extra fields automatically."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = self.formatTime(record, self.datefmt)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        # Remove redundant fields added by default
        log_record.pop("levelname", None)
        log_record.pop("name", None)


class StartupFormatter(logging.Formatter):
    """Custom formatter for clean startup messages."""

    def format(self, record):
        if getattr(record, "startup", False):
            return record.getMessage()
        return super().format(record)


def setup_logging(force: bool = False) -> None:
    """Configure the root logger once."""
    global _logging_configured

    if _logging_configured and not force:
        return

    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.addFilter(ContextFilter())
    if settings.LOG_FORMAT == "json":
        handler.setFormatter(CustomJsonFormatter(
            fmt="%(timestamp)s %(level)s %(logger)s %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
    else:
        handler.setFormatter(StartupFormatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))

    root_logger = logging.getLogger()
    if force:
        root_logger.handlers.clear()
    root_logger.setLevel(level)
    root_logger.addHandler(handler)

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    _logging_configured = True


class LoggerAdapter(logging.LoggerAdapter):
    """Logger adapter accepting structlog-style keyword fields.

    Both styles work:
        logger.info("message", extra={"key": "value"})
        logger.info("message", key="value")
    """

    _standard_kwargs = {"extra", "exc_info", "stack_info", "stacklevel"}

    def process(self, msg, kwargs):
        extra_fields = {
            key: kwargs.pop(key)
            for key in list(kwargs)
            if key not in self._standard_kwargs
        }
        if extra_fields:
            extra = kwargs.get("extra")
            if isinstance(extra, dict):
                extra.update(extra_fields)
            else:
                kwargs["extra"] = extra_fields
        return msg, kwargs


def get_logger(name: str) -> LoggerAdapter:
    """Get a logger instance."""
    return LoggerAdapter(logging.getLogger(name), {})


def startup_log(message: str, level: int = logging.INFO) -> None:
    """Log a startup message with clean formatting."""
    logger = logging.getLogger("startup")
    record = logger.makeRecord(logger.name, level, "", 0, message, (), None)
    record.startup = True
    logger.handle(record)
