"""Service exception hierarchy."""

from typing import Any, Dict, Optional


class MailAgentServiceException(Exception):
    """Base exception carrying a machine-readable code and public message."""

    status_code: int = 500

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}


class InvalidTaskRequestError(MailAgentServiceException):
    """Raised when a request is missing fields or carries malformed values."""

    status_code = 400

    def __init__(self, message: str, fields: Optional[Dict[str, Any]] = None):
        super().__init__(
            code="VALIDATION_ERROR",
            message=message,
            details={"fields": fields or {}},
        )


class EmailSendError(MailAgentServiceException):
    """Raised when the mail service cannot deliver a message."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(code="TOOL_FAILURE", message=message, details=details)


class AgentTimeoutError(MailAgentServiceException):
    """Raised when no completion signal arrives before the session deadline."""

    status_code = 504

    def __init__(self, timeout_seconds: float):
        super().__init__(
            code="AGENT_TIMEOUT",
            message=f"Agent did not finish within {timeout_seconds:g}s",
            details={"timeout_seconds": timeout_seconds},
        )


class UpstreamFailureError(MailAgentServiceException):
    """Raised when the agent runtime fails or ends without a result."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(code="UPSTREAM_FAILURE", message=message, details=details)


class ClientDisconnectedError(MailAgentServiceException):
    """Raised when the HTTP peer goes away mid-session. Logged, never rendered."""

    status_code = 499

    def __init__(self, session_id: str):
        super().__init__(
            code="TRANSPORT_FAILURE",
            message="Client disconnected",
            details={"session_id": session_id},
        )
