"""Application configuration using Pydantic Settings."""

from typing import List, Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Short model aliases accepted in CLAUDE_MODEL
MODEL_ALIASES = {
    "sonnet": "claude-sonnet-4-5",
    "opus": "claude-opus-4-1",
    "haiku": "claude-haiku-4-5",
}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Service Info
    SERVICE_NAME: str = Field(default="Mail Agent Service")
    SERVICE_VERSION: str = Field(default="0.1.0")

    # Server Configuration
    HOST: str = Field(default="0.0.0.0")
    PORT: int = Field(default=3000)
    CORS_ORIGINS: str = Field(
        default="http://localhost:5173,http://localhost:3000",
        description="Comma-separated list of allowed CORS origins",
    )

    # SMTP Configuration
    SMTP_HOST: str = Field(default="localhost", min_length=1)
    SMTP_PORT: int = Field(default=587, description="SMTP server port")
    SMTP_SECURE: bool = Field(
        default=False,
        description="Use implicit TLS (typically port 465)",
    )
    SMTP_USER: str = Field(default="")
    SMTP_PASS: str = Field(default="")
    SMTP_FROM: Optional[str] = Field(
        default=None,
        description="Sender address (defaults to SMTP_USER)",
    )
    SMTP_TIMEOUT: float = Field(default=30.0, gt=0)

    # Agent Configuration
    CLAUDE_MODEL: str = Field(default="sonnet", min_length=1)
    ANTHROPIC_API_KEY: Optional[str] = Field(default=None)
    ANTHROPIC_BASE_URL: Optional[str] = Field(
        default=None,
        description="Base URL override for the model API",
    )
    CLAUDE_API_BASE_URL: Optional[str] = Field(
        default=None,
        description="Legacy name for ANTHROPIC_BASE_URL",
    )
    AGENT_SESSION_ID: Optional[str] = Field(
        default=None,
        description="Default resume token for agent conversations",
    )
    AGENT_MAX_TURNS: int = Field(default=8, ge=1)
    AGENT_MAX_TOKENS: int = Field(default=2048, ge=1)
    AGENT_TIMEOUT_SECONDS: float = Field(
        default=120.0,
        gt=0,
        description="Deadline for a single agent session",
    )
    AGENT_TIMEOUT_STRATEGY: Literal["between_events", "preemptive"] = Field(
        default="between_events",
        description="Check the deadline only between events, or also race the upstream wait",
    )
    ENABLE_PERSISTENT_AGENT: bool = Field(
        default=False,
        description="Start a long-lived agent run on boot",
    )

    # Search Configuration
    SEARCH_PROVIDER: Optional[Literal["bing", "duckduckgo", "wikipedia"]] = Field(default=None)
    BING_SEARCH_API_KEY: Optional[str] = Field(default=None)
    SEARCH_TIMEOUT: float = Field(default=10.0, gt=0)

    # Logging
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: Literal["json", "text"] = Field(default="text")

    # Environment
    ENVIRONMENT: str = Field(default="development")

    @field_validator("SMTP_PORT")
    @classmethod
    def validate_smtp_port(cls, v: int) -> int:
        """Reject non-positive SMTP ports."""
        if v <= 0:
            raise ValueError("Invalid SMTP_PORT")
        return v

    @field_validator("ANTHROPIC_BASE_URL", "CLAUDE_API_BASE_URL")
    @classmethod
    def validate_base_url(cls, v: Optional[str]) -> Optional[str]:
        """Accept only http(s) URLs for the model API base."""
        if v in (None, ""):
            return None
        if not v.startswith(("http://", "https://")):
            raise ValueError("must be an http(s) URL")
        return v.rstrip("/")

    @property
    def cors_origins(self) -> List[str]:
        """Parse CORS origins from the comma-separated setting."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT.lower() in ("development", "dev", "local")

    @property
    def agent_base_url(self) -> Optional[str]:
        """Model API base URL, preferring ANTHROPIC_BASE_URL."""
        return self.ANTHROPIC_BASE_URL or self.CLAUDE_API_BASE_URL

    @property
    def agent_model(self) -> str:
        """Concrete model id for CLAUDE_MODEL."""
        return MODEL_ALIASES.get(self.CLAUDE_MODEL, self.CLAUDE_MODEL)

    @property
    def smtp_sender(self) -> str:
        return self.SMTP_FROM or self.SMTP_USER


# Global settings instance
settings = Settings()
