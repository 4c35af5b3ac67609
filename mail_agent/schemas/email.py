"""Mail and search request/response schemas."""

from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field, model_validator


class SmtpSendRequest(BaseModel):
    """Structured send request, shared by the REST endpoint and the smtp_send tool."""

    to: EmailStr = Field(..., description="Recipient email address")
    subject: str = Field(..., min_length=1, description="Message subject")
    text: Optional[str] = Field(default=None, description="Plain-text body")
    html: Optional[str] = Field(default=None, description="HTML body")

    @model_validator(mode="after")
    def require_content(self) -> "SmtpSendRequest":
        if not self.text and not self.html:
            raise ValueError("Missing content: provide text or html")
        return self


class SmtpSendResponse(BaseModel):
    ok: bool = True
    messageId: str


class JokeRequest(BaseModel):
    to: Optional[str] = Field(default=None, description="Recipient email address")


class SearchRequest(BaseModel):
    """Input of the web_search tool."""

    query: str = Field(..., min_length=1, description="Search query")
    limit: int = Field(default=5, ge=1, le=10, description="Maximum number of results")
    site: Optional[str] = Field(default=None, description="Restrict results to this site")


class SearchResult(BaseModel):
    title: str
    url: str
    snippet: Optional[str] = None


class SearchResponse(BaseModel):
    ok: bool = True
    results: List[SearchResult] = Field(default_factory=list)
