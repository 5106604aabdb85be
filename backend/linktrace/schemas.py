from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List, Any
from datetime import datetime
from .utils import is_valid_url, normalize_utc
from .security import validate_url_security


class ShortenRequest(BaseModel):
    """Request schema for creating a short link."""

    url: str = Field(..., description="The URL to shorten")

    @field_validator('url')
    @classmethod
    def validate_url(cls, v):
        v = v.strip()

        if len(v) > 2048:
            raise ValueError('URL too long. Maximum 2048 characters.')

        if not is_valid_url(v):
            raise ValueError('Invalid URL format. Must start with http:// or https://')

        # Security validation - block private IPs, localhost, dangerous URLs
        is_safe, error = validate_url_security(v)
        if not is_safe:
            raise ValueError(error or 'URL failed security validation')

        return v


class ShortenResponse(BaseModel):
    """Response schema for created short link."""
    model_config = ConfigDict(from_attributes=True)

    short_code: str
    short_url: str
    original_url: str
    created_at: datetime

    @field_validator('created_at')
    @classmethod
    def created_at_utc(cls, v):
        return normalize_utc(v)


class LinkSummary(BaseModel):
    """Dashboard row: a link and its click count."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    short_code: str
    short_url: str
    original_url: str
    created_at: datetime
    click_count: int

    @field_validator('created_at')
    @classmethod
    def created_at_utc(cls, v):
        return normalize_utc(v)


class ClickResponse(BaseModel):
    """Dashboard view of one click."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    link_id: int
    ip: Optional[str] = None
    user_agent: Optional[str] = None
    referrer: Optional[str] = None
    country: Optional[str] = None
    city: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    clicked_at: datetime
    webrtc_ip: Optional[str] = None
    fingerprint: dict[str, Any] = Field(default_factory=dict)

    @field_validator('clicked_at')
    @classmethod
    def clicked_at_utc(cls, v):
        return normalize_utc(v)


class LinkClicksResponse(BaseModel):
    """All clicks recorded for a link."""

    short_code: str
    original_url: str
    click_count: int
    clicks: List[ClickResponse]


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str
    detail: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    database: bool
    redis: bool
    version: str
