"""Pydantic schemas for API requests and responses."""

from pydantic import BaseModel, Field, model_validator
from typing import List, Optional
from datetime import datetime

from shortener.database.models import OwnerRef, ShortenedLink


class ShortenRequest(BaseModel):
    """Request to shorten a URL."""

    url: str = Field(..., description="Destination URL (absolute, or a path on this host)", min_length=1, max_length=2048)
    custom_key: Optional[str] = Field(None, description="Optional caller-chosen key", min_length=1, max_length=255)
    owner_kind: Optional[str] = Field(None, description="Owner entity type", max_length=64)
    owner_id: Optional[str] = Field(None, description="Owner entity identifier", max_length=255)
    expires_at: Optional[datetime] = Field(None, description="Expiration time; never expires if omitted")
    fresh: bool = Field(False, description="Always create a new link instead of reusing one for the same URL and owner")

    @model_validator(mode="after")
    def check_owner(self) -> "ShortenRequest":
        """Owner kind and id come together."""
        if (self.owner_kind is None) != (self.owner_id is None):
            raise ValueError("owner_kind and owner_id must be given together")
        return self

    @property
    def owner(self) -> Optional[OwnerRef]:
        return OwnerRef.from_parts(self.owner_kind, self.owner_id)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "url": "https://example.com/very/long/path/to/resource",
                },
                {
                    "url": "https://github.com/user/repo",
                    "custom_key": "myrepo",
                    "owner_kind": "user",
                    "owner_id": "42",
                    "expires_at": "2030-01-01T00:00:00Z",
                    "fresh": True,
                },
            ]
        }
    }


class LinkResponse(BaseModel):
    """A shortened link."""

    token: str = Field(..., description="The link key")
    short_url: str = Field(..., description="The complete short URL")
    destination_url: str = Field(..., description="Normalized destination URL")
    owner_kind: Optional[str] = None
    owner_id: Optional[str] = None
    expires_at: Optional[datetime] = None
    use_count: int = 0
    created_at: Optional[datetime] = None

    @classmethod
    def from_link(cls, link: ShortenedLink, short_url: str) -> "LinkResponse":
        return cls(
            token=link.token,
            short_url=short_url,
            destination_url=link.destination_url,
            owner_kind=link.owner.kind if link.owner else None,
            owner_id=link.owner.id if link.owner else None,
            expires_at=link.expires_at,
            use_count=link.use_count,
            created_at=link.created_at,
        )


class LinkListResponse(BaseModel):
    """List of links."""

    links: List[LinkResponse]


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(..., description="Overall status")
    database: str = Field(..., description="Database status")
    cache: str = Field(..., description="Cache status")
    timestamp: datetime = Field(..., description="Check timestamp")


class ErrorResponse(BaseModel):
    """Error response."""

    detail: str = Field(..., description="Error message")


class StatisticsResponse(BaseModel):
    """Statistics response."""

    total_links: int
    total_uses: int
    database: str
    cache_enabled: bool
    custom_keys_enabled: bool
