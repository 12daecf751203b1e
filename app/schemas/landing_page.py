from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class LandingPageMetadata(BaseModel):
    """Document metadata; ``lastUpdated`` is stamped on every write."""

    model_config = ConfigDict(extra="allow")

    version: str = Field("2.0", description="Document format version")
    lastUpdated: str | None = Field(None, description="ISO-8601 time of the last write")


class LandingPageContent(BaseModel):
    """Landing page document.

    Sections are free-form JSON trees edited from the admin UI; only the
    top-level shape is enforced here.
    """

    model_config = ConfigDict(extra="allow")

    metadata: LandingPageMetadata = Field(default_factory=LandingPageMetadata)
    content: dict[str, Any] = Field(
        ...,
        description="hero (banners, settings, text), services, seasonal (plants, tips), newsletter, company",
    )
    contact: dict[str, Any] = Field(default_factory=dict)
    theme: dict[str, Any] = Field(default_factory=dict)
    layout: dict[str, Any] = Field(default_factory=dict)
    experiments: dict[str, Any] = Field(default_factory=dict)


class InvalidateCacheResponse(BaseModel):
    success: bool
    message: str


class HealthResponse(BaseModel):
    status: str
    store: str | None = None
