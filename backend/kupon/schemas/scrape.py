"""Scrape trigger request/response schemas."""

from typing import Optional

from pydantic import BaseModel, Field


class TriggerRequest(BaseModel):
    """Manual cycle trigger; omit platform to scrape every enabled platform."""

    platform: Optional[str] = Field(None, max_length=50, description="Platform slug")


class TriggerResult(BaseModel):
    """Outcome of a trigger request."""

    accepted: bool
    platforms: list[str]
