"""Common Pydantic schemas used across the API."""

from datetime import datetime, timezone
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Pagination(BaseModel):
    """Offset pagination metadata included in list responses."""

    model_config = ConfigDict(populate_by_name=True)

    total: int = 0
    limit: int = 50
    offset: int = 0
    has_more: bool = Field(False, alias="hasMore")


class ApiResponse(BaseModel, Generic[T]):
    """Standard API response envelope."""

    success: bool = True
    message: Optional[str] = None
    data: T
    pagination: Optional[Pagination] = None
    timestamp: datetime = Field(default_factory=_now)


class ErrorResponse(BaseModel):
    """Standard API error response."""

    success: bool = False
    error: str
    message: Optional[str] = None
    timestamp: datetime = Field(default_factory=_now)


class HealthCheckResponse(BaseModel):
    """Health check response schema."""

    status: str
    database: str
    version: str
    details: dict[str, Any] = {}
