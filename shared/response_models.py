"""
Common API response models.
"""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field


def _timestamp() -> str:
    return datetime.now(UTC).isoformat()


class APIResponse(BaseModel):
    """Standard API response wrapper."""

    success: bool = Field(default=True, description="Whether the operation was successful")
    message: str = Field(default="Operation completed successfully", description="Response message")
    data: dict[str, Any] | None = Field(None, description="Response data")
    timestamp: str = Field(default_factory=_timestamp, description="Response timestamp")


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str = Field(..., description="Service status")
    message: str = Field(..., description="Health check message")
    version: str | None = Field(None, description="Service version")
    uptime: float | None = Field(None, description="Service uptime in seconds")
    jobs: dict[str, int] | None = Field(None, description="Job counts by status")
