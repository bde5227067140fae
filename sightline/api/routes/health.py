"""Health check endpoint.

Provides:
- Basic health check with Live configuration status (GET /api/health)
"""

from datetime import UTC, datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from sightline.config import Settings, get_settings

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    model: str
    has_api_key: bool = Field(serialization_alias="hasApiKey")
    timestamp: str


@router.get("/api/health", response_model=HealthResponse)
async def health_check(settings: Settings = Depends(get_settings)) -> HealthResponse:
    """Basic health check endpoint.

    Returns:
        Status, the configured Live model, and whether a credential is set.
        The key itself is never returned.
    """
    return HealthResponse(
        status="ok",
        model=settings.gemini_live_model,
        has_api_key=settings.has_api_key,
        timestamp=datetime.now(UTC).isoformat(),
    )
