"""Health check endpoints."""

from typing import Any, Dict

from fastapi import APIRouter

from upload_relay.core.config import settings
from upload_relay.models.schemas import HealthResponse
from upload_relay.utils.formatting import utc_timestamp

router = APIRouter(tags=["Health"])


@router.get("/")
async def root() -> Dict[str, Any]:
    """Root endpoint with service information."""
    return {
        "message": f"Welcome to {settings.PROJECT_NAME}",
        "version": settings.VERSION,
        "environment": settings.ENVIRONMENT,
        "status": "running",
        "health": "/health",
        "configuration": settings.environment_check(),
    }


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Liveness check. Always 200, no auth and no dependency checks."""
    return HealthResponse(status="ok", timestamp=utc_timestamp())
