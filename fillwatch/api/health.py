"""
Health API endpoint.

Provides:
    GET /api/health - Storage connectivity and uptime
"""

from datetime import datetime

import structlog
from fastapi import APIRouter, Depends
from pydantic import BaseModel

from fillwatch.api.app import AppState, get_app_state
from fillwatch.detection.lifecycle import utcnow

logger = structlog.get_logger(__name__)

router = APIRouter()


class HealthResponse(BaseModel):
    """Response model for health endpoint."""

    status: str
    storage: str
    redis: str
    uptime_seconds: int
    timestamp: datetime


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Get service health",
)
async def get_health(state: AppState = Depends(get_app_state)) -> HealthResponse:
    if state.redis_client is None:
        redis_status = "not_configured"
    elif await state.redis_client.ping():
        redis_status = "connected"
    else:
        redis_status = "disconnected"

    now = utcnow()
    return HealthResponse(
        status="degraded" if redis_status == "disconnected" else "healthy",
        storage=state.storage_backend.value,
        redis=redis_status,
        uptime_seconds=int((now - state.start_time).total_seconds()),
        timestamp=now,
    )
