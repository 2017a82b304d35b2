"""
Monitoring API endpoints.

Provides:
    POST /api/monitoring/run - Run a monitoring pass now ("check now")
    GET /api/monitoring/status - Run guard state and last result
"""

from datetime import datetime
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel

from fillwatch.api.app import AppState, get_app_state
from fillwatch.models.monitoring import RunResult, RunStatus

logger = structlog.get_logger(__name__)

router = APIRouter()


class MonitoringStatusResponse(BaseModel):
    """Response model for the monitoring status endpoint."""

    in_progress: bool
    last_run_at: Optional[datetime] = None
    cooldown_seconds: float
    cooldown_remaining_seconds: float
    last_status: Optional[RunStatus] = None
    last_error: Optional[str] = None


@router.post(
    "/monitoring/run",
    response_model=RunResult,
    summary="Run a monitoring pass",
    description=(
        "Runs one monitoring pass through the shared run guard. Returns 202 "
        "when the pass was skipped because one is already running or the "
        "cooldown has not expired."
    ),
)
async def run_monitoring(
    response: Response,
    state: AppState = Depends(get_app_state),
) -> RunResult:
    result = await state.coordinator.run_once()

    if result.is_benign_skip:
        response.status_code = 202

    logger.info(
        "api_monitoring_run",
        status=result.status.value,
        created=len(result.created_alerts),
    )
    return result


@router.get(
    "/monitoring/status",
    response_model=MonitoringStatusResponse,
    summary="Get monitoring status",
)
async def get_monitoring_status(
    state: AppState = Depends(get_app_state),
) -> MonitoringStatusResponse:
    guard = state.coordinator.guard
    last = state.coordinator.last_result

    return MonitoringStatusResponse(
        in_progress=guard.in_progress,
        last_run_at=guard.last_run_at,
        cooldown_seconds=guard.cooldown_seconds,
        cooldown_remaining_seconds=guard.cooldown_remaining(),
        last_status=last.status if last else None,
        last_error=last.error if last else None,
    )
