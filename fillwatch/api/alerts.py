"""
Alerts API endpoints.

Provides:
    GET /api/alerts - Active or historical alerts with per-severity counts
    POST /api/alerts/{alert_id}/acknowledge - Acknowledge an alert
    POST /api/alerts/{alert_id}/resolve - Manually resolve an alert

Store errors are mapped by the app: unknown alert -> 404, already resolved
-> 409, store unavailable -> 503.
"""

from typing import List, Optional

import structlog
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from fillwatch.api.app import AppState, get_app_state
from fillwatch.models.alerts import Alert, AlertStatus, Severity

logger = structlog.get_logger(__name__)

router = APIRouter()

_STATUS_FILTERS = {
    "active": AlertStatus.ACTIVE,
    "resolved": AlertStatus.RESOLVED,
    "all": None,
}


class AlertCountsModel(BaseModel):
    """Model for alert counts by severity."""

    medium: int = 0
    high: int = 0
    critical: int = 0
    total: int = 0


class AlertsResponse(BaseModel):
    """Response model for alerts endpoint."""

    alerts: List[Alert]
    counts: AlertCountsModel


class ActorRequest(BaseModel):
    """Request body naming the operator performing an action."""

    actor: str = Field(..., min_length=1, description="Operator performing the action")


@router.get(
    "/alerts",
    response_model=AlertsResponse,
    summary="List alerts",
    description="Lists active or historical alerts, newest first.",
)
async def get_alerts(
    status: str = Query(
        "active",
        pattern="^(active|resolved|all)$",
        description="Alert status filter: 'active', 'resolved' or 'all'",
    ),
    subject_id: Optional[str] = Query(
        None,
        description="Bin or compartment filter",
    ),
    limit: Optional[int] = Query(
        None,
        ge=1,
        le=1000,
        description="Maximum number of alerts",
    ),
    state: AppState = Depends(get_app_state),
) -> AlertsResponse:
    alerts = await state.store.list_alerts(
        subject_id=subject_id,
        status=_STATUS_FILTERS[status],
        limit=limit,
    )

    counts = AlertCountsModel(
        medium=sum(1 for a in alerts if a.severity == Severity.MEDIUM),
        high=sum(1 for a in alerts if a.severity == Severity.HIGH),
        critical=sum(1 for a in alerts if a.severity == Severity.CRITICAL),
        total=len(alerts),
    )
    return AlertsResponse(alerts=alerts, counts=counts)


@router.post(
    "/alerts/{alert_id}/acknowledge",
    response_model=Alert,
    summary="Acknowledge an alert",
)
async def acknowledge_alert(
    alert_id: str,
    body: ActorRequest,
    state: AppState = Depends(get_app_state),
) -> Alert:
    return await state.evaluator.acknowledge(alert_id, body.actor)


@router.post(
    "/alerts/{alert_id}/resolve",
    response_model=Alert,
    summary="Resolve an alert",
)
async def resolve_alert(
    alert_id: str,
    body: ActorRequest,
    state: AppState = Depends(get_app_state),
) -> Alert:
    return await state.evaluator.resolve(alert_id, body.actor)
