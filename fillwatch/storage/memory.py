"""
In-memory alert store.

Dict-backed AlertStore used by the test suite and by the `memory` storage
backend. Alerts are immutable pydantic models, so returning the stored
instances never exposes mutable state to callers.
"""

import asyncio
from typing import Any, Dict, List, Optional

import structlog

from fillwatch.interfaces.alert_store import (
    AlertNotFoundError,
    AlertStore,
    DuplicateKeyError,
    apply_alert_update,
)
from fillwatch.models.alerts import Alert, AlertKind, AlertStatus

logger = structlog.get_logger(__name__)


class InMemoryAlertStore(AlertStore):
    """
    AlertStore keeping every alert in a process-local dict.

    Attributes:
        _alerts: Alerts by id.
        _lock: Serializes mutations.

    Example:
        >>> store = InMemoryAlertStore()
        >>> await store.create_alert(alert)
        >>> await store.list_active_alerts(subject_id="bin-A")
    """

    def __init__(self) -> None:
        self._alerts: Dict[str, Alert] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._alerts)

    async def list_active_alerts(
        self,
        subject_id: Optional[str] = None,
        kind: Optional[AlertKind] = None,
    ) -> List[Alert]:
        return await self.list_alerts(
            subject_id=subject_id,
            kind=kind,
            status=AlertStatus.ACTIVE,
        )

    async def list_alerts(
        self,
        subject_id: Optional[str] = None,
        kind: Optional[AlertKind] = None,
        status: Optional[AlertStatus] = None,
        limit: Optional[int] = None,
    ) -> List[Alert]:
        alerts = [
            a for a in self._alerts.values()
            if (subject_id is None or a.subject_id == subject_id)
            and (kind is None or a.kind == kind)
            and (status is None or a.status == status)
        ]
        alerts.sort(key=lambda a: a.created_at, reverse=True)
        if limit is not None:
            alerts = alerts[:limit]
        return alerts

    async def get_alert(self, alert_id: str) -> Optional[Alert]:
        return self._alerts.get(alert_id)

    async def create_alert(self, alert: Alert) -> Alert:
        async with self._lock:
            if alert.alert_id in self._alerts:
                raise DuplicateKeyError(alert.alert_id)
            self._alerts[alert.alert_id] = alert

        logger.debug(
            "alert_stored",
            alert_id=alert.alert_id,
            severity=alert.severity.value,
            is_active=alert.is_active,
        )
        return alert

    async def update_alert(self, alert_id: str, fields: Dict[str, Any]) -> Alert:
        async with self._lock:
            current = self._alerts.get(alert_id)
            if current is None:
                raise AlertNotFoundError(alert_id)
            updated = apply_alert_update(current, fields)
            self._alerts[alert_id] = updated

        logger.debug(
            "alert_updated",
            alert_id=alert_id,
            fields=sorted(fields),
            is_active=updated.is_active,
        )
        return updated
