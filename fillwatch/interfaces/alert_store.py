"""
Abstract base class for alert stores.

This module defines the AlertStore interface the lifecycle evaluator reads
and writes alerts through, together with the error types every store
implementation raises.

The store is treated as a generic document store. The engine requires
read-your-writes consistency: reads of existing alerts must reflect all
writes committed earlier by the same process.

Example:
    >>> class MyStore(AlertStore):
    ...     async def create_alert(self, alert: Alert) -> Alert:
    ...         ...
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from fillwatch.models.alerts import (
    IMMUTABLE_ALERT_FIELDS,
    Alert,
    AlertKind,
    AlertStatus,
    ResolutionReason,
)


class AlertStoreError(Exception):
    """Base exception for alert store errors."""

    pass


class DuplicateKeyError(AlertStoreError):
    """Raised when creating an alert whose id already exists."""

    def __init__(self, alert_id: str) -> None:
        self.alert_id = alert_id
        super().__init__(f"Alert {alert_id} already exists")


class AlertNotFoundError(AlertStoreError):
    """Raised when an alert id does not exist."""

    def __init__(self, alert_id: str) -> None:
        self.alert_id = alert_id
        super().__init__(f"Alert {alert_id} not found")


class AlreadyResolvedError(AlertStoreError):
    """Raised when mutating an alert that is already resolved."""

    def __init__(self, alert_id: str) -> None:
        self.alert_id = alert_id
        super().__init__(f"Alert {alert_id} is already resolved")


class ImmutableFieldError(AlertStoreError):
    """Raised when an update touches a field fixed at creation."""

    def __init__(self, alert_id: str, fields: List[str]) -> None:
        self.alert_id = alert_id
        self.fields = fields
        super().__init__(f"Cannot update immutable fields {sorted(fields)} of alert {alert_id}")


class StoreUnavailableError(AlertStoreError):
    """Raised when the backing store fails (I/O, connection, timeout)."""

    pass


class AlertStore(ABC):
    """
    Abstract base class for alert persistence.

    Implementations must:
    - Reject duplicate ids on create (DuplicateKeyError)
    - Treat resolved alerts as terminal (AlreadyResolvedError)
    - Never allow severity, kind, subject or creation time to change
    - Wrap backend failures in StoreUnavailableError

    Every method is a potential suspension point.
    """

    @abstractmethod
    async def list_active_alerts(
        self,
        subject_id: Optional[str] = None,
        kind: Optional[AlertKind] = None,
    ) -> List[Alert]:
        """
        List active alerts, optionally filtered by subject and kind.

        Args:
            subject_id: Only alerts for this bin or compartment.
            kind: Only alerts of this kind.

        Returns:
            List[Alert]: Active alerts, newest first.

        Raises:
            StoreUnavailableError: If the backend fails.
        """
        pass

    @abstractmethod
    async def list_alerts(
        self,
        subject_id: Optional[str] = None,
        kind: Optional[AlertKind] = None,
        status: Optional[AlertStatus] = None,
        limit: Optional[int] = None,
    ) -> List[Alert]:
        """
        List alerts including resolved history.

        Args:
            subject_id: Only alerts for this bin or compartment.
            kind: Only alerts of this kind.
            status: Only alerts with this status.
            limit: Maximum number of alerts to return.

        Returns:
            List[Alert]: Matching alerts, newest first.

        Raises:
            StoreUnavailableError: If the backend fails.
        """
        pass

    @abstractmethod
    async def get_alert(self, alert_id: str) -> Optional[Alert]:
        """
        Get an alert by id.

        Returns:
            Optional[Alert]: The alert, or None if it does not exist.

        Raises:
            StoreUnavailableError: If the backend fails.
        """
        pass

    @abstractmethod
    async def create_alert(self, alert: Alert) -> Alert:
        """
        Persist a new alert.

        Args:
            alert: The alert to create.

        Returns:
            Alert: The stored alert.

        Raises:
            DuplicateKeyError: If an alert with the same id exists.
            StoreUnavailableError: If the backend fails.
        """
        pass

    @abstractmethod
    async def update_alert(self, alert_id: str, fields: Dict[str, Any]) -> Alert:
        """
        Apply a partial update to an alert.

        Args:
            alert_id: The alert to update.
            fields: Field names and new values.

        Returns:
            Alert: The updated alert.

        Raises:
            AlertNotFoundError: If the alert does not exist.
            AlreadyResolvedError: If the alert is resolved.
            ImmutableFieldError: If fields touch an immutable field.
            StoreUnavailableError: If the backend fails.
        """
        pass

    async def acknowledge_alert(
        self,
        alert_id: str,
        actor: str,
        at: Optional[datetime] = None,
    ) -> Alert:
        """
        Acknowledge an alert.

        Re-acknowledging an acknowledged alert returns it unchanged so the
        original acknowledgment instant is kept.

        Args:
            alert_id: The alert to acknowledge.
            actor: Who acknowledged it.
            at: Acknowledgment time (defaults to now).

        Returns:
            Alert: The acknowledged alert.

        Raises:
            AlertNotFoundError: If the alert does not exist.
            AlreadyResolvedError: If the alert is resolved.
        """
        alert = await self.get_alert(alert_id)
        if alert is None:
            raise AlertNotFoundError(alert_id)
        if not alert.is_active:
            raise AlreadyResolvedError(alert_id)
        if alert.acknowledged:
            return alert

        return await self.update_alert(
            alert_id,
            {
                "acknowledged": True,
                "acknowledged_at": at or _utcnow(),
                "acknowledged_by": actor,
            },
        )

    async def resolve_alert(
        self,
        alert_id: str,
        reason: ResolutionReason,
        actor: Optional[str] = None,
        at: Optional[datetime] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> Alert:
        """
        Resolve an alert.

        Args:
            alert_id: The alert to resolve.
            reason: How it was resolved.
            actor: Operator who resolved it (manual resolution).
            at: Resolution time (defaults to now).
            extra: Additional mutable fields to set in the same update.

        Returns:
            Alert: The resolved alert.

        Raises:
            AlertNotFoundError: If the alert does not exist.
            AlreadyResolvedError: If the alert is already resolved.
        """
        fields: Dict[str, Any] = {
            "status": AlertStatus.RESOLVED,
            "resolved_at": at or _utcnow(),
            "resolution_reason": reason,
            "resolved_by": actor,
        }
        if extra:
            fields.update(extra)
        return await self.update_alert(alert_id, fields)


def apply_alert_update(alert: Alert, fields: Dict[str, Any]) -> Alert:
    """
    Validate a partial update against an alert and return the updated copy.

    Shared by every store implementation so the lifecycle rules are enforced
    identically regardless of backend.

    Args:
        alert: The currently stored alert.
        fields: Field names and new values.

    Returns:
        Alert: A new, fully validated alert with the fields applied.

    Raises:
        ImmutableFieldError: If fields touch an immutable field.
        AlreadyResolvedError: If the alert is resolved.
        AlertStoreError: If fields name unknown attributes or fail validation.
    """
    immutable = IMMUTABLE_ALERT_FIELDS.intersection(fields)
    if immutable:
        raise ImmutableFieldError(alert.alert_id, sorted(immutable))
    if not alert.is_active:
        raise AlreadyResolvedError(alert.alert_id)

    unknown = set(fields) - set(Alert.model_fields)
    if unknown:
        raise AlertStoreError(
            f"Unknown alert fields {sorted(unknown)} for alert {alert.alert_id}"
        )

    try:
        return Alert.model_validate({**alert.model_dump(), **fields})
    except ValidationError as e:
        raise AlertStoreError(f"Invalid update for alert {alert.alert_id}: {e}") from e


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)
