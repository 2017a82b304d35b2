"""
Alert data models for the fill-level monitoring engine.

This module defines alert-related structures: the ordered severity scale,
alert subjects, and the persisted alert record with its lifecycle helpers.

Models:
    Severity: Severity bands (medium, high, critical), totally ordered
    AlertStatus: Lifecycle status (active, resolved)
    ResolutionReason: How an alert was resolved (auto, manual)
    AlertKind: Alert kinds (fill_level)
    SubjectType: Kind of monitored entity (bin, compartment)
    AlertSubject: Polymorphic reference to the monitored entity
    Alert: Active or historical alert record
"""

from datetime import datetime
from enum import Enum
from typing import Iterable, Optional

from pydantic import BaseModel, Field, model_validator


class Severity(str, Enum):
    """
    Alert severity bands.

    The enum carries a total order (medium < high < critical) so escalation
    checks are plain comparisons instead of lookups in a rank table.

    Attributes:
        MEDIUM: Early warning, fill is within the band below the threshold.
        HIGH: Fill is at or above the configured threshold.
        CRITICAL: Fill is at or above the absolute ceiling.
    """

    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        """Position of this severity in the total order."""
        return _SEVERITY_ORDER.index(self)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank >= other.rank

    @classmethod
    def max_of(cls, severities: Iterable["Severity"]) -> Optional["Severity"]:
        """
        Return the highest severity in the iterable.

        Args:
            severities: Severities to compare.

        Returns:
            Optional[Severity]: The maximum, or None for an empty iterable.

        Example:
            >>> Severity.max_of([Severity.MEDIUM, Severity.CRITICAL])
            <Severity.CRITICAL: 'critical'>
            >>> Severity.max_of([]) is None
            True
        """
        highest: Optional[Severity] = None
        for severity in severities:
            if highest is None or severity > highest:
                highest = severity
        return highest


_SEVERITY_ORDER = (Severity.MEDIUM, Severity.HIGH, Severity.CRITICAL)


class AlertStatus(str, Enum):
    """Alert lifecycle status. RESOLVED is terminal."""

    ACTIVE = "active"
    RESOLVED = "resolved"


class ResolutionReason(str, Enum):
    """
    How an alert was resolved.

    Attributes:
        AUTO: Resolved by the engine (condition cleared, escalated or superseded).
        MANUAL: Resolved by an operator.
    """

    AUTO = "auto"
    MANUAL = "manual"


class AlertKind(str, Enum):
    """Alert kinds raised by the engine."""

    FILL_LEVEL = "fill_level"


class SubjectType(str, Enum):
    """Kind of monitored entity an alert is attached to."""

    BIN = "bin"
    COMPARTMENT = "compartment"


class AlertSubject(BaseModel):
    """
    Reference to the monitored entity an alert is attached to.

    Standalone bins and compartments of multi-compartment units are handled
    by the same evaluation logic; only the subject type differs.

    Attributes:
        subject_type: Whether the subject is a bin or a compartment.
        subject_id: Identifier of the bin or compartment.

    Example:
        >>> subject = AlertSubject(subject_type=SubjectType.BIN, subject_id="bin-A")
        >>> subject.key
        'bin:bin-A'
    """

    model_config = {"frozen": True, "extra": "forbid"}

    subject_type: SubjectType = Field(
        ...,
        description="Whether the subject is a bin or a compartment",
    )
    subject_id: str = Field(
        ...,
        description="Identifier of the bin or compartment",
        min_length=1,
    )

    @property
    def key(self) -> str:
        """Stable key used for per-subject locking and logging."""
        return f"{self.subject_type.value}:{self.subject_id}"


def build_alert_id(
    subject: AlertSubject,
    kind: AlertKind,
    severity: Severity,
    created_at: datetime,
) -> str:
    """
    Build a unique alert identifier.

    The id combines subject type and id, kind, severity and creation instant
    so that two alerts never share a key in normal operation, even for a bin
    and a compartment registered under the same identifier.

    Args:
        subject: The bin or compartment the alert is about.
        kind: The alert kind.
        severity: The alert severity.
        created_at: Creation timestamp.

    Returns:
        str: Formatted alert id.

    Example:
        >>> from datetime import datetime, timezone
        >>> build_alert_id(
        ...     AlertSubject(subject_type=SubjectType.BIN, subject_id="bin-A"),
        ...     AlertKind.FILL_LEVEL,
        ...     Severity.HIGH,
        ...     datetime(2025, 1, 1, tzinfo=timezone.utc),
        ... )
        'bin:bin-A:fill_level:high:1735689600000'
    """
    epoch_millis = int(created_at.timestamp() * 1000)
    return f"{subject.key}:{kind.value}:{severity.value}:{epoch_millis}"


# Fields that may never change once an alert has been created
IMMUTABLE_ALERT_FIELDS = frozenset(
    {"alert_id", "kind", "severity", "bin_id", "compartment_id", "created_at"}
)


class Alert(BaseModel):
    """
    Active or historical alert record.

    Severity is immutable: escalation resolves the lower alert and creates a
    new one, so the history of escalations stays auditable. A resolved alert
    is never reactivated.

    Attributes:
        alert_id: Unique identifier (subject, kind, severity, creation instant).
        bin_id: Bin identifier when the subject is a standalone bin.
        compartment_id: Compartment identifier when the subject is a compartment.
        kind: Alert kind.
        severity: Severity band at creation.
        status: Lifecycle status.
        acknowledged: Whether an operator acknowledged the alert.
        acknowledged_at: When the alert was acknowledged.
        acknowledged_by: Who acknowledged the alert.
        current_value: Measured fill percentage that triggered the alert.
        threshold: Configured fill threshold at trigger time.
        unit: Unit of current_value and threshold.
        created_at: When the alert was created.
        resolved_at: When the alert was resolved.
        resolution_reason: How the alert was resolved.
        resolved_by: Operator who resolved the alert (manual resolution).
        title: Short human-readable title.
        message: Human-readable description.
        recommended_action: Suggested operator action.
        subject_name: Display name of the container.
        location: Location label of the container.
        is_reminder: Whether this alert re-raises an acknowledged condition.
        replaces_alert_id: Alert this one supersedes (escalation or reminder).

    Example:
        >>> alert = Alert(
        ...     alert_id="bin:bin-A:fill_level:high:1735689600000",
        ...     bin_id="bin-A",
        ...     severity=Severity.HIGH,
        ...     current_value=94,
        ...     threshold=90,
        ...     created_at=datetime.now(timezone.utc),
        ... )
    """

    model_config = {"frozen": True, "extra": "forbid"}

    # Identification
    alert_id: str = Field(
        ...,
        description="Unique identifier for this alert",
        min_length=1,
    )

    # Subject (exactly one of the two)
    bin_id: Optional[str] = Field(
        default=None,
        description="Bin identifier when the subject is a standalone bin",
    )
    compartment_id: Optional[str] = Field(
        default=None,
        description="Compartment identifier when the subject is a compartment",
    )

    # Classification
    kind: AlertKind = Field(
        default=AlertKind.FILL_LEVEL,
        description="Alert kind",
    )
    severity: Severity = Field(
        ...,
        description="Severity band at creation (immutable)",
    )
    status: AlertStatus = Field(
        default=AlertStatus.ACTIVE,
        description="Lifecycle status",
    )

    # Acknowledgment
    acknowledged: bool = Field(
        default=False,
        description="Whether an operator acknowledged the alert",
    )
    acknowledged_at: Optional[datetime] = Field(
        default=None,
        description="When the alert was acknowledged",
    )
    acknowledged_by: Optional[str] = Field(
        default=None,
        description="Who acknowledged the alert",
    )

    # Trigger
    current_value: int = Field(
        ...,
        description="Measured fill percentage that triggered the alert",
        ge=0,
        le=100,
    )
    threshold: int = Field(
        ...,
        description="Configured fill threshold at trigger time",
        ge=0,
        le=100,
    )
    unit: str = Field(
        default="%",
        description="Unit of current_value and threshold",
    )

    # Lifecycle timestamps
    created_at: datetime = Field(
        ...,
        description="When the alert was created",
    )
    resolved_at: Optional[datetime] = Field(
        default=None,
        description="When the alert was resolved",
    )
    resolution_reason: Optional[ResolutionReason] = Field(
        default=None,
        description="How the alert was resolved",
    )
    resolved_by: Optional[str] = Field(
        default=None,
        description="Operator who resolved the alert",
    )

    # Display
    title: str = Field(
        default="",
        description="Short human-readable title",
    )
    message: str = Field(
        default="",
        description="Human-readable description",
    )
    recommended_action: Optional[str] = Field(
        default=None,
        description="Suggested operator action",
    )
    subject_name: Optional[str] = Field(
        default=None,
        description="Display name of the container",
    )
    location: Optional[str] = Field(
        default=None,
        description="Location label of the container",
    )

    # Audit
    is_reminder: bool = Field(
        default=False,
        description="Whether this alert re-raises an acknowledged condition",
    )
    replaces_alert_id: Optional[str] = Field(
        default=None,
        description="Alert this one supersedes (escalation or reminder)",
    )

    @model_validator(mode="after")
    def validate_subject(self) -> "Alert":
        """Ensure exactly one subject reference is set."""
        if (self.bin_id is None) == (self.compartment_id is None):
            raise ValueError("Alert must reference exactly one of bin_id or compartment_id")
        return self

    @property
    def subject(self) -> AlertSubject:
        """The subject this alert is attached to."""
        if self.bin_id is not None:
            return AlertSubject(subject_type=SubjectType.BIN, subject_id=self.bin_id)
        return AlertSubject(
            subject_type=SubjectType.COMPARTMENT,
            subject_id=self.compartment_id,  # type: ignore[arg-type]
        )

    @property
    def subject_id(self) -> str:
        """Identifier of the bin or compartment."""
        return self.bin_id if self.bin_id is not None else self.compartment_id  # type: ignore[return-value]

    @property
    def is_active(self) -> bool:
        """Check if the alert is currently active (not resolved)."""
        return self.status == AlertStatus.ACTIVE

    @property
    def duration_seconds(self) -> Optional[int]:
        """How long the alert was active, once resolved."""
        if self.resolved_at is None:
            return None
        return max(0, int((self.resolved_at - self.created_at).total_seconds()))
