"""
Shared Pydantic data models for the monitoring engine.

Modules:
    alerts: Severity scale, alert subjects and alert records
    containers: Container snapshots read each pass
    monitoring: Pass reports and run results

Example:
    >>> from fillwatch.models import Alert, Severity, ContainerSnapshot
"""

# Alert models
from fillwatch.models.alerts import (
    IMMUTABLE_ALERT_FIELDS,
    Alert,
    AlertKind,
    AlertStatus,
    AlertSubject,
    ResolutionReason,
    Severity,
    SubjectType,
    build_alert_id,
)

# Container models
from fillwatch.models.containers import (
    DEFAULT_FILL_THRESHOLD,
    ContainerSnapshot,
)

# Monitoring models
from fillwatch.models.monitoring import (
    Decision,
    PassReport,
    RunResult,
    RunStatus,
    SkippedContainer,
    SubjectFailure,
    SubjectOutcome,
)

__all__ = [
    # Alerts
    "Severity",
    "AlertStatus",
    "ResolutionReason",
    "AlertKind",
    "SubjectType",
    "AlertSubject",
    "Alert",
    "build_alert_id",
    "IMMUTABLE_ALERT_FIELDS",
    # Containers
    "ContainerSnapshot",
    "DEFAULT_FILL_THRESHOLD",
    # Monitoring
    "RunStatus",
    "Decision",
    "SubjectFailure",
    "SkippedContainer",
    "SubjectOutcome",
    "PassReport",
    "RunResult",
]
