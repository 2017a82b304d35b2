"""
Alert lifecycle evaluator.

This module provides the LifecycleEvaluator which compares the classified
severity of each container against its existing alert history and decides
what to do: nothing, suppress, create, escalate, remind, or auto-resolve.

Key Features:
    - Deduplication: never creates a second active alert at a severity
    - Escalation: resolves lower alerts and creates one at the higher severity
    - Acknowledgment-aware reminders with a suppression window
    - Auto-resolution once the fill leaves every severity band
    - Per-subject serialization with bounded concurrency across subjects
    - Integrity checks on store contents (duplicate active severities)

Example:
    >>> evaluator = LifecycleEvaluator(store, classifier, settings)
    >>> report = await evaluator.evaluate_all(snapshots)
    >>> for alert in report.created_alerts:
    ...     print(alert.alert_id)
"""

import asyncio
from collections import Counter
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence

import structlog

from fillwatch.config.models import MonitoringSettings
from fillwatch.detection.classifier import SeverityClassifier
from fillwatch.detection.fill import fill_percent
from fillwatch.interfaces.alert_store import AlertNotFoundError, AlertStore, AlertStoreError
from fillwatch.models.alerts import (
    Alert,
    AlertKind,
    AlertSubject,
    ResolutionReason,
    Severity,
    SubjectType,
    build_alert_id,
)
from fillwatch.models.containers import ContainerSnapshot
from fillwatch.models.monitoring import (
    Decision,
    PassReport,
    SubjectFailure,
    SubjectOutcome,
)

logger = structlog.get_logger(__name__)

Clock = Callable[[], datetime]

SKIP_NO_READING = "no_reading"
SKIP_INVALID_CONFIG = "invalid_config"

# Display text per severity
_SEVERITY_TEXT: Dict[Severity, tuple[str, str]] = {
    Severity.CRITICAL: (
        "is full and needs immediate attention",
        "Empty bin urgently",
    ),
    Severity.HIGH: (
        "is over its fill threshold",
        "Schedule collection soon",
    ),
    Severity.MEDIUM: (
        "is approaching its fill threshold",
        "Monitor and schedule collection",
    ),
}


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


class AlertIntegrityError(Exception):
    """
    Raised when the store holds alerts that violate lifecycle invariants.

    Attributes:
        subject_id: The subject whose alerts are inconsistent.
        severity: The severity with more than one active alert.
        alert_ids: The conflicting alert ids.
    """

    def __init__(self, subject_id: str, severity: Severity, alert_ids: List[str]) -> None:
        self.subject_id = subject_id
        self.severity = severity
        self.alert_ids = alert_ids
        super().__init__(
            f"{len(alert_ids)} active {severity.value} alerts for {subject_id}: {alert_ids}"
        )


class LifecycleEvaluator:
    """
    Decides and persists the alert lifecycle for each monitored subject.

    Per subject and pass, with fill F, threshold T and classified severity S:
    - S above every active alert (or no active alert): resolve the lower
      alerts and create one at S. Escalation is never suppressed.
    - S equal to the highest active severity: suppress while any active alert
      is unacknowledged or the latest acknowledgment is inside the
      suppression window; otherwise raise a reminder that replaces the
      acknowledged alert.
    - S below the highest active severity: keep the existing alerts.
    - No severity, or F <= T - clear_hysteresis: auto-resolve every active
      alert.

    Subjects without a valid reading or with an unusable height are skipped
    entirely.

    Attributes:
        store: Alert store the evaluator reads and writes.
        classifier: Severity classifier.
        settings: Monitoring policy.
        kind: Alert kind managed by this evaluator.
    """

    def __init__(
        self,
        store: AlertStore,
        classifier: SeverityClassifier,
        settings: Optional[MonitoringSettings] = None,
        clock: Optional[Clock] = None,
        kind: AlertKind = AlertKind.FILL_LEVEL,
    ) -> None:
        """
        Initialize the LifecycleEvaluator.

        Args:
            store: Alert store for persistence.
            classifier: Severity classifier.
            settings: Monitoring policy (defaults to MonitoringSettings()).
            clock: Callable returning the current aware UTC time.
            kind: Alert kind managed by this evaluator.
        """
        self.store = store
        self.classifier = classifier
        self.settings = settings or MonitoringSettings()
        self.kind = kind
        self._clock: Clock = clock or utcnow

        # One lock per subject serializes writes for a subject+kind
        self._subject_locks: Dict[str, asyncio.Lock] = {}

        logger.info(
            "lifecycle_evaluator_initialized",
            kind=kind.value,
            ack_suppression_seconds=self.settings.ack_suppression_seconds,
            clear_hysteresis=self.classifier.clear_hysteresis,
            max_concurrency=self.settings.max_concurrency,
        )

    async def evaluate_all(
        self,
        snapshots: Sequence[ContainerSnapshot],
        now: Optional[datetime] = None,
    ) -> PassReport:
        """
        Evaluate every container for one monitoring pass.

        Subjects are evaluated concurrently up to max_concurrency. Writes for
        the same subject are serialized. Failures are collected in the report
        and never abort the other subjects.

        Args:
            snapshots: Container snapshots for this pass.
            now: Pass timestamp (defaults to the clock).

        Returns:
            PassReport: Created and resolved alerts, skips and failures.
        """
        if now is None:
            now = self._clock()

        report = PassReport(started_at=now)
        semaphore = asyncio.Semaphore(self.settings.max_concurrency)

        async def bounded(snapshot: ContainerSnapshot) -> SubjectOutcome:
            async with semaphore:
                return await self.evaluate_container(snapshot, now)

        outcomes = await asyncio.gather(*(bounded(s) for s in snapshots))

        for outcome in outcomes:
            report.add_outcome(outcome)

        report.finished_at = self._clock()

        logger.info(
            "monitoring_pass_evaluated",
            evaluated=report.evaluated,
            created=len(report.created_alerts),
            resolved=len(report.resolved_alerts),
            skipped=len(report.skipped),
            failures=len(report.failures),
        )

        return report

    async def evaluate_container(
        self,
        snapshot: ContainerSnapshot,
        now: Optional[datetime] = None,
    ) -> SubjectOutcome:
        """
        Evaluate one container and persist the resulting alert changes.

        Args:
            snapshot: The container snapshot.
            now: Evaluation timestamp (defaults to the clock).

        Returns:
            SubjectOutcome: The decision and any alerts created or resolved.
        """
        if now is None:
            now = self._clock()

        subject = snapshot.subject

        if not snapshot.has_reading:
            reason = SKIP_NO_READING if snapshot.has_height else SKIP_INVALID_CONFIG
            logger.info(
                "container_skipped",
                subject=subject.key,
                reason=reason,
                distance=snapshot.distance,
                height=snapshot.height,
            )
            return SubjectOutcome(
                subject_id=subject.subject_id,
                decision=Decision.SKIP,
                skip_reason=reason,
            )

        threshold = snapshot.fill_threshold
        outcome = SubjectOutcome(subject_id=subject.subject_id, decision=Decision.NOOP)

        # Classify
        try:
            fill = fill_percent(snapshot.distance, snapshot.height)
            severity = self.classifier.classify(fill, threshold)
        except Exception as e:
            return self._fail(outcome, subject, "evaluate", e)

        outcome.fill_percent = fill
        outcome.severity = severity

        async with self._lock_for(subject):
            # Read
            try:
                active = await self._load_active(subject)
            except Exception as e:
                return self._fail(outcome, subject, "read", e)

            # Integrity
            try:
                self._check_integrity(subject, active)
            except AlertIntegrityError as e:
                logger.error(
                    "alert_integrity_violation",
                    subject=subject.key,
                    severity=e.severity.value,
                    alert_ids=e.alert_ids,
                )
                return self._fail(outcome, subject, "integrity", e)

            # Decide and write
            try:
                await self._apply(snapshot, fill, threshold, severity, active, outcome, now)
            except AlertStoreError as e:
                return self._fail(outcome, subject, "write", e)
            except Exception as e:
                return self._fail(outcome, subject, "evaluate", e)

        return outcome

    async def acknowledge(
        self,
        alert_id: str,
        actor: str,
        now: Optional[datetime] = None,
    ) -> Alert:
        """
        Acknowledge an alert on behalf of an operator.

        Args:
            alert_id: The alert to acknowledge.
            actor: Who acknowledged it.
            now: Acknowledgment time (defaults to the clock).

        Returns:
            Alert: The acknowledged alert.

        Raises:
            AlertNotFoundError: If the alert does not exist.
            AlreadyResolvedError: If the alert is resolved.
        """
        if now is None:
            now = self._clock()

        alert = await self.store.get_alert(alert_id)
        if alert is None:
            raise AlertNotFoundError(alert_id)

        async with self._lock_for(alert.subject):
            acknowledged = await self.store.acknowledge_alert(alert_id, actor, at=now)

        logger.info(
            "alert_acknowledged",
            alert_id=alert_id,
            subject=alert.subject.key,
            severity=alert.severity.value,
            actor=actor,
        )
        return acknowledged

    async def resolve(
        self,
        alert_id: str,
        actor: str,
        now: Optional[datetime] = None,
    ) -> Alert:
        """
        Manually resolve an alert.

        Args:
            alert_id: The alert to resolve.
            actor: Operator resolving it.
            now: Resolution time (defaults to the clock).

        Returns:
            Alert: The resolved alert.

        Raises:
            AlertNotFoundError: If the alert does not exist.
            AlreadyResolvedError: If the alert is already resolved.
        """
        if now is None:
            now = self._clock()

        alert = await self.store.get_alert(alert_id)
        if alert is None:
            raise AlertNotFoundError(alert_id)

        async with self._lock_for(alert.subject):
            resolved = await self.store.resolve_alert(
                alert_id,
                reason=ResolutionReason.MANUAL,
                actor=actor,
                at=now,
            )

        logger.info(
            "alert_resolved",
            alert_id=alert_id,
            subject=alert.subject.key,
            resolution_reason=ResolutionReason.MANUAL.value,
            actor=actor,
            duration_seconds=resolved.duration_seconds,
        )
        return resolved

    # =========================================================================
    # DECISION LOGIC
    # =========================================================================

    async def _apply(
        self,
        snapshot: ContainerSnapshot,
        fill: int,
        threshold: int,
        severity: Optional[Severity],
        active: List[Alert],
        outcome: SubjectOutcome,
        now: datetime,
    ) -> None:
        """Run the lifecycle state machine for one subject."""
        subject = snapshot.subject

        # Condition gone: below the medium band or at/under the clear level
        if severity is None or self.classifier.is_cleared(fill, threshold):
            if active:
                outcome.decision = Decision.AUTO_RESOLVE
                for alert in active:
                    outcome.resolved.append(await self._auto_resolve(alert, now))
                logger.info(
                    "alerts_auto_resolved",
                    subject=subject.key,
                    fill_percent=fill,
                    severity=severity.value if severity else None,
                    clear_level=self.classifier.clear_level(threshold),
                    count=len(active),
                )
            return

        highest = Severity.max_of(a.severity for a in active)

        # New condition
        if highest is None:
            outcome.decision = Decision.CREATE
            outcome.created.append(
                await self._create(snapshot, severity, fill, threshold, now)
            )
            return

        # Escalation: resolve every lower alert, then always create
        if severity > highest:
            outcome.decision = Decision.ESCALATE
            lower = [a for a in active if a.severity < severity]
            replaced = max(lower, key=lambda a: a.severity)
            for alert in lower:
                outcome.resolved.append(await self._auto_resolve(alert, now))
            created = await self._create(
                snapshot,
                severity,
                fill,
                threshold,
                now,
                replaces=replaced,
            )
            outcome.created.append(created)
            logger.info(
                "alert_escalated",
                subject=subject.key,
                from_severity=highest.value,
                to_severity=severity.value,
                alert_id=created.alert_id,
                fill_percent=fill,
            )
            return

        # Reading improved but not enough to clear: keep the higher alert
        if severity < highest:
            logger.debug(
                "alert_held_at_higher_severity",
                subject=subject.key,
                current_severity=severity.value,
                active_severity=highest.value,
            )
            return

        # Same severity
        unacknowledged = [a for a in active if not a.acknowledged]
        if unacknowledged:
            outcome.decision = Decision.SUPPRESS
            logger.debug(
                "alert_suppressed",
                subject=subject.key,
                severity=severity.value,
                reason="unacknowledged",
                alert_ids=[a.alert_id for a in unacknowledged],
            )
            return

        current = [a for a in active if a.severity == severity]
        last_ack = max(
            (a.acknowledged_at for a in current if a.acknowledged_at is not None),
            default=None,
        )
        window = self.settings.ack_suppression_seconds
        if last_ack is not None and (now - last_ack).total_seconds() < window:
            outcome.decision = Decision.SUPPRESS
            logger.debug(
                "alert_suppressed",
                subject=subject.key,
                severity=severity.value,
                reason="acknowledged_recently",
                acknowledged_at=last_ack.isoformat(),
                window_seconds=window,
            )
            return

        # Condition persists after acknowledgment and window expiry
        outcome.decision = Decision.REMINDER
        for alert in current:
            outcome.resolved.append(await self._auto_resolve(alert, now))
        reminder = await self._create(
            snapshot,
            severity,
            fill,
            threshold,
            now,
            replaces=current[0],
            is_reminder=True,
        )
        outcome.created.append(reminder)
        logger.info(
            "alert_reminder_created",
            subject=subject.key,
            severity=severity.value,
            alert_id=reminder.alert_id,
            replaces_alert_id=current[0].alert_id,
        )

    async def _create(
        self,
        snapshot: ContainerSnapshot,
        severity: Severity,
        fill: int,
        threshold: int,
        now: datetime,
        replaces: Optional[Alert] = None,
        is_reminder: bool = False,
    ) -> Alert:
        """Build and persist a new alert for the snapshot's subject."""
        alert = self._build_alert(snapshot, severity, fill, threshold, now)
        if replaces is not None or is_reminder:
            alert = alert.model_copy(
                update={
                    "replaces_alert_id": replaces.alert_id if replaces else None,
                    "is_reminder": is_reminder,
                }
            )

        stored = await self.store.create_alert(alert)

        logger.info(
            "alert_created",
            alert_id=stored.alert_id,
            subject=snapshot.subject.key,
            severity=severity.value,
            current_value=fill,
            threshold=threshold,
            is_reminder=is_reminder,
        )
        return stored

    async def _auto_resolve(self, alert: Alert, now: datetime) -> Alert:
        """Resolve an alert with reason auto."""
        resolved = await self.store.resolve_alert(
            alert.alert_id,
            reason=ResolutionReason.AUTO,
            at=now,
        )
        logger.info(
            "alert_auto_resolved",
            alert_id=alert.alert_id,
            subject=alert.subject.key,
            severity=alert.severity.value,
            duration_seconds=resolved.duration_seconds,
        )
        return resolved

    def _build_alert(
        self,
        snapshot: ContainerSnapshot,
        severity: Severity,
        fill: int,
        threshold: int,
        now: datetime,
    ) -> Alert:
        """
        Create an Alert object for a subject.

        Args:
            snapshot: The container snapshot.
            severity: The classified severity.
            fill: The computed fill percentage.
            threshold: The configured threshold.
            now: Creation timestamp.

        Returns:
            Alert: The new (unsaved) alert.
        """
        subject = snapshot.subject
        name = snapshot.name or subject.subject_id
        description, action = _SEVERITY_TEXT[severity]

        subject_field = "bin_id" if subject.subject_type == SubjectType.BIN else "compartment_id"

        return Alert(
            alert_id=build_alert_id(subject, self.kind, severity, now),
            kind=self.kind,
            severity=severity,
            current_value=fill,
            threshold=threshold,
            created_at=now,
            title=f"{severity.value.upper()}: {name} is {fill}% full",
            message=f"{name} {description} ({fill}% / {threshold}%)",
            recommended_action=action,
            subject_name=snapshot.name or None,
            location=snapshot.location,
            **{subject_field: subject.subject_id},
        )

    # =========================================================================
    # HELPERS
    # =========================================================================

    async def _load_active(self, subject: AlertSubject) -> List[Alert]:
        """Active alerts for one subject and this evaluator's kind."""
        alerts = await self.store.list_active_alerts(
            subject_id=subject.subject_id,
            kind=self.kind,
        )
        return [
            a for a in alerts
            if a.is_active and a.kind == self.kind and a.subject == subject
        ]

    def _check_integrity(self, subject: AlertSubject, active: List[Alert]) -> None:
        """
        Verify at most one active alert per severity.

        Raises:
            AlertIntegrityError: If a severity has more than one active alert.
        """
        counts = Counter(a.severity for a in active)
        for severity, count in counts.items():
            if count > 1:
                raise AlertIntegrityError(
                    subject.subject_id,
                    severity,
                    sorted(a.alert_id for a in active if a.severity == severity),
                )

    def _lock_for(self, subject: AlertSubject) -> asyncio.Lock:
        """Get or create the lock serializing writes for a subject."""
        lock = self._subject_locks.get(subject.key)
        if lock is None:
            lock = asyncio.Lock()
            self._subject_locks[subject.key] = lock
        return lock

    def _fail(
        self,
        outcome: SubjectOutcome,
        subject: AlertSubject,
        stage: str,
        error: Exception,
    ) -> SubjectOutcome:
        """Record a subject failure, keeping any writes already made."""
        outcome.decision = Decision.FAILED
        outcome.failure = SubjectFailure(
            subject_id=subject.subject_id,
            stage=stage,
            error_type=type(error).__name__,
            message=str(error),
        )
        if stage != "integrity":
            logger.warning(
                "subject_evaluation_failed",
                subject=subject.key,
                stage=stage,
                error=str(error),
                error_type=type(error).__name__,
                created=len(outcome.created),
                resolved=len(outcome.resolved),
            )
        return outcome


def create_lifecycle_evaluator(
    store: AlertStore,
    settings: Optional[MonitoringSettings] = None,
    clock: Optional[Clock] = None,
) -> LifecycleEvaluator:
    """
    Factory function to create a LifecycleEvaluator from monitoring settings.

    Args:
        store: Alert store for persistence.
        settings: Monitoring policy (defaults to MonitoringSettings()).
        clock: Callable returning the current aware UTC time.

    Returns:
        LifecycleEvaluator: A new evaluator instance.
    """
    settings = settings or MonitoringSettings()
    classifier = SeverityClassifier(
        critical_ceiling=settings.critical_ceiling,
        early_warning_band=settings.early_warning_band,
        clear_hysteresis=settings.clear_hysteresis,
    )
    return LifecycleEvaluator(
        store=store,
        classifier=classifier,
        settings=settings,
        clock=clock,
    )
