"""
Monitoring pass and run result models.

These models describe what a monitoring pass did: per-subject decisions,
alerts created and resolved, containers skipped for lack of data, and
failures aggregated across the pass.

Models:
    RunStatus: Outcome of a run_once() call
    Decision: What the lifecycle evaluator decided for one subject
    SubjectFailure: A subject whose evaluation failed
    SkippedContainer: A container skipped for the pass
    SubjectOutcome: Result of evaluating one subject
    PassReport: Aggregated result of one monitoring pass
    RunResult: Result returned to the trigger surface
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from fillwatch.models.alerts import Alert, Severity


class RunStatus(str, Enum):
    """
    Outcome of a monitoring run request.

    Attributes:
        STARTED: The pass ran; created alerts are returned.
        ALREADY_RUNNING: Another pass is in progress (benign no-op).
        ON_COOLDOWN: The previous pass started too recently (benign no-op).
        FAILED: The pass ran but failed in whole or in part.
    """

    STARTED = "started"
    ALREADY_RUNNING = "already_running"
    ON_COOLDOWN = "on_cooldown"
    FAILED = "failed"

    @property
    def is_benign_skip(self) -> bool:
        """Check if this status is an expected guard rejection."""
        return self in (RunStatus.ALREADY_RUNNING, RunStatus.ON_COOLDOWN)


class Decision(str, Enum):
    """Decision taken by the lifecycle evaluator for one subject."""

    NOOP = "noop"
    SUPPRESS = "suppress"
    CREATE = "create"
    ESCALATE = "escalate"
    REMINDER = "reminder"
    AUTO_RESOLVE = "auto_resolve"
    SKIP = "skip"
    FAILED = "failed"


class SubjectFailure(BaseModel):
    """
    A subject whose evaluation failed during a pass.

    Attributes:
        subject_id: Bin or compartment identifier.
        stage: Where it failed (read, write, integrity, evaluate).
        error_type: Exception class name.
        message: Error message.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    subject_id: str
    stage: str
    error_type: str
    message: str


class SkippedContainer(BaseModel):
    """A container skipped for the pass, with the reason."""

    model_config = {"frozen": True, "extra": "forbid"}

    subject_id: str
    reason: str


class SubjectOutcome(BaseModel):
    """
    Result of evaluating one subject.

    Attributes:
        subject_id: Bin or compartment identifier.
        decision: What the evaluator decided.
        fill_percent: Computed fill level (None when skipped).
        severity: Classified severity (None when below every band).
        created: Alerts created for this subject.
        resolved: Alerts resolved for this subject.
        skip_reason: Why the subject was skipped.
        failure: Failure details, if evaluation failed.
    """

    model_config = {"extra": "forbid"}

    subject_id: str
    decision: Decision
    fill_percent: Optional[int] = None
    severity: Optional[Severity] = None
    created: List[Alert] = Field(default_factory=list)
    resolved: List[Alert] = Field(default_factory=list)
    skip_reason: Optional[str] = None
    failure: Optional[SubjectFailure] = None


class PassReport(BaseModel):
    """
    Aggregated result of one monitoring pass.

    Attributes:
        started_at: When the pass started.
        finished_at: When the pass finished.
        evaluated: Number of containers evaluated.
        created_alerts: Alerts created during the pass.
        resolved_alerts: Alerts resolved during the pass.
        skipped: Containers skipped for lack of data.
        failures: Subjects whose evaluation failed.
    """

    model_config = {"extra": "forbid"}

    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    evaluated: int = 0
    created_alerts: List[Alert] = Field(default_factory=list)
    resolved_alerts: List[Alert] = Field(default_factory=list)
    skipped: List[SkippedContainer] = Field(default_factory=list)
    failures: List[SubjectFailure] = Field(default_factory=list)

    @property
    def has_failures(self) -> bool:
        """Check if any subject failed during the pass."""
        return bool(self.failures)

    def add_outcome(self, outcome: SubjectOutcome) -> None:
        """
        Fold a subject outcome into the report.

        Args:
            outcome: The outcome of one subject evaluation.
        """
        self.evaluated += 1
        self.created_alerts.extend(outcome.created)
        self.resolved_alerts.extend(outcome.resolved)
        if outcome.skip_reason is not None:
            self.skipped.append(
                SkippedContainer(subject_id=outcome.subject_id, reason=outcome.skip_reason)
            )
        if outcome.failure is not None:
            self.failures.append(outcome.failure)

    def describe_failures(self) -> str:
        """Human-readable summary of failed subjects."""
        return "; ".join(
            f"{f.subject_id} [{f.stage}] {f.error_type}: {f.message}" for f in self.failures
        )


class RunResult(BaseModel):
    """
    Result of a run_once() call.

    Attributes:
        status: Outcome of the run request.
        report: Pass report (empty for benign skips).
        error: Error description when status is FAILED.

    Example:
        >>> result = await coordinator.run_once()
        >>> if result.status.is_benign_skip:
        ...     pass
        >>> elif result.status == RunStatus.FAILED:
        ...     print(result.error)
    """

    model_config = {"extra": "forbid"}

    status: RunStatus
    report: PassReport = Field(default_factory=PassReport)
    error: Optional[str] = None

    @property
    def created_alerts(self) -> List[Alert]:
        """Alerts created by the pass."""
        return self.report.created_alerts

    @property
    def is_benign_skip(self) -> bool:
        """Check if the run was skipped by the run guard."""
        return self.status.is_benign_skip
