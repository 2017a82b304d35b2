"""
Monitoring run coordinator.

Funnels every trigger (periodic timer, operator "check now") through a
single run guard so that at most one monitoring pass executes at a time and
passes never start more often than the configured cooldown.

The guard is process-local. Deployments running several replicas need an
external distributed lock on top of it.

Example:
    >>> guard = RunGuard(cooldown_seconds=5.0)
    >>> coordinator = MonitoringRunCoordinator(source, evaluator, guard)
    >>> result = await coordinator.run_once()
    >>> if result.is_benign_skip:
    ...     pass  # already running or on cooldown, not an error
"""

import asyncio
from datetime import datetime
from typing import Any, Dict, Optional

import structlog

from fillwatch.detection.lifecycle import Clock, LifecycleEvaluator, utcnow
from fillwatch.interfaces.container_source import ContainerSource
from fillwatch.models.monitoring import PassReport, RunResult, RunStatus

logger = structlog.get_logger(__name__)


class RunGuard:
    """
    Owned run-guard state: whether a pass is in progress and when the last
    one started.

    Acquisition is atomic with respect to other coroutines on the same event
    loop: the checks and the acquire of an unlocked lock happen without a
    suspension point in between.

    Attributes:
        cooldown_seconds: Minimum spacing between the starts of two passes.
        last_run_at: Start time of the most recent pass.
    """

    def __init__(
        self,
        cooldown_seconds: float = 5.0,
        clock: Optional[Clock] = None,
        lock: Optional[asyncio.Lock] = None,
    ) -> None:
        self.cooldown_seconds = cooldown_seconds
        self.last_run_at: Optional[datetime] = None
        self._clock: Clock = clock or utcnow
        self._lock = lock or asyncio.Lock()

    @property
    def in_progress(self) -> bool:
        """Check if a pass currently holds the guard."""
        return self._lock.locked()

    def cooldown_remaining(self, now: Optional[datetime] = None) -> float:
        """Seconds until the cooldown allows another pass (0 if it already does)."""
        if self.last_run_at is None:
            return 0.0
        if now is None:
            now = self._clock()
        elapsed = (now - self.last_run_at).total_seconds()
        return max(0.0, self.cooldown_seconds - elapsed)

    async def try_acquire(self) -> RunStatus:
        """
        Try to start a pass.

        Returns:
            RunStatus: STARTED if the guard was acquired (the caller must
            call release()), otherwise ALREADY_RUNNING or ON_COOLDOWN.
        """
        if self._lock.locked():
            return RunStatus.ALREADY_RUNNING

        now = self._clock()
        if self.cooldown_remaining(now) > 0:
            return RunStatus.ON_COOLDOWN

        await self._lock.acquire()
        self.last_run_at = now
        return RunStatus.STARTED

    def release(self) -> None:
        """Release the guard after a pass."""
        if self._lock.locked():
            self._lock.release()

    def to_dict(self) -> Dict[str, Any]:
        """Guard state for status reporting."""
        return {
            "in_progress": self.in_progress,
            "last_run_at": self.last_run_at.isoformat() if self.last_run_at else None,
            "cooldown_seconds": self.cooldown_seconds,
            "cooldown_remaining_seconds": self.cooldown_remaining(),
        }


class MonitoringRunCoordinator:
    """
    Runs full monitoring passes behind the run guard.

    Attributes:
        source: Where container snapshots are read from each pass.
        evaluator: The lifecycle evaluator.
        guard: The run guard shared by every trigger.
        last_result: Result of the most recent pass that actually ran.
    """

    def __init__(
        self,
        source: ContainerSource,
        evaluator: LifecycleEvaluator,
        guard: Optional[RunGuard] = None,
    ) -> None:
        self.source = source
        self.evaluator = evaluator
        self.guard = guard or RunGuard()
        self.last_result: Optional[RunResult] = None

    async def run_once(self) -> RunResult:
        """
        Execute one monitoring pass if the guard allows it.

        Returns:
            RunResult: STARTED with the created alerts, ALREADY_RUNNING or
            ON_COOLDOWN with an empty report, or FAILED with the error and
            whatever the pass managed to report. Alerts persisted before a
            failure stay persisted.

        Raises:
            asyncio.CancelledError: If the pass is cancelled. The guard is
                released first.
        """
        status = await self.guard.try_acquire()
        if status != RunStatus.STARTED:
            logger.info(
                "monitoring_run_skipped",
                reason=status.value,
                cooldown_remaining_seconds=self.guard.cooldown_remaining(),
            )
            return RunResult(status=status)

        started_at = self.guard.last_run_at
        logger.info("monitoring_run_started", started_at=started_at.isoformat())

        try:
            snapshots = await self.source.list_containers()
            report = await self.evaluator.evaluate_all(snapshots, now=started_at)
        except asyncio.CancelledError:
            logger.warning("monitoring_run_cancelled")
            raise
        except Exception as e:
            logger.error(
                "monitoring_run_failed",
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            result = RunResult(
                status=RunStatus.FAILED,
                report=PassReport(started_at=started_at),
                error=f"{type(e).__name__}: {e}",
            )
            self.last_result = result
            return result
        finally:
            self.guard.release()

        if report.has_failures:
            logger.warning(
                "monitoring_run_partially_failed",
                failures=len(report.failures),
                created=len(report.created_alerts),
                details=report.describe_failures(),
            )
            result = RunResult(
                status=RunStatus.FAILED,
                report=report,
                error=report.describe_failures(),
            )
        else:
            logger.info(
                "monitoring_run_completed",
                evaluated=report.evaluated,
                created=len(report.created_alerts),
                resolved=len(report.resolved_alerts),
                skipped=len(report.skipped),
            )
            result = RunResult(status=RunStatus.STARTED, report=report)

        self.last_result = result
        return result
