"""
Shared pytest fixtures for the fillwatch test suite.

Provides a controllable clock, an in-memory alert store, a static container
source with the reference bin (bin-A, 100 cm, threshold 90) and the engine
components wired the way the monitor service wires them.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import pytest

from fillwatch.config.models import MonitoringSettings
from fillwatch.detection.coordinator import MonitoringRunCoordinator, RunGuard
from fillwatch.detection.lifecycle import LifecycleEvaluator, create_lifecycle_evaluator
from fillwatch.models.alerts import (
    Alert,
    AlertKind,
    AlertSubject,
    Severity,
    SubjectType,
    build_alert_id,
)
from fillwatch.models.containers import ContainerSnapshot
from fillwatch.sources.static import StaticContainerSource
from fillwatch.storage.memory import InMemoryAlertStore

T0 = datetime(2025, 1, 6, 8, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock returning aware UTC datetimes."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 0, minutes: float = 0) -> datetime:
        self.now += timedelta(seconds=seconds, minutes=minutes)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> MonitoringSettings:
    return MonitoringSettings()


@pytest.fixture
def store() -> InMemoryAlertStore:
    return InMemoryAlertStore()


@pytest.fixture
def evaluator(
    store: InMemoryAlertStore,
    settings: MonitoringSettings,
    clock: FakeClock,
) -> LifecycleEvaluator:
    return create_lifecycle_evaluator(store, settings, clock=clock)


@pytest.fixture
def make_snapshot() -> Callable[..., ContainerSnapshot]:
    """Factory for snapshots; fill= sets the distance for the given height."""

    def _make(
        container_id: str = "bin-A",
        fill: Optional[int] = None,
        distance: Optional[float] = None,
        height: Optional[float] = 100,
        threshold: int = 90,
        subject_type: SubjectType = SubjectType.BIN,
        **kwargs,
    ) -> ContainerSnapshot:
        if fill is not None and height:
            distance = height - height * fill / 100
        return ContainerSnapshot(
            container_id=container_id,
            name=kwargs.pop("name", f"Container {container_id}"),
            subject_type=subject_type,
            height=height,
            distance=distance,
            fill_threshold=threshold,
            **kwargs,
        )

    return _make


@pytest.fixture
def make_alert() -> Callable[..., Alert]:
    """Factory for alerts seeded directly into a store."""

    def _make(
        subject_id: str = "bin-A",
        severity: Severity = Severity.HIGH,
        created_at: datetime = T0,
        **kwargs,
    ) -> Alert:
        return Alert(
            alert_id=kwargs.pop(
                "alert_id",
                build_alert_id(
                    AlertSubject(subject_type=SubjectType.BIN, subject_id=subject_id),
                    AlertKind.FILL_LEVEL,
                    severity,
                    created_at,
                ),
            ),
            bin_id=subject_id,
            severity=severity,
            current_value=kwargs.pop("current_value", 94),
            threshold=kwargs.pop("threshold", 90),
            created_at=created_at,
            **kwargs,
        )

    return _make


@pytest.fixture
def source(make_snapshot) -> StaticContainerSource:
    return StaticContainerSource([make_snapshot("bin-A", name="Lobby bin")])


@pytest.fixture
def coordinator(
    source: StaticContainerSource,
    evaluator: LifecycleEvaluator,
    settings: MonitoringSettings,
    clock: FakeClock,
) -> MonitoringRunCoordinator:
    guard = RunGuard(cooldown_seconds=settings.run_cooldown_seconds, clock=clock)
    return MonitoringRunCoordinator(source=source, evaluator=evaluator, guard=guard)
