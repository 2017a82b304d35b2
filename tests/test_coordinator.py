"""Tests for the run guard and monitoring run coordinator."""

import asyncio
from typing import List

import pytest

from fillwatch.detection.coordinator import MonitoringRunCoordinator, RunGuard
from fillwatch.detection.lifecycle import create_lifecycle_evaluator
from fillwatch.interfaces.alert_store import StoreUnavailableError
from fillwatch.interfaces.container_source import ContainerSource
from fillwatch.models.containers import ContainerSnapshot
from fillwatch.models.monitoring import RunStatus
from fillwatch.sources.static import StaticContainerSource
from fillwatch.storage.memory import InMemoryAlertStore


class BlockingSource(ContainerSource):
    """Source that parks list_containers() until released."""

    def __init__(self, snapshots: List[ContainerSnapshot]) -> None:
        self.snapshots = snapshots
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def list_containers(self) -> List[ContainerSnapshot]:
        self.entered.set()
        await self.release.wait()
        return self.snapshots


class BrokenSource(ContainerSource):
    async def list_containers(self) -> List[ContainerSnapshot]:
        raise RuntimeError("sensor registry unreachable")


class ReadFailingStore(InMemoryAlertStore):
    async def list_active_alerts(self, subject_id=None, kind=None):
        if subject_id == "bin-B":
            raise StoreUnavailableError("read timeout")
        return await super().list_active_alerts(subject_id=subject_id, kind=kind)


class TestRunGuard:
    async def test_first_acquire_starts(self, clock):
        guard = RunGuard(cooldown_seconds=5, clock=clock)

        assert await guard.try_acquire() == RunStatus.STARTED
        assert guard.in_progress
        assert guard.last_run_at == clock.now

    async def test_second_acquire_while_held(self, clock):
        guard = RunGuard(cooldown_seconds=5, clock=clock)
        await guard.try_acquire()

        assert await guard.try_acquire() == RunStatus.ALREADY_RUNNING

    async def test_cooldown_after_release(self, clock):
        guard = RunGuard(cooldown_seconds=5, clock=clock)
        await guard.try_acquire()
        guard.release()

        clock.advance(seconds=2)
        assert await guard.try_acquire() == RunStatus.ON_COOLDOWN
        assert guard.cooldown_remaining() == pytest.approx(3.0)

        clock.advance(seconds=3)
        assert await guard.try_acquire() == RunStatus.STARTED

    async def test_rejections_do_not_move_last_run(self, clock):
        guard = RunGuard(cooldown_seconds=5, clock=clock)
        await guard.try_acquire()
        started = guard.last_run_at
        guard.release()

        clock.advance(seconds=1)
        await guard.try_acquire()

        assert guard.last_run_at == started

    def test_release_without_acquire_is_noop(self, clock):
        guard = RunGuard(clock=clock)
        guard.release()
        assert not guard.in_progress

    async def test_to_dict(self, clock):
        guard = RunGuard(cooldown_seconds=5, clock=clock)
        assert guard.to_dict() == {
            "in_progress": False,
            "last_run_at": None,
            "cooldown_seconds": 5,
            "cooldown_remaining_seconds": 0.0,
        }

        await guard.try_acquire()
        state = guard.to_dict()
        assert state["in_progress"] is True
        assert state["last_run_at"] == clock.now.isoformat()
        assert state["cooldown_remaining_seconds"] == 5.0


class TestRunOnce:
    async def test_pass_creates_alert_for_full_bin(self, coordinator, source, store):
        source.update_reading("bin-A", distance=6)

        result = await coordinator.run_once()

        assert result.status == RunStatus.STARTED
        assert result.error is None
        assert len(result.created_alerts) == 1
        assert result.created_alerts[0].current_value == 94
        assert result.created_alerts[0].subject_name == "Lobby bin"
        assert coordinator.last_result is result

    async def test_immediate_second_run_is_on_cooldown(self, coordinator, source, store):
        source.update_reading("bin-A", distance=6)
        await coordinator.run_once()

        result = await coordinator.run_once()

        assert result.status == RunStatus.ON_COOLDOWN
        assert result.is_benign_skip
        assert result.created_alerts == []
        assert len(store) == 1

    async def test_repeated_passes_are_idempotent(self, coordinator, source, store, clock):
        source.update_reading("bin-A", distance=6)
        await coordinator.run_once()

        clock.advance(seconds=6)
        result = await coordinator.run_once()

        assert result.status == RunStatus.STARTED
        assert result.created_alerts == []
        assert len(store) == 1

    async def test_no_reading_is_reported_as_skip(self, coordinator):
        result = await coordinator.run_once()

        assert result.status == RunStatus.STARTED
        assert [s.subject_id for s in result.report.skipped] == ["bin-A"]

    async def test_concurrent_run_is_already_running(self, evaluator, clock, make_snapshot):
        source = BlockingSource([make_snapshot(fill=94)])
        coordinator = MonitoringRunCoordinator(
            source, evaluator, RunGuard(cooldown_seconds=5, clock=clock)
        )

        first = asyncio.create_task(coordinator.run_once())
        await source.entered.wait()

        second = await coordinator.run_once()
        assert second.status == RunStatus.ALREADY_RUNNING

        source.release.set()
        result = await first
        assert result.status == RunStatus.STARTED
        assert len(result.created_alerts) == 1

    async def test_simultaneous_triggers_start_one_pass(self, coordinator, source):
        source.update_reading("bin-A", distance=6)

        results = await asyncio.gather(*(coordinator.run_once() for _ in range(5)))

        statuses = [r.status for r in results]
        assert statuses.count(RunStatus.STARTED) == 1
        assert all(
            s == RunStatus.STARTED or s.is_benign_skip for s in statuses
        )
        assert sum(len(r.created_alerts) for r in results) == 1

    async def test_failure_releases_guard(self, evaluator, clock):
        guard = RunGuard(cooldown_seconds=5, clock=clock)
        coordinator = MonitoringRunCoordinator(BrokenSource(), evaluator, guard)

        result = await coordinator.run_once()

        assert result.status == RunStatus.FAILED
        assert result.error == "RuntimeError: sensor registry unreachable"
        assert not guard.in_progress
        assert coordinator.last_result is result

        clock.advance(seconds=5)
        retry = await coordinator.run_once()
        assert retry.status == RunStatus.FAILED

    async def test_partial_failure_reports_and_keeps_alerts(self, clock, make_snapshot):
        store = ReadFailingStore()
        evaluator = create_lifecycle_evaluator(store, clock=clock)
        source = StaticContainerSource(
            [make_snapshot("bin-A", fill=94), make_snapshot("bin-B", fill=94)]
        )
        guard = RunGuard(clock=clock)
        coordinator = MonitoringRunCoordinator(source, evaluator, guard)

        result = await coordinator.run_once()

        assert result.status == RunStatus.FAILED
        assert "bin-B" in result.error
        assert [a.subject_id for a in result.created_alerts] == ["bin-A"]
        assert len(store) == 1
        assert not guard.in_progress

    async def test_cancellation_releases_guard(self, evaluator, clock, make_snapshot):
        source = BlockingSource([make_snapshot(fill=94)])
        guard = RunGuard(cooldown_seconds=0, clock=clock)
        coordinator = MonitoringRunCoordinator(source, evaluator, guard)

        task = asyncio.create_task(coordinator.run_once())
        await source.entered.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert not guard.in_progress

        source.release.set()
        result = await coordinator.run_once()
        assert result.status == RunStatus.STARTED

    async def test_pass_timestamp_is_guard_start(self, coordinator, source, clock):
        source.update_reading("bin-A", distance=6)
        started = clock.now

        result = await coordinator.run_once()

        assert result.report.started_at == started
        assert result.created_alerts[0].created_at == started
