"""
Monitor service entry point.

This service is responsible for:
- Running a monitoring pass every poll_interval_seconds
- Serving the operator API ("check now", acknowledge, resolve) in the same
  process, so the timer and the API share one run guard

Usage:
    fillwatch-monitor
    python -m fillwatch.services.monitor

Environment Variables:
    CONFIG_PATH: Path to config directory (default: config)
    REDIS_URL: Redis connection URL (overrides monitoring.yaml)
    LOG_LEVEL: Logging level (overrides monitoring.yaml)
    STORAGE_BACKEND: redis or memory (overrides monitoring.yaml)
"""

from __future__ import annotations

import asyncio
import os
import sys
from pathlib import Path
from typing import Optional

import structlog
import uvicorn

from fillwatch import __version__
from fillwatch.api.app import AppState, create_app
from fillwatch.config.loader import ConfigLoadError
from fillwatch.config.models import ContainerSourceType, StorageBackend
from fillwatch.detection.coordinator import MonitoringRunCoordinator, RunGuard
from fillwatch.detection.lifecycle import create_lifecycle_evaluator
from fillwatch.interfaces.alert_store import AlertStore
from fillwatch.interfaces.container_source import ContainerSource
from fillwatch.services import ServiceRunner, setup_logging
from fillwatch.sources.redis_source import RedisContainerSource
from fillwatch.sources.static import StaticContainerSource
from fillwatch.storage.memory import InMemoryAlertStore
from fillwatch.storage.redis_store import create_redis_alert_store

logger = structlog.get_logger(__name__)


class MonitorService(ServiceRunner):
    """
    Periodic fill-level monitoring with the operator API.

    Attributes:
        store: Alert store.
        source: Container source.
        coordinator: Run coordinator shared by the timer and the API.
        app_state: State served by the API.
    """

    def __init__(self, config_path: str | Path = "config") -> None:
        """Initialize the monitor service."""
        super().__init__(config_path)
        self.store: Optional[AlertStore] = None
        self.source: Optional[ContainerSource] = None
        self.coordinator: Optional[MonitoringRunCoordinator] = None
        self.app_state: Optional[AppState] = None
        self._server: Optional[uvicorn.Server] = None

    @property
    def service_name(self) -> str:
        """Return service name."""
        return "monitor"

    async def _initialize(self) -> None:
        """Build the store, source, evaluator and coordinator."""
        if self.config is None:
            raise RuntimeError("Service not properly initialized")

        settings = self.config.monitoring

        if self.config.storage.backend == StorageBackend.REDIS:
            if self.redis_client is None:
                raise RuntimeError("Redis alert store requires a connected client")
            self.store = create_redis_alert_store(self.redis_client)
        else:
            self.store = InMemoryAlertStore()

        if self.config.storage.container_source == ContainerSourceType.REDIS:
            if self.redis_client is None:
                raise RuntimeError("Redis container source requires a connected client")
            self.source = RedisContainerSource(
                self.redis_client,
                default_fill_threshold=settings.default_fill_threshold,
            )
        else:
            self.source = StaticContainerSource.from_config(
                self.config.get_enabled_containers(),
                default_fill_threshold=settings.default_fill_threshold,
            )

        evaluator = create_lifecycle_evaluator(self.store, settings)
        self.coordinator = MonitoringRunCoordinator(
            source=self.source,
            evaluator=evaluator,
            guard=RunGuard(cooldown_seconds=settings.run_cooldown_seconds),
        )

        self.app_state = AppState(
            coordinator=self.coordinator,
            store=self.store,
            storage_backend=self.config.storage.backend,
            redis_client=self.redis_client,
        )

    async def _run(self) -> None:
        """Run the timer loop and the API server until shutdown."""
        if self.config is None or self.app_state is None:
            raise RuntimeError("Service not properly initialized")

        tasks = [asyncio.create_task(self._timer_loop(), name="monitor-timer")]

        if self.config.api.enabled:
            self._server = uvicorn.Server(
                uvicorn.Config(
                    create_app(self.app_state),
                    host=self.config.api.host,
                    port=self.config.api.port,
                    log_config=None,
                )
            )
            tasks.append(asyncio.create_task(self._serve_api(), name="monitor-api"))

        await self.shutdown_event.wait()

        if self._server is not None:
            self._server.should_exit = True

        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def _serve_api(self) -> None:
        """Serve the operator API; stopping the server stops the service."""
        if self._server is None or self.config is None:
            raise RuntimeError("API server not configured")
        self.logger.info(
            "api_server_starting",
            host=self.config.api.host,
            port=self.config.api.port,
        )
        try:
            await self._server.serve()
        finally:
            self.request_shutdown()

    async def _timer_loop(self) -> None:
        """Run a monitoring pass every poll interval."""
        if self.coordinator is None or self.config is None:
            raise RuntimeError("Service not properly initialized")
        interval = self.config.monitoring.poll_interval_seconds

        while not self.shutdown_event.is_set():
            try:
                result = await self.coordinator.run_once()
                self.logger.info(
                    "scheduled_run_finished",
                    status=result.status.value,
                    created=len(result.created_alerts),
                    error=result.error,
                )
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.logger.error("scheduled_run_error", error=str(e), exc_info=True)

            try:
                await asyncio.wait_for(self.shutdown_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass

    async def _cleanup(self) -> None:
        """Log final state."""
        if self.coordinator is not None and self.coordinator.last_result is not None:
            self.logger.info(
                "cleanup_state",
                last_status=self.coordinator.last_result.status.value,
                last_run_at=(
                    self.coordinator.guard.last_run_at.isoformat()
                    if self.coordinator.guard.last_run_at
                    else None
                ),
            )


async def run(config_path: str | Path = "config") -> None:
    """Run the monitor service until shutdown."""
    service = MonitorService(config_path=config_path)
    await service.run()


def main() -> None:
    """Main entry point."""
    # Set up initial logging
    setup_logging()

    config_path = os.getenv("CONFIG_PATH", "config")

    logger.info(
        "monitor_service_starting",
        version=__version__,
        config_path=config_path,
    )

    try:
        asyncio.run(run(config_path))
    except ConfigLoadError as e:
        logger.error(
            "config_load_failed",
            error=e.message,
            file_path=str(e.file_path) if e.file_path else None,
        )
        sys.exit(1)
    except Exception as e:
        logger.error("service_failed", error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
