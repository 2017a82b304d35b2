"""
Service infrastructure shared by fillwatch entry points.

Provides:
    setup_logging: structlog configuration over stdlib logging
    ServiceRunner: base class handling config loading, the Redis connection,
        signal-driven shutdown and the _initialize/_run/_cleanup lifecycle

Example:
    >>> class MyService(ServiceRunner):
    ...     @property
    ...     def service_name(self) -> str:
    ...         return "my-service"
    ...
    ...     async def _initialize(self) -> None: ...
    ...     async def _run(self) -> None:
    ...         await self.shutdown_event.wait()
    ...     async def _cleanup(self) -> None: ...
    >>>
    >>> asyncio.run(MyService("config").run())
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import structlog

from fillwatch.config.loader import load_config
from fillwatch.config.models import AppConfig, ContainerSourceType, LogFormat, StorageBackend
from fillwatch.storage.redis_client import RedisClient, create_redis_client


def setup_logging(
    level: Optional[str] = None,
    log_format: str | LogFormat = LogFormat.JSON,
) -> None:
    """
    Configure structured logging.

    Args:
        level: Log level name (defaults to LOG_LEVEL or INFO).
        log_format: "json" for JSON lines, "text" for console rendering.
    """
    log_level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()

    if LogFormat(log_format) == LogFormat.TEXT:
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, log_level, logging.INFO),
        force=True,
    )

    # Reduce noise from uvicorn access logs
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


class ServiceRunner(ABC):
    """
    Base class for long-running fillwatch services.

    run() loads configuration, reconfigures logging from it, connects to
    Redis when the storage backend or container source needs it, then calls
    _initialize() and _run(). _cleanup() and the Redis disconnect always run.

    Attributes:
        config_path: Configuration directory.
        config: Loaded configuration (set by run()).
        redis_client: Connected Redis client, if Redis is used.
        shutdown_event: Set on SIGINT/SIGTERM or request_shutdown().
        logger: Logger bound to the service name.
    """

    def __init__(self, config_path: str | Path = "config") -> None:
        self.config_path = config_path
        self.config: Optional[AppConfig] = None
        self.redis_client: Optional[RedisClient] = None
        self.shutdown_event = asyncio.Event()
        self.logger = structlog.get_logger(self.service_name)

    @property
    @abstractmethod
    def service_name(self) -> str:
        """Service name used in logs."""

    @abstractmethod
    async def _initialize(self) -> None:
        """Build service components after config and connections are ready."""

    @abstractmethod
    async def _run(self) -> None:
        """Main service loop; return once shutdown_event is set."""

    async def _cleanup(self) -> None:
        """Service-specific cleanup."""

    def request_shutdown(self) -> None:
        """Ask the service to stop."""
        if not self.shutdown_event.is_set():
            self.logger.info("shutdown_requested", service=self.service_name)
            self.shutdown_event.set()

    def _uses_redis(self) -> bool:
        if self.config is None:
            raise RuntimeError("Service configuration not loaded")
        return (
            self.config.storage.backend == StorageBackend.REDIS
            or self.config.storage.container_source == ContainerSourceType.REDIS
        )

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.request_shutdown)
            except (NotImplementedError, RuntimeError):
                # Windows event loops and non-main threads
                self.logger.debug("signal_handler_unavailable", signal=sig.name)

    async def run(self) -> None:
        """
        Run the service until shutdown.

        Raises:
            ConfigLoadError: If configuration is invalid.
            RedisConnectionException: If Redis is required and unreachable.
        """
        self.config = load_config(self.config_path)
        setup_logging(self.config.logging.level.value, self.config.logging.format)

        self.logger.info(
            "service_starting",
            service=self.service_name,
            config_path=str(self.config_path),
            storage_backend=self.config.storage.backend.value,
            container_source=self.config.storage.container_source.value,
        )

        self._install_signal_handlers()

        try:
            if self._uses_redis():
                self.redis_client = create_redis_client(
                    self.config.redis,
                    key_prefix=self.config.storage.key_prefix,
                )
                await self.redis_client.connect()

            await self._initialize()
            self.logger.info("service_started", service=self.service_name)

            await self._run()

        finally:
            try:
                await self._cleanup()
            finally:
                if self.redis_client is not None:
                    await self.redis_client.disconnect()
                self.logger.info("service_stopped", service=self.service_name)


__all__ = [
    "setup_logging",
    "ServiceRunner",
]
