"""
Configuration loader for YAML-based application configuration.

This module provides utilities to load and validate configuration from YAML
files. All configuration is validated using Pydantic models to ensure type
safety and catch configuration errors early.

Configuration files expected:
    - config/monitoring.yaml: Monitoring policy, storage, logging, API (required)
    - config/containers.yaml: Statically configured containers (optional)

Environment variables override:
    - REDIS_URL: Redis connection URL
    - LOG_LEVEL: Application log level
    - STORAGE_BACKEND: Alert store backend (redis or memory)

Example:
    >>> from fillwatch.config.loader import load_config
    >>> config = load_config("config")
    >>> config.monitoring.ack_suppression_seconds
    300.0
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import ValidationError

from fillwatch.config.models import (
    ApiConfig,
    AppConfig,
    ContainerConfig,
    LoggingConfig,
    LogLevel,
    MonitoringSettings,
    RedisConnectionConfig,
    StorageBackend,
    StorageConfig,
)

MONITORING_FILE = "monitoring.yaml"
CONTAINERS_FILE = "containers.yaml"


class ConfigLoadError(Exception):
    """
    Raised when configuration loading fails.

    Attributes:
        message: Error message describing what went wrong.
        file_path: Path to the file that caused the error, if applicable.
        cause: Original exception that caused the error, if any.
    """

    def __init__(
        self,
        message: str,
        file_path: Optional[Path] = None,
        cause: Optional[Exception] = None,
    ):
        self.message = message
        self.file_path = file_path
        self.cause = cause
        super().__init__(message)


class ConfigLoader:
    """
    Loads and validates application configuration from YAML files.

    Expects the following directory structure:
        config/
        ├── monitoring.yaml   - Monitoring policy and service settings
        └── containers.yaml   - Containers to monitor (optional)

    Example:
        >>> loader = ConfigLoader("config")
        >>> config = loader.load()
        >>> [c.id for c in config.containers]
        ['bin-A', 'bin-B']
    """

    def __init__(self, config_dir: Path | str = "config"):
        """
        Initialize config loader.

        Args:
            config_dir: Path to configuration directory (default: 'config').

        Raises:
            ConfigLoadError: If config directory does not exist.
        """
        self.config_dir = Path(config_dir)
        if not self.config_dir.exists():
            raise ConfigLoadError(
                f"Configuration directory not found: {self.config_dir}",
                file_path=self.config_dir,
            )
        if not self.config_dir.is_dir():
            raise ConfigLoadError(
                f"Configuration path is not a directory: {self.config_dir}",
                file_path=self.config_dir,
            )

    def _load_yaml(self, filename: str, required: bool = True) -> Dict[str, Any]:
        """
        Load a YAML file from the config directory.

        Args:
            filename: Name of YAML file (e.g., 'monitoring.yaml').
            required: Whether a missing file is an error.

        Returns:
            Dict containing parsed YAML content (empty for a missing optional file).

        Raises:
            ConfigLoadError: If file not found, empty, or invalid YAML.
        """
        file_path = self.config_dir / filename
        if not file_path.exists():
            if not required:
                return {}
            raise ConfigLoadError(
                f"Configuration file not found: {file_path}",
                file_path=file_path,
            )

        try:
            with open(file_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigLoadError(
                f"Invalid YAML syntax in {file_path}: {e}",
                file_path=file_path,
                cause=e,
            ) from e
        except OSError as e:
            raise ConfigLoadError(
                f"Error reading {file_path}: {e}",
                file_path=file_path,
                cause=e,
            ) from e

        if data is None:
            if not required:
                return {}
            raise ConfigLoadError(
                f"Configuration file is empty: {file_path}",
                file_path=file_path,
            )
        if not isinstance(data, dict):
            raise ConfigLoadError(
                f"Configuration file must contain a mapping: {file_path}",
                file_path=file_path,
            )
        return data

    def _load_monitoring(self) -> Dict[str, Any]:
        """
        Load monitoring.yaml into its validated sections.

        Returns:
            Dict with monitoring, storage, logging and api sections.

        Raises:
            ConfigLoadError: If validation fails.
        """
        data = self._load_yaml(MONITORING_FILE)

        try:
            return {
                "monitoring": MonitoringSettings(**(data.get("monitoring") or {})),
                "storage": StorageConfig(**(data.get("storage") or {})),
                "logging": LoggingConfig(**(data.get("logging") or {})),
                "api": ApiConfig(**(data.get("api") or {})),
                "redis": data.get("redis") or {},
            }
        except ValidationError as e:
            raise ConfigLoadError(
                f"Invalid monitoring configuration: {e}",
                file_path=self.config_dir / MONITORING_FILE,
                cause=e,
            ) from e

    def _load_containers(self) -> List[ContainerConfig]:
        """
        Load container configurations from containers.yaml.

        Returns:
            List of ContainerConfig (empty if the file is absent).

        Raises:
            ConfigLoadError: If validation fails.
        """
        data = self._load_yaml(CONTAINERS_FILE, required=False)
        containers: List[ContainerConfig] = []

        try:
            for container_data in data.get("containers", []) or []:
                containers.append(ContainerConfig(**container_data))
        except (ValidationError, TypeError) as e:
            raise ConfigLoadError(
                f"Invalid container configuration: {e}",
                file_path=self.config_dir / CONTAINERS_FILE,
                cause=e,
            ) from e

        return containers

    def _load_redis_connection(self, file_settings: Dict[str, Any]) -> RedisConnectionConfig:
        """
        Build the Redis connection configuration.

        Environment variables:
            - REDIS_URL: Redis connection URL (overrides monitoring.yaml)

        Returns:
            RedisConnectionConfig object.
        """
        settings = dict(file_settings)
        redis_url = os.getenv("REDIS_URL")
        if redis_url:
            settings["url"] = redis_url
        return RedisConnectionConfig(**settings)

    def _apply_env_overrides(
        self,
        storage: StorageConfig,
        logging_config: LoggingConfig,
    ) -> tuple[StorageConfig, LoggingConfig]:
        """
        Apply STORAGE_BACKEND and LOG_LEVEL overrides.

        Unknown values are ignored and the file setting is kept.
        """
        backend_str = os.getenv("STORAGE_BACKEND")
        if backend_str:
            try:
                storage = storage.model_copy(
                    update={"backend": StorageBackend(backend_str.lower())}
                )
            except ValueError:
                pass

        level_str = os.getenv("LOG_LEVEL")
        if level_str:
            try:
                logging_config = logging_config.model_copy(
                    update={"level": LogLevel(level_str.upper())}
                )
            except ValueError:
                pass

        return storage, logging_config

    def load(self) -> AppConfig:
        """
        Load and validate all configuration files.

        Returns:
            AppConfig: Validated application configuration.

        Raises:
            ConfigLoadError: If any configuration is invalid or missing.

        Example:
            >>> loader = ConfigLoader("config")
            >>> config = loader.load()
        """
        try:
            sections = self._load_monitoring()
            containers = self._load_containers()
            redis = self._load_redis_connection(sections["redis"])
            storage, logging_config = self._apply_env_overrides(
                sections["storage"],
                sections["logging"],
            )

            return AppConfig(
                monitoring=sections["monitoring"],
                storage=storage,
                redis=redis,
                logging=logging_config,
                api=sections["api"],
                containers=containers,
            )

        except ConfigLoadError:
            raise
        except ValidationError as e:
            raise ConfigLoadError(
                f"Configuration validation failed: {e}",
                cause=e,
            ) from e


def load_config(config_dir: Path | str = "config") -> AppConfig:
    """
    Convenience function to load application configuration.

    Args:
        config_dir: Path to configuration directory (default: 'config').

    Returns:
        AppConfig: Validated application configuration.

    Raises:
        ConfigLoadError: If configuration loading fails.
    """
    loader = ConfigLoader(config_dir)
    return loader.load()
