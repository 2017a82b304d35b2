"""
Configuration management for the monitoring engine.

This module handles loading and validating configuration from YAML files.
All configuration values are validated using Pydantic models to ensure
type safety and catch configuration errors early.

Configuration is loaded from YAML files in the config/ directory:
    - monitoring.yaml: Monitoring policy, storage, logging and API settings
    - containers.yaml: Statically configured containers

Environment variables can override:
    - REDIS_URL: Redis connection URL
    - LOG_LEVEL: Application log level
    - STORAGE_BACKEND: Alert store backend

Example:
    >>> from fillwatch.config import load_config
    >>> config = load_config()
    >>> config.monitoring.clear_hysteresis
    10

Modules:
    loader: Configuration file loading utilities
    models: Pydantic models for configuration validation
"""

from fillwatch.config.loader import ConfigLoadError, ConfigLoader, load_config
from fillwatch.config.models import (
    # Enums
    ContainerSourceType,
    LogFormat,
    LogLevel,
    StorageBackend,
    # Sections
    ApiConfig,
    ContainerConfig,
    LoggingConfig,
    MonitoringSettings,
    RedisConnectionConfig,
    StorageConfig,
    # Root config
    AppConfig,
)

__all__: list[str] = [
    # Loader
    "load_config",
    "ConfigLoader",
    "ConfigLoadError",
    # Enums
    "ContainerSourceType",
    "LogFormat",
    "LogLevel",
    "StorageBackend",
    # Sections
    "ApiConfig",
    "ContainerConfig",
    "LoggingConfig",
    "MonitoringSettings",
    "RedisConnectionConfig",
    "StorageConfig",
    # Root config
    "AppConfig",
]
