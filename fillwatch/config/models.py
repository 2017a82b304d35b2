"""
Pydantic models for application configuration.

This module defines all configuration models that are validated when loading
YAML configuration files. The models ensure type safety and provide sensible
defaults for optional settings.

Configuration files:
    - config/monitoring.yaml: Monitoring policy, storage, logging and API settings
    - config/containers.yaml: Statically configured containers (optional)

Example:
    >>> from fillwatch.config.models import AppConfig
    >>> config = AppConfig()
    >>> config.monitoring.run_cooldown_seconds
    5.0
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from fillwatch.models.alerts import SubjectType
from fillwatch.models.containers import DEFAULT_FILL_THRESHOLD


# =============================================================================
# ENUMS
# =============================================================================


class StorageBackend(str, Enum):
    """Alert store backend."""

    REDIS = "redis"
    MEMORY = "memory"


class ContainerSourceType(str, Enum):
    """Where container snapshots are read from."""

    STATIC = "static"  # containers.yaml
    REDIS = "redis"  # container/reading hashes written by ingestion


class LogFormat(str, Enum):
    """Logging format options."""

    JSON = "json"
    TEXT = "text"


class LogLevel(str, Enum):
    """Logging level options."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


# =============================================================================
# MONITORING POLICY
# =============================================================================


class MonitoringSettings(BaseModel):
    """
    Monitoring policy settings.

    The poll interval and the acknowledgment suppression window are
    independent; neither is derived from the other.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    run_cooldown_seconds: float = Field(
        default=5.0,
        description="Minimum spacing between the starts of two monitoring passes",
        ge=0,
    )
    ack_suppression_seconds: float = Field(
        default=300.0,
        description="Window after acknowledgment during which reminders are suppressed",
        ge=0,
    )
    critical_ceiling: int = Field(
        default=95,
        description="Fill percentage at or above which severity is always critical",
        ge=1,
        le=100,
    )
    early_warning_band: int = Field(
        default=5,
        description="Width of the medium band below the configured threshold",
        ge=0,
        le=100,
    )
    clear_hysteresis: int = Field(
        default=10,
        description="Points below the threshold at which active alerts auto-resolve",
        ge=0,
        le=100,
    )
    default_fill_threshold: int = Field(
        default=DEFAULT_FILL_THRESHOLD,
        description="Fill threshold used when a container does not configure one",
        ge=0,
        le=100,
    )
    poll_interval_seconds: float = Field(
        default=300.0,
        description="Interval of the periodic monitoring timer",
        gt=0,
    )
    max_concurrency: int = Field(
        default=8,
        description="Maximum subjects evaluated concurrently within a pass",
        ge=1,
        le=256,
    )

    @model_validator(mode="after")
    def validate_bands(self) -> "MonitoringSettings":
        """Clearing must happen below the early-warning band."""
        if self.clear_hysteresis <= self.early_warning_band:
            raise ValueError(
                "clear_hysteresis must be greater than early_warning_band "
                f"({self.clear_hysteresis} <= {self.early_warning_band})"
            )
        return self


# =============================================================================
# CONTAINERS
# =============================================================================


class ContainerConfig(BaseModel):
    """Statically configured container."""

    model_config = {"frozen": True, "extra": "forbid"}

    id: str = Field(
        ...,
        description="Bin or compartment identifier",
        min_length=1,
    )
    name: str = Field(
        default="",
        description="Display name",
    )
    type: SubjectType = Field(
        default=SubjectType.BIN,
        description="bin or compartment",
    )
    parent_bin_id: Optional[str] = Field(
        default=None,
        description="Owning multi-compartment unit",
    )
    height: Optional[float] = Field(
        default=None,
        description="Physical height in centimetres",
        gt=0,
    )
    fill_threshold: Optional[int] = Field(
        default=None,
        description="Fill threshold in percent (defaults to monitoring setting)",
        ge=0,
        le=100,
    )
    location: Optional[str] = Field(
        default=None,
        description="Location label",
    )
    device_id: Optional[str] = Field(
        default=None,
        description="Sensor device identifier",
    )
    enabled: bool = Field(
        default=True,
        description="Whether the container is monitored",
    )


# =============================================================================
# STORAGE / LOGGING / API
# =============================================================================


class RedisConnectionConfig(BaseModel):
    """Redis connection configuration."""

    model_config = {"frozen": True, "extra": "forbid"}

    url: str = Field(
        default="redis://localhost:6379",
        description="Redis connection URL",
    )
    db: int = Field(
        default=0,
        description="Redis database number",
        ge=0,
    )
    max_connections: int = Field(
        default=10,
        description="Maximum connection pool size",
        ge=1,
    )
    socket_timeout: int = Field(
        default=5,
        description="Socket timeout in seconds",
        ge=1,
    )


class StorageConfig(BaseModel):
    """Storage configuration."""

    model_config = {"frozen": True, "extra": "forbid"}

    backend: StorageBackend = Field(
        default=StorageBackend.REDIS,
        description="Alert store backend",
    )
    container_source: ContainerSourceType = Field(
        default=ContainerSourceType.STATIC,
        description="Where container snapshots are read from",
    )
    key_prefix: str = Field(
        default="fillwatch",
        description="Prefix for all Redis keys",
        min_length=1,
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    model_config = {"frozen": True, "extra": "forbid"}

    format: LogFormat = Field(
        default=LogFormat.JSON,
        description="Log output format",
    )
    level: LogLevel = Field(
        default=LogLevel.INFO,
        description="Default log level",
    )


class ApiConfig(BaseModel):
    """Operator API configuration."""

    model_config = {"frozen": True, "extra": "forbid"}

    enabled: bool = Field(
        default=True,
        description="Serve the operator API from the monitor process",
    )
    host: str = Field(
        default="0.0.0.0",
        description="Host to bind to",
    )
    port: int = Field(
        default=8060,
        description="Port to listen on",
        ge=1,
        le=65535,
    )


# =============================================================================
# ROOT CONFIGURATION
# =============================================================================


class AppConfig(BaseModel):
    """
    Root application configuration.

    Aggregates all configuration sections into a single validated object.

    Example:
        >>> config = AppConfig(containers=[ContainerConfig(id="bin-A", height=100)])
        >>> config.get_container("bin-A").height
        100.0
    """

    model_config = {"frozen": True, "extra": "forbid"}

    monitoring: MonitoringSettings = Field(
        default_factory=MonitoringSettings,
        description="Monitoring policy",
    )
    storage: StorageConfig = Field(
        default_factory=StorageConfig,
        description="Storage settings",
    )
    redis: RedisConnectionConfig = Field(
        default_factory=RedisConnectionConfig,
        description="Redis connection config",
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig,
        description="Logging configuration",
    )
    api: ApiConfig = Field(
        default_factory=ApiConfig,
        description="Operator API configuration",
    )
    containers: List[ContainerConfig] = Field(
        default_factory=list,
        description="Statically configured containers",
    )

    @model_validator(mode="after")
    def validate_config(self) -> "AppConfig":
        """Validate cross-references in configuration."""
        seen = set()
        for container in self.containers:
            if container.id in seen:
                raise ValueError(f"Duplicate container id: {container.id}")
            seen.add(container.id)
            if container.type == SubjectType.COMPARTMENT and not container.parent_bin_id:
                raise ValueError(f"Compartment {container.id} requires parent_bin_id")
        return self

    def get_container(self, container_id: str) -> Optional[ContainerConfig]:
        """
        Get container configuration by ID.

        Args:
            container_id: Container ID (e.g., "bin-A")

        Returns:
            Optional[ContainerConfig]: Container config or None if not found.
        """
        for container in self.containers:
            if container.id == container_id:
                return container
        return None

    def get_enabled_containers(self) -> List[ContainerConfig]:
        """
        Get list of enabled containers.

        Returns:
            List[ContainerConfig]: Enabled container configurations.
        """
        return [c for c in self.containers if c.enabled]
