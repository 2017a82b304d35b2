"""
Abstract interfaces for the monitoring engine.

The engine depends on two external collaborators, both defined here:
an AlertStore for reading and writing alert records, and a ContainerSource
that supplies container snapshots each pass.

Modules:
    alert_store: AlertStore ABC and store error hierarchy
    container_source: ContainerSource ABC
"""

from fillwatch.interfaces.alert_store import (
    AlertNotFoundError,
    AlertStore,
    AlertStoreError,
    AlreadyResolvedError,
    DuplicateKeyError,
    ImmutableFieldError,
    StoreUnavailableError,
    apply_alert_update,
)
from fillwatch.interfaces.container_source import ContainerSource

__all__: list[str] = [
    "AlertStore",
    "AlertStoreError",
    "DuplicateKeyError",
    "AlertNotFoundError",
    "AlreadyResolvedError",
    "ImmutableFieldError",
    "StoreUnavailableError",
    "apply_alert_update",
    "ContainerSource",
]
