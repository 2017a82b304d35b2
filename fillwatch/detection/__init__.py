"""
Alert detection for the fill-level monitoring engine.

This module contains fill computation, severity classification, alert
lifecycle management and the run coordinator that guards monitoring passes.

Components:
    fill: fill_percent() for converting sensor distance to a fill level
    classifier: SeverityClassifier for severity bands
    lifecycle: LifecycleEvaluator for the per-subject alert state machine
    coordinator: RunGuard and MonitoringRunCoordinator for guarded passes

Example:
    >>> from fillwatch.detection import (
    ...     MonitoringRunCoordinator,
    ...     RunGuard,
    ...     create_lifecycle_evaluator,
    ... )
    >>>
    >>> evaluator = create_lifecycle_evaluator(store, settings)
    >>> coordinator = MonitoringRunCoordinator(
    ...     source=source,
    ...     evaluator=evaluator,
    ...     guard=RunGuard(cooldown_seconds=settings.run_cooldown_seconds),
    ... )
    >>> result = await coordinator.run_once()
"""

from fillwatch.detection.fill import fill_percent
from fillwatch.detection.classifier import (
    SeverityClassifier,
    classify,
    create_classifier,
    DEFAULT_CRITICAL_CEILING,
    DEFAULT_EARLY_WARNING_BAND,
    DEFAULT_CLEAR_HYSTERESIS,
)
from fillwatch.detection.lifecycle import (
    AlertIntegrityError,
    LifecycleEvaluator,
    create_lifecycle_evaluator,
    utcnow,
)
from fillwatch.detection.coordinator import MonitoringRunCoordinator, RunGuard

__all__ = [
    # Fill
    "fill_percent",
    # Classifier
    "SeverityClassifier",
    "classify",
    "create_classifier",
    "DEFAULT_CRITICAL_CEILING",
    "DEFAULT_EARLY_WARNING_BAND",
    "DEFAULT_CLEAR_HYSTERESIS",
    # Lifecycle
    "LifecycleEvaluator",
    "AlertIntegrityError",
    "create_lifecycle_evaluator",
    "utcnow",
    # Coordinator
    "RunGuard",
    "MonitoringRunCoordinator",
]
