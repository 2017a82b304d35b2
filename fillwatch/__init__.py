"""
Fill-level alert lifecycle engine.

A monitoring engine that watches sensor-backed waste containers, classifies
their fill level against operator thresholds, and manages the resulting
alerts: creation, escalation, deduplication, acknowledgment-aware
reminders and auto-resolution.

This package provides:
- Data models for container snapshots, alerts and monitoring results
- Abstract interfaces for the alert store and container source
- The detection pipeline (fill calculator, classifier, lifecycle evaluator)
- A run coordinator guarding concurrent monitoring passes
- Redis and in-memory storage backends
- A FastAPI operator surface and a long-running monitor service
"""

__version__ = "0.1.0"
