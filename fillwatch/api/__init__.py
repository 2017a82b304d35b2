"""
Operator API.

Modules:
    app: create_app() and AppState
    monitoring: run trigger and status
    alerts: alert listing, acknowledgment and resolution
    health: service health
"""

from fillwatch.api.app import AppState, create_app, get_app_state

__all__ = [
    "AppState",
    "create_app",
    "get_app_state",
]
