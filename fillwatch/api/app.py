"""
FastAPI application for the operator surface.

This module creates and configures the FastAPI application with:
- Router registration for monitoring, alert and health endpoints
- Exception handlers mapping store errors to HTTP status codes
- An AppState holding the engine components shared with the monitor loop

Endpoints:
    - POST /api/monitoring/run: "check now" trigger
    - GET /api/monitoring/status: run guard state
    - GET /api/alerts: active or historical alerts
    - POST /api/alerts/{alert_id}/acknowledge
    - POST /api/alerts/{alert_id}/resolve
    - GET /api/health

No UI is served.
"""

from datetime import datetime
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from fillwatch import __version__
from fillwatch.config.models import StorageBackend
from fillwatch.detection.coordinator import MonitoringRunCoordinator
from fillwatch.detection.lifecycle import LifecycleEvaluator, utcnow
from fillwatch.interfaces.alert_store import (
    AlertNotFoundError,
    AlertStore,
    AlreadyResolvedError,
    StoreUnavailableError,
)
from fillwatch.storage.redis_client import RedisClient

logger = structlog.get_logger(__name__)


class AppState:
    """
    Application state container for the engine components.

    The same coordinator instance must back both the periodic timer and the
    API so that every trigger shares one run guard.
    """

    def __init__(
        self,
        coordinator: MonitoringRunCoordinator,
        store: AlertStore,
        storage_backend: StorageBackend = StorageBackend.MEMORY,
        redis_client: Optional[RedisClient] = None,
    ) -> None:
        self.coordinator = coordinator
        self.store = store
        self.storage_backend = storage_backend
        self.redis_client = redis_client
        self.start_time: datetime = utcnow()

    @property
    def evaluator(self) -> LifecycleEvaluator:
        return self.coordinator.evaluator


def get_app_state(request: Request) -> AppState:
    """FastAPI dependency returning the AppState of the running app."""
    return request.app.state.fillwatch


def create_app(state: AppState) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        state: Engine components served by the API.

    Returns:
        FastAPI: Configured FastAPI application instance.

    Example:
        >>> app = create_app(state)
        >>> import uvicorn
        >>> uvicorn.run(app, host="0.0.0.0", port=8060)
    """
    app = FastAPI(
        title="Fillwatch Operator API",
        description="Trigger monitoring passes and manage fill-level alerts",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.fillwatch = state

    @app.exception_handler(AlertNotFoundError)
    async def handle_not_found(request: Request, exc: AlertNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(AlreadyResolvedError)
    async def handle_already_resolved(
        request: Request, exc: AlreadyResolvedError
    ) -> JSONResponse:
        return JSONResponse(status_code=409, content={"detail": str(exc)})

    @app.exception_handler(StoreUnavailableError)
    async def handle_store_unavailable(
        request: Request, exc: StoreUnavailableError
    ) -> JSONResponse:
        logger.error("api_store_unavailable", path=request.url.path, error=str(exc))
        return JSONResponse(status_code=503, content={"detail": str(exc)})

    # Register API routers
    from fillwatch.api.alerts import router as alerts_router
    from fillwatch.api.health import router as health_router
    from fillwatch.api.monitoring import router as monitoring_router

    app.include_router(monitoring_router, prefix="/api", tags=["Monitoring"])
    app.include_router(alerts_router, prefix="/api", tags=["Alerts"])
    app.include_router(health_router, prefix="/api", tags=["Health"])

    logger.info("fastapi_app_created")

    return app
