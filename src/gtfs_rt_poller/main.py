"""FastAPI application entry point."""

from __future__ import annotations

import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from gtfs_rt_poller.config import get_settings
from gtfs_rt_poller.logging import get_logger, setup_logging
from gtfs_rt_poller.routers.poller import router as poller_router
from gtfs_rt_poller.services.gtfs_rt.errors import PollerError
from gtfs_rt_poller.services.gtfs_rt.worker import get_worker, shutdown_worker

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Start the scheduled poller when configured, and stop it on shutdown."""
    settings = get_settings()
    setup_logging(settings)
    logger.info(
        "Starting GTFS-RT poller",
        feed_url=settings.feed_url,
        schedule=settings.schedule_cron,
        publishing=settings.publishing_enabled,
        auto_start=settings.poller_auto_start,
    )

    if settings.poller_auto_start:
        try:
            await get_worker().start()
        except PollerError as exc:
            # The app stays up so /health can report the problem
            logger.error("GTFS-RT poller not started", error=str(exc), error_code=exc.code)

    yield

    await shutdown_worker()
    logger.info("GTFS-RT poller shut down")


async def _poller_check() -> tuple[dict[str, Any] | None, str | None]:
    """Worker status, or the configuration error that prevents building it."""
    try:
        worker = get_worker()
    except PollerError as exc:
        return None, str(exc)
    return await worker.get_status(), None


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Polls a GTFS-Realtime feed and forwards one flattened record per tick",
        lifespan=lifespan,
    )

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next: Any) -> Any:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:8]
        with structlog.contextvars.bound_contextvars(request_id=request_id):
            response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    app.include_router(poller_router)

    @app.get("/health", tags=["meta"])
    async def health_check() -> dict[str, Any]:
        """Configuration problems and poller counters."""
        settings = get_settings()
        issues: list[str] = []

        missing_env = settings.missing_required_env()
        if missing_env:
            issues.append("Missing required environment variables: " + ", ".join(missing_env))

        worker_status, config_error = await _poller_check()
        if config_error:
            issues.append(f"Invalid poller configuration: {config_error}")

        running = bool(worker_status and worker_status["running"])
        if settings.poller_auto_start and not running:
            issues.append("GTFS-RT poller is not running")

        if missing_env or config_error:
            status = "unhealthy"
        elif issues:
            status = "degraded"
        else:
            status = "healthy"

        worker_status = worker_status or {}
        return {
            "service": settings.app_name,
            "status": status,
            "version": settings.app_version,
            "environment": settings.environment,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "checks": {
                "poller": {
                    "running": running,
                    "schedule": settings.schedule_cron,
                    "pollCount": worker_status.get("poll_count", 0),
                    "failureCount": worker_status.get("failure_count", 0),
                    "lastPollAt": worker_status.get("last_poll_at"),
                    "lastOutcome": worker_status.get("last_outcome"),
                },
            },
            "issues": issues,
        }

    @app.exception_handler(PollerError)
    async def poller_error_handler(request: Request, exc: PollerError) -> JSONResponse:
        """Configuration errors raised while building the worker."""
        logger.error(
            "Poller unavailable", error=str(exc), error_code=exc.code, path=request.url.path
        )
        return JSONResponse(
            status_code=503,
            content={"error": exc.code, "message": str(exc)},
        )

    return app


app = create_app()
