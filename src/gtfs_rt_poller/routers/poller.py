"""Poll control and status endpoints."""

from __future__ import annotations

import json
import uuid
from typing import Any, Dict, Optional

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from gtfs_rt_poller.logging import get_logger
from gtfs_rt_poller.services.gtfs_rt.errors import PollerError
from gtfs_rt_poller.services.gtfs_rt.worker import get_worker

logger = get_logger(__name__)

router = APIRouter(prefix="/admin/poll", tags=["poller"])


# --- Response schemas ---


class WorkerStatusResponse(BaseModel):
    """Response for worker status."""

    running: bool
    state: str
    last_outcome: Optional[str] = None
    poll_count: int
    failure_count: int
    last_poll_at: Optional[str] = None
    last_error: Optional[str] = None
    next_run_at: Optional[str] = None
    schedule: str
    publishing: bool


class RunOnceResponse(BaseModel):
    """Response for run-once endpoint."""

    poll_id: str
    document: Dict[str, Any]


class PollErrorResponse(BaseModel):
    """Body returned when a manual poll cycle fails."""

    poll_id: str
    error: str
    message: str


# --- Endpoints ---


@router.post(
    "/run-once",
    response_model=RunOnceResponse,
    responses={502: {"model": PollErrorResponse}},
    summary="Trigger a single poll cycle",
)
async def run_once() -> Any:
    """Execute one poll cycle immediately and return the produced document."""
    worker = get_worker()
    poll_id = str(uuid.uuid4())[:8]
    try:
        text = await worker.run_once(poll_id=poll_id)
    except PollerError as exc:
        return JSONResponse(
            status_code=502,
            content={"poll_id": poll_id, "error": exc.code, "message": str(exc)},
        )
    return {"poll_id": poll_id, "document": json.loads(text)}


@router.post(
    "/start",
    response_model=WorkerStatusResponse,
    summary="Start the scheduled poller",
)
async def start_worker() -> dict[str, Any]:
    """Start the background polling loop."""
    worker = get_worker()
    await worker.start()
    return await worker.get_status()


@router.post(
    "/stop",
    response_model=WorkerStatusResponse,
    summary="Stop the scheduled poller",
)
async def stop_worker() -> dict[str, Any]:
    """Stop the background polling loop."""
    worker = get_worker()
    await worker.stop()
    return await worker.get_status()


@router.get(
    "/status",
    response_model=WorkerStatusResponse,
    summary="Get poller status",
)
async def worker_status() -> dict[str, Any]:
    """Get current worker status."""
    worker = get_worker()
    return await worker.get_status()
