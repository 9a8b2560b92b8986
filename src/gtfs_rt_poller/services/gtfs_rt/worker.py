"""GTFS-RT poll worker driven by a cron schedule."""

from __future__ import annotations

import asyncio
import enum
import uuid
from contextlib import suppress
from datetime import datetime, timezone
from typing import Any

import structlog

from gtfs_rt_poller.config import Settings, get_settings
from gtfs_rt_poller.logging import get_logger
from gtfs_rt_poller.services.gtfs_rt.decoder import FeedDecoder
from gtfs_rt_poller.services.gtfs_rt.fetcher import FeedFetcher
from gtfs_rt_poller.services.gtfs_rt.projector import project_feed
from gtfs_rt_poller.services.gtfs_rt.publisher import EventHubPublisher
from gtfs_rt_poller.services.gtfs_rt.schedule import CronSchedule, InvalidScheduleError
from gtfs_rt_poller.services.gtfs_rt.serializer import serialize_document

logger = get_logger(__name__)


class PollState(str, enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class PollWorker:
    """Runs fetch, decode, project and serialize once per schedule tick.

    Every cycle is independent: nothing from one cycle feeds the next, and a
    failure is logged and re-raised without retrying.

    Usage:
        worker = PollWorker(settings)
        await worker.start()   # launches background task
        await worker.stop()    # cancels background task

        # Or run a single poll cycle:
        document_text = await worker.run_once()
    """

    def __init__(
        self,
        settings: Settings,
        fetcher: FeedFetcher | None = None,
        decoder: FeedDecoder | None = None,
        publisher: EventHubPublisher | None = None,
    ) -> None:
        self._feed_url = settings.feed_url
        self._schedule = CronSchedule.parse(settings.schedule_cron)
        self._fetcher = fetcher or FeedFetcher(
            user_agent=settings.user_agent,
            timeout_sec=settings.fetch_timeout_sec,
        )
        self._decoder = decoder or FeedDecoder()
        if publisher is None and settings.publishing_enabled:
            publisher = EventHubPublisher.from_connection_string(
                settings.event_hub_connection, settings.event_hub_name
            )
        self._publisher = publisher

        self._lock = asyncio.Lock()
        self._task: asyncio.Task[None] | None = None
        self._running = False
        self._state = PollState.IDLE
        self._last_outcome: PollState | None = None
        self._poll_count = 0
        self._failure_count = 0
        self._last_poll_at: datetime | None = None
        self._last_error: str | None = None
        self._next_run_at: datetime | None = None

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def state(self) -> PollState:
        return self._state

    @property
    def poll_count(self) -> int:
        return self._poll_count

    @property
    def failure_count(self) -> int:
        return self._failure_count

    @property
    def last_poll_at(self) -> datetime | None:
        return self._last_poll_at

    @property
    def last_error(self) -> str | None:
        return self._last_error

    @property
    def schedule(self) -> CronSchedule:
        return self._schedule

    async def start(self) -> None:
        """Start the background polling loop."""
        if self._running:
            logger.warning("Worker already running, ignoring start request")
            return

        self._running = True
        self._task = asyncio.create_task(self._poll_loop())
        logger.info("GTFS-RT poller started", schedule=self._schedule.expression)

    async def stop(self) -> None:
        """Stop the background polling loop."""
        if not self._running:
            return

        self._running = False
        if self._task and not self._task.done():
            self._task.cancel()
            with suppress(asyncio.CancelledError):
                await self._task
        self._task = None
        self._next_run_at = None
        logger.info("GTFS-RT poller stopped")

    async def run_once(self, poll_id: str | None = None) -> str:
        """Execute a single poll cycle.

        Returns:
            The serialized output document.

        Raises:
            PollerError: Any fetch, decode, content, serialization or
                publish failure, unchanged.
        """
        poll_id = poll_id or str(uuid.uuid4())[:8]

        async with self._lock:
            with structlog.contextvars.bound_contextvars(poll_id=poll_id):
                return await self._run_cycle()

    async def _run_cycle(self) -> str:
        self._poll_count += 1
        self._last_poll_at = datetime.now(timezone.utc)
        self._state = PollState.RUNNING
        logger.debug("Starting poll cycle", poll_count=self._poll_count)

        try:
            data = await self._fetcher.fetch(self._feed_url)
            feed = self._decoder.decode(data)
            document = project_feed(feed)
            text = serialize_document(document)
            if self._publisher is not None:
                await self._publisher.publish(text)
        except Exception as exc:
            self._state = PollState.FAILED
            self._failure_count += 1
            self._last_error = str(exc)
            logger.error(str(exc), error_type=type(exc).__name__)
            raise
        else:
            self._state = PollState.SUCCEEDED
            self._last_error = None
            logger.info(
                "Poll cycle complete",
                entity_count=self._decoder.get_entity_count(feed),
                trip_id=document.get("tripId"),
                vehicle_id=document.get("vehicleId"),
            )
            return text
        finally:
            self._last_outcome = self._state
            self._state = PollState.IDLE

    async def close(self) -> None:
        """Release the event channel connection, if any."""
        if self._publisher is not None:
            await self._publisher.close()

    async def get_status(self) -> dict[str, Any]:
        """Get current worker status for health/meta endpoints."""
        return {
            "running": self._running,
            "state": self._state.value,
            "last_outcome": self._last_outcome.value if self._last_outcome else None,
            "poll_count": self._poll_count,
            "failure_count": self._failure_count,
            "last_poll_at": self._last_poll_at.isoformat() if self._last_poll_at else None,
            "last_error": self._last_error,
            "next_run_at": self._next_run_at.isoformat() if self._next_run_at else None,
            "schedule": self._schedule.expression,
            "publishing": self._publisher is not None,
        }

    async def _poll_loop(self) -> None:
        """Sleep until each cron fire time, then poll, until stopped."""
        while self._running:
            now = datetime.now(timezone.utc)
            try:
                self._next_run_at = self._schedule.next_after(now)
            except InvalidScheduleError as exc:
                logger.error(
                    "GTFS-RT poller halted",
                    error=str(exc),
                    schedule=self._schedule.expression,
                )
                self._running = False
                self._next_run_at = None
                break
            try:
                await asyncio.sleep((self._next_run_at - now).total_seconds())
            except asyncio.CancelledError:
                break

            # run_once already logged the failure; the next tick starts fresh
            with suppress(Exception):
                await self.run_once()


# Singleton instance for the app lifecycle
_worker_instance: PollWorker | None = None


def get_worker() -> PollWorker:
    """Get or create the singleton worker instance.

    Raises:
        PollerError: If the schedule or the event channel settings are invalid.
    """
    global _worker_instance
    if _worker_instance is None:
        _worker_instance = PollWorker(get_settings())
    return _worker_instance


async def shutdown_worker() -> None:
    """Stop the singleton and release its connections."""
    global _worker_instance
    worker, _worker_instance = _worker_instance, None
    if worker is None:
        return
    await worker.stop()
    await worker.close()


def reset_worker() -> None:
    """Reset the singleton (for testing)."""
    global _worker_instance
    _worker_instance = None
