"""Pytest configuration and fixtures."""

from collections.abc import AsyncGenerator, Generator

import pytest
from httpx import ASGITransport, AsyncClient

from gtfs_rt_poller.config import Settings
from gtfs_rt_poller.main import app
from gtfs_rt_poller.services.gtfs_rt.worker import reset_worker


@pytest.fixture
def settings() -> Settings:
    """Explicit settings, independent of the process environment."""
    return Settings(
        _env_file=None,
        feed_url="https://feeds.example.com/vehiclepositions.pb",
        schedule_cron="*/30 * * * * *",
        event_hub_name="",
        event_hub_connection="",
    )


@pytest.fixture(autouse=True)
def _reset_singleton() -> Generator[None, None, None]:
    """Reset the worker singleton between tests."""
    reset_worker()
    yield
    reset_worker()


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for testing."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
