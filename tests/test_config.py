"""Tests for settings loading."""

import pytest
from pydantic import ValidationError

from gtfs_rt_poller.config import DEFAULT_USER_AGENT, Settings


def test_reads_host_env_names(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("VEHICLE_POSITIONS_ENDPOINT", "https://feeds.example.com/vp.pb")
    monkeypatch.setenv("SCHEDULE_CRON", "0 */5 * * * *")
    monkeypatch.setenv("EVENT_HUB_NAME", "vehicle-events")
    monkeypatch.setenv("GTFSRealtimeEventHubConnection", "Endpoint=sb://ns/")

    settings = Settings(_env_file=None)

    assert settings.feed_url == "https://feeds.example.com/vp.pb"
    assert settings.schedule_cron == "0 */5 * * * *"
    assert settings.event_hub_name == "vehicle-events"
    assert settings.event_hub_connection == "Endpoint=sb://ns/"
    assert settings.missing_required_env() == []
    assert settings.publishing_enabled


def test_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "FEED_ENDPOINT",
        "VEHICLE_POSITIONS_ENDPOINT",
        "TRIP_UPDATES_ENDPOINT",
        "GTFSRealtimeEventHubConnection",
        "EVENT_HUB_CONNECTION",
        "FETCH_TIMEOUT_SEC",
        "FEED_USER_AGENT",
    ):
        monkeypatch.delenv(name, raising=False)

    settings = Settings(_env_file=None)

    assert settings.user_agent == DEFAULT_USER_AGENT
    assert settings.fetch_timeout_sec is None
    assert not settings.publishing_enabled
    assert settings.missing_required_env() == ["FEED_ENDPOINT", "GTFSRealtimeEventHubConnection"]


def test_settings_are_immutable() -> None:
    settings = Settings(_env_file=None, feed_url="https://example.com/feed.pb")
    with pytest.raises(ValidationError):
        settings.feed_url = "https://other.example.com"
