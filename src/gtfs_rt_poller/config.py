"""Application configuration via environment variables."""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/125.0.0.0 Safari/537.36"
)


class Settings(BaseSettings):
    """Process-wide settings, read once at startup."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    # Application
    app_name: str = "GTFS-RT Poller"
    app_version: str = "0.1.0"
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = False
    log_level: str = "INFO"

    # Feed source
    feed_url: str = Field(
        default="",
        validation_alias=AliasChoices(
            "feed_url",
            "FEED_ENDPOINT",
            "VEHICLE_POSITIONS_ENDPOINT",
            "TRIP_UPDATES_ENDPOINT",
        ),
    )
    user_agent: str = Field(
        default=DEFAULT_USER_AGENT,
        validation_alias=AliasChoices("user_agent", "FEED_USER_AGENT"),
    )
    fetch_timeout_sec: Optional[float] = Field(
        default=None,
        gt=0,
        validation_alias=AliasChoices("fetch_timeout_sec", "FETCH_TIMEOUT_SEC"),
    )

    # Schedule (NCRONTAB, seconds first)
    schedule_cron: str = Field(
        default="0 */1 * * * *",
        validation_alias=AliasChoices("schedule_cron", "SCHEDULE_CRON"),
    )
    poller_auto_start: bool = Field(
        default=False,
        validation_alias=AliasChoices("poller_auto_start", "POLLER_AUTO_START"),
    )

    # Output channel
    event_hub_name: str = Field(
        default="",
        validation_alias=AliasChoices("event_hub_name", "EVENT_HUB_NAME"),
    )
    event_hub_connection: str = Field(
        default="",
        validation_alias=AliasChoices(
            "event_hub_connection",
            "GTFSRealtimeEventHubConnection",
            "EVENT_HUB_CONNECTION",
        ),
    )

    def missing_required_env(self) -> list[str]:
        """Return required environment variables that are missing or empty."""
        missing: list[str] = []

        if not self.feed_url.strip():
            missing.append("FEED_ENDPOINT")
        if not self.schedule_cron.strip():
            missing.append("SCHEDULE_CRON")
        if not self.event_hub_connection.strip():
            missing.append("GTFSRealtimeEventHubConnection")

        return missing

    @property
    def publishing_enabled(self) -> bool:
        """Whether documents are forwarded to the event channel."""
        return bool(self.event_hub_connection.strip())


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
