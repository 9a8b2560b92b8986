"""GTFS-Realtime poll pipeline: fetch, decode, project, publish."""

from gtfs_rt_poller.services.gtfs_rt.decoder import FeedDecodeError, FeedDecoder
from gtfs_rt_poller.services.gtfs_rt.errors import PollerError
from gtfs_rt_poller.services.gtfs_rt.fetcher import FeedFetcher, FeedFetchError
from gtfs_rt_poller.services.gtfs_rt.projector import (
    UnsupportedFeedContentError,
    project_feed,
    project_trip_update,
    project_vehicle_position,
    select_entity,
)
from gtfs_rt_poller.services.gtfs_rt.publisher import EventHubPublisher, PublishError
from gtfs_rt_poller.services.gtfs_rt.schedule import CronSchedule, InvalidScheduleError
from gtfs_rt_poller.services.gtfs_rt.serializer import (
    DocumentSerializationError,
    serialize_document,
)
from gtfs_rt_poller.services.gtfs_rt.worker import PollState, PollWorker

__all__ = [
    "CronSchedule",
    "DocumentSerializationError",
    "EventHubPublisher",
    "FeedDecodeError",
    "FeedDecoder",
    "FeedFetchError",
    "FeedFetcher",
    "InvalidScheduleError",
    "PollState",
    "PollWorker",
    "PollerError",
    "PublishError",
    "UnsupportedFeedContentError",
    "project_feed",
    "project_trip_update",
    "project_vehicle_position",
    "select_entity",
    "serialize_document",
]
