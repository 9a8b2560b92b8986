"""GTFS-RT protobuf decode layer."""

from __future__ import annotations

from google.protobuf.message import DecodeError
from google.transit import gtfs_realtime_pb2

from gtfs_rt_poller.logging import get_logger
from gtfs_rt_poller.services.gtfs_rt.errors import PollerError

logger = get_logger(__name__)


class FeedDecodeError(PollerError):
    """Raised when the payload is not a valid GTFS-RT FeedMessage."""

    code = "decode_failed"


class FeedDecoder:
    """Decodes raw protobuf bytes into GTFS-RT FeedMessage objects."""

    @staticmethod
    def decode(data: bytes) -> gtfs_realtime_pb2.FeedMessage:
        """Decode protobuf bytes into a FeedMessage.

        The message must also be initialized: the GTFS-RT schema declares
        ``header`` as required, so an empty payload is rejected.

        Args:
            data: Raw protobuf bytes.

        Returns:
            Parsed FeedMessage.

        Raises:
            FeedDecodeError: If protobuf parsing fails or required fields
                are missing.
        """
        feed = gtfs_realtime_pb2.FeedMessage()
        try:
            feed.ParseFromString(data)
        except DecodeError as exc:
            msg = f"Failed to decode GTFS-RT feed: {exc}"
            raise FeedDecodeError(msg) from exc

        if not feed.IsInitialized():
            missing = ", ".join(feed.FindInitializationErrors())
            msg = f"Failed to decode GTFS-RT feed: missing required fields ({missing})"
            raise FeedDecodeError(msg)

        logger.info(
            "GTFS-RT feed decoded",
            entity_count=len(feed.entity),
            feed_timestamp=FeedDecoder.get_feed_timestamp(feed),
            gtfs_rt_version=feed.header.gtfs_realtime_version,
        )

        return feed

    @staticmethod
    def get_feed_timestamp(feed: gtfs_realtime_pb2.FeedMessage) -> int:
        """Extract the header timestamp from a FeedMessage.

        Returns:
            Unix timestamp (seconds), or 0 if not set.
        """
        return feed.header.timestamp if feed.header.timestamp else 0

    @staticmethod
    def get_entity_count(feed: gtfs_realtime_pb2.FeedMessage) -> int:
        """Get the number of entities in the feed."""
        return len(feed.entity)
