"""Delivers output documents to an Azure Event Hub."""

from __future__ import annotations

from azure.eventhub import EventData
from azure.eventhub.aio import EventHubProducerClient
from azure.eventhub.exceptions import EventHubError

from gtfs_rt_poller.logging import get_logger
from gtfs_rt_poller.services.gtfs_rt.errors import PollerError

logger = get_logger(__name__)


class PublishError(PollerError):
    """Raised when a document cannot be delivered to the event channel."""

    code = "publish_failed"


class EventHubPublisher:
    """Sends one event per poll cycle through a long-lived producer client.

    The AMQP link is opened on the first send and reused by later cycles
    until :meth:`close` is called.
    """

    def __init__(self, producer: EventHubProducerClient) -> None:
        self._producer = producer

    @classmethod
    def from_connection_string(
        cls, conn_str: str, event_hub_name: str = ""
    ) -> EventHubPublisher:
        """Build a publisher from a standard Event Hubs connection string.

        ``event_hub_name`` may be left empty when the connection string
        carries an ``EntityPath``.

        Raises:
            PublishError: If the client rejects the connection string.
        """
        try:
            producer = EventHubProducerClient.from_connection_string(
                conn_str, eventhub_name=event_hub_name or None
            )
        except ValueError as exc:
            msg = f"Invalid Event Hub connection string: {exc}"
            raise PublishError(msg) from exc
        return cls(producer)

    @property
    def event_hub_name(self) -> str:
        return self._producer.eventhub_name

    async def publish(self, body: str) -> None:
        """Send ``body`` as a single event.

        Raises:
            PublishError: If the event is too large or the hub refuses it.
        """
        try:
            await self._producer.send_batch([EventData(body)])
        except ValueError as exc:
            msg = f"Event rejected before sending: {exc}"
            raise PublishError(msg) from exc
        except EventHubError as exc:
            msg = (
                f"Event Hub delivery failed ({self.event_hub_name}): "
                f"{exc.__class__.__name__}: {exc}"
            )
            raise PublishError(msg) from exc

        logger.info(
            "Event published",
            event_hub=self.event_hub_name,
            size_bytes=len(body.encode("utf-8")),
        )

    async def close(self) -> None:
        await self._producer.close()
