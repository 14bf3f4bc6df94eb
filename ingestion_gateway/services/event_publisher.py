from __future__ import annotations

from typing import Protocol

from google.cloud import pubsub_v1

from ingestion_gateway.exception import PublishError
from ingestion_gateway.logger import get_logger
from ingestion_gateway.models.events import IngestionEvent

logger = get_logger(__name__)

INGESTION_TOPIC = "document.ingestion"


class EventPublisher(Protocol):
    def publish(self, event: IngestionEvent) -> None:
        ...


class PubSubEventPublisher:
    """
    Publishes ingestion events synchronously, keyed by content hash.

    The content hash is used as the Pub/Sub ordering key, so every event for
    the same bytes is delivered in publish order. There is no ordering across
    different contents. The client must be created with message ordering
    enabled for the key to take effect.
    """

    def __init__(
        self,
        client: pubsub_v1.PublisherClient,
        *,
        project_id: str,
        topic_id: str = INGESTION_TOPIC,
        timeout: float = 30.0,
    ) -> None:
        self._client = client
        self._topic_path = client.topic_path(project_id, topic_id)
        self._timeout = timeout

    def publish(self, event: IngestionEvent) -> None:
        try:
            future = self._client.publish(
                self._topic_path,
                event.to_json_bytes(),
                ordering_key=event.file_hash,
                file_hash=event.file_hash,
            )
            message_id = future.result(timeout=self._timeout)
        except Exception as exc:  # noqa: BLE001 - ensure surfaced as server errors
            logger.exception(
                "Failed to publish ingestion event.",
                extra={"topic": self._topic_path},
            )
            # A failed publish pauses its ordering key until resumed.
            self._client.resume_publish(self._topic_path, event.file_hash)
            raise PublishError(detail={"topic": self._topic_path}) from exc

        logger.info(
            "Ingestion event published.",
            extra={"topic": self._topic_path, "message_id": message_id},
        )
