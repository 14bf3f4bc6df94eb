from __future__ import annotations

import time
from enum import Enum
from typing import Callable, Optional

from google.cloud import pubsub_v1, storage
from google.oauth2 import service_account

from ingestion_gateway.core.config import Settings
from ingestion_gateway.exception import UploadTooLargeError
from ingestion_gateway.logger import get_logger, log_context
from ingestion_gateway.models.events import IngestionEvent, IngestionReceipt
from ingestion_gateway.services.event_publisher import EventPublisher, PubSubEventPublisher
from ingestion_gateway.services.hashing import compute_digest
from ingestion_gateway.services.object_store import (
    DEFAULT_CONTENT_TYPE,
    GcsObjectStore,
    ObjectStore,
    build_storage_key,
)

logger = get_logger(__name__)

DEFAULT_LANGUAGE = "en"


class IngestionStage(str, Enum):
    RECEIVING_FILE = "receiving_file"
    HASHING = "hashing"
    UPLOADING = "uploading"
    PUBLISHING = "publishing"
    RESPONDING = "responding"


def current_millis() -> int:
    return time.time_ns() // 1_000_000


def resolve_language(accept_language: Optional[str]) -> str:
    """Raw ``Accept-Language`` value, or ``"en"`` when absent or empty."""
    return accept_language or DEFAULT_LANGUAGE


class IngestionService:
    """
    Hash, store, then announce an uploaded document.

    The storage write and the event publish are independent effects. When the
    publish fails the stored object is left in place; the request still fails
    and the caller sees an error.
    """

    def __init__(
        self,
        *,
        object_store: ObjectStore,
        publisher: EventPublisher,
        bucket_name: str,
        upload_prefix: str = "uploads",
        max_upload_bytes: Optional[int] = None,
        clock: Callable[[], int] = current_millis,
    ) -> None:
        self.object_store = object_store
        self.publisher = publisher
        self.bucket_name = bucket_name
        self.upload_prefix = upload_prefix
        self.max_upload_bytes = max_upload_bytes
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings) -> "IngestionService":
        """Build the long-lived storage and broker clients. Any failure is fatal."""
        storage_options = (
            {"api_endpoint": settings.storage.api_endpoint} if settings.storage.api_endpoint else None
        )
        storage_client = storage.Client(
            project=settings.gcp_project_id,
            client_options=storage_options,
        )

        project_id = settings.gcp_project_id or storage_client.project
        if not project_id:
            raise RuntimeError(
                "Unable to resolve a GCP project for the ingestion topic; set GCP_PROJECT_ID."
            )

        credentials = None
        if settings.pubsub.credentials_file:
            credentials = service_account.Credentials.from_service_account_file(
                str(settings.pubsub.credentials_file)
            )
        publisher_options = (
            {"api_endpoint": settings.pubsub.api_endpoint} if settings.pubsub.api_endpoint else None
        )
        publisher_client = pubsub_v1.PublisherClient(
            publisher_options=pubsub_v1.types.PublisherOptions(enable_message_ordering=True),
            client_options=publisher_options,
            credentials=credentials,
        )

        logger.info(
            "Ingestion clients initialised.",
            extra={
                "bucket": settings.gcp_bucket_name,
                "project_id": project_id,
                "topic": settings.pubsub.topic_id,
            },
        )
        return cls(
            object_store=GcsObjectStore(storage_client, timeout=settings.storage.timeout_seconds),
            publisher=PubSubEventPublisher(
                publisher_client,
                project_id=project_id,
                topic_id=settings.pubsub.topic_id,
                timeout=settings.pubsub.publish_timeout_seconds,
            ),
            bucket_name=settings.gcp_bucket_name,
            upload_prefix=settings.storage.upload_prefix,
            max_upload_bytes=settings.upload.max_upload_bytes,
        )

    def ingest(
        self,
        content: bytes,
        *,
        original_name: str,
        content_type: Optional[str],
        user_id: str,
        language: str = DEFAULT_LANGUAGE,
        storage_name: Optional[str] = None,
    ) -> IngestionReceipt:
        """
        Run the hashing, upload and publish stages for one document.

        Args:
            content: Complete document bytes.
            original_name: Client-supplied name, recorded on the event as is.
            content_type: Declared MIME type of the upload.
            user_id: Display identity of the uploader.
            language: Preferred language for downstream processing.
            storage_name: Last segment of the storage key. Defaults to ``original_name``.
        """
        file_size = len(content)
        if self.max_upload_bytes is not None and file_size > self.max_upload_bytes:
            raise UploadTooLargeError(size=file_size, limit=self.max_upload_bytes)

        with log_context(stage=IngestionStage.HASHING.value):
            digest = compute_digest(content)

        storage_key = build_storage_key(
            digest, storage_name or original_name, prefix=self.upload_prefix
        )

        with log_context(file_hash=digest, storage_key=storage_key):
            with log_context(stage=IngestionStage.UPLOADING.value):
                self.object_store.upload(
                    self.bucket_name,
                    storage_key,
                    content,
                    content_type or DEFAULT_CONTENT_TYPE,
                )

            with log_context(stage=IngestionStage.PUBLISHING.value):
                event = IngestionEvent(
                    file_hash=digest,
                    s3_key=storage_key,
                    original_name=original_name,
                    user_id=user_id,
                    timestamp=self._clock(),
                    file_size=file_size,
                    preferred_language=language,
                )
                self.publisher.publish(event)

            logger.info(
                "Document accepted for ingestion.",
                extra={"size_bytes": file_size, "user_id": user_id},
            )

        return IngestionReceipt(file_hash=digest, storage_key=storage_key, file_size=file_size)
