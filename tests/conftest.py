"""
Shared fixtures for the ingestion gateway test suite.

The gateway talks to Cloud Storage and Pub/Sub through two small interfaces
(``ObjectStore`` and ``EventPublisher``). Tests inject the in-memory fakes
below through ``create_application`` so that no Google client is ever built.
"""

from __future__ import annotations

import itertools
import os
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import pytest

os.environ.setdefault("GCP_BUCKET_NAME", "test-bucket")

from fastapi.testclient import TestClient  # noqa: E402

from ingestion_gateway.core.config import Settings  # noqa: E402
from ingestion_gateway.exception import PublishError, StorageWriteError  # noqa: E402
from ingestion_gateway.main import create_application  # noqa: E402
from ingestion_gateway.models.events import IngestionEvent  # noqa: E402
from ingestion_gateway.services.ingestion_service import IngestionService  # noqa: E402
from ingestion_gateway.services.remote_fetch import RemoteDocumentFetcher  # noqa: E402
from tests.helpers import TEST_BUCKET  # noqa: E402


@dataclass
class StoredObject:
    data: bytes
    content_type: str


@dataclass
class InMemoryObjectStore:
    """ObjectStore fake. ``fail_stage`` is ``None``, ``"write"`` or ``"close"``."""

    objects: Dict[Tuple[str, str], StoredObject] = field(default_factory=dict)
    calls: List[Tuple[str, str]] = field(default_factory=list)
    fail_stage: Optional[str] = None

    def upload(self, bucket: str, key: str, data: bytes, content_type: str) -> None:
        self.calls.append((bucket, key))
        if self.fail_stage == "write":
            raise StorageWriteError("Failed to upload to GCS")
        if self.fail_stage == "close":
            raise StorageWriteError("Failed to close GCS writer")
        self.objects[(bucket, key)] = StoredObject(data=data, content_type=content_type)


@dataclass
class RecordingPublisher:
    """EventPublisher fake that records published events."""

    events: List[IngestionEvent] = field(default_factory=list)
    attempts: int = 0
    fail: bool = False
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def publish(self, event: IngestionEvent) -> None:
        with self._lock:
            self.attempts += 1
            if self.fail:
                raise PublishError()
            self.events.append(event)


@pytest.fixture
def settings() -> Settings:
    return Settings(gcp_bucket_name=TEST_BUCKET)


@pytest.fixture
def object_store() -> InMemoryObjectStore:
    return InMemoryObjectStore()


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def clock():
    """Strictly increasing epoch-millisecond clock."""
    counter = itertools.count(1_700_000_000_000)
    lock = threading.Lock()

    def _now() -> int:
        with lock:
            return next(counter)

    return _now


@pytest.fixture
def ingestion_service(
    object_store: InMemoryObjectStore,
    publisher: RecordingPublisher,
    clock,
) -> IngestionService:
    return IngestionService(
        object_store=object_store,
        publisher=publisher,
        bucket_name=TEST_BUCKET,
        clock=clock,
    )


@pytest.fixture
def remote_fetcher() -> RemoteDocumentFetcher:
    return RemoteDocumentFetcher(timeout=5.0, max_bytes=1024)


@pytest.fixture
def client(
    settings: Settings,
    ingestion_service: IngestionService,
    remote_fetcher: RemoteDocumentFetcher,
) -> TestClient:
    app = create_application(
        settings,
        ingestion_service=ingestion_service,
        remote_fetcher=remote_fetcher,
    )
    return TestClient(app)
