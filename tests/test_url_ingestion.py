"""Tests for POST /api/ingestion/url and the remote document fetcher."""

from __future__ import annotations

import hashlib

import httpx
import pytest
from fastapi.testclient import TestClient

from ingestion_gateway.exception import RemoteFetchError
from ingestion_gateway.main import create_application
from ingestion_gateway.services.remote_fetch import RemoteDocumentFetcher, safe_storage_name
from tests.helpers import TEST_BUCKET, make_token

PAPER_URL = "https://papers.example.org/attention.pdf"
PAPER_BYTES = b"%PDF-1.4 remote paper"
PAPER_DIGEST = hashlib.sha256(PAPER_BYTES).hexdigest()


def _handler(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/attention.pdf":
        return httpx.Response(200, content=PAPER_BYTES, headers={"content-type": "application/pdf"})
    if request.url.path == "/moved.pdf":
        return httpx.Response(302, headers={"location": PAPER_URL})
    if request.url.path == "/huge.pdf":
        return httpx.Response(200, content=b"x" * 4096)
    return httpx.Response(404)


@pytest.fixture
def fetcher() -> RemoteDocumentFetcher:
    return RemoteDocumentFetcher(timeout=5.0, max_bytes=1024, transport=httpx.MockTransport(_handler))


@pytest.fixture
def url_client(settings, ingestion_service, fetcher) -> TestClient:
    return TestClient(
        create_application(settings, ingestion_service=ingestion_service, remote_fetcher=fetcher)
    )


@pytest.mark.parametrize(
    "title, expected",
    [
        ("Attention Is All You Need", "Attention_Is_All_You_Need.pdf"),
        ("v1.2-final", "v1.2-final.pdf"),
        ("a/b\\c:d", "a_b_c_d.pdf"),
        ("Résumé", "R_sum_.pdf"),
    ],
)
def test_safe_storage_name(title, expected):
    assert safe_storage_name(title) == expected


class TestFetcher:
    def test_fetches_bytes(self, fetcher):
        assert fetcher.fetch(PAPER_URL) == PAPER_BYTES

    def test_follows_redirects(self, fetcher):
        assert fetcher.fetch("https://papers.example.org/moved.pdf") == PAPER_BYTES

    def test_http_error_raises_remote_fetch_error(self, fetcher):
        with pytest.raises(RemoteFetchError) as excinfo:
            fetcher.fetch("https://papers.example.org/missing.pdf")

        assert excinfo.value.status_code == 502

    def test_oversize_document_is_rejected(self, fetcher):
        with pytest.raises(RemoteFetchError) as excinfo:
            fetcher.fetch("https://papers.example.org/huge.pdf")

        assert excinfo.value.message == "Remote document exceeds maximum size"


class TestUrlEndpoint:
    def test_ingests_remote_document(self, url_client, object_store, publisher):
        token = make_token({"sub": "user-7"})

        response = url_client.post(
            "/api/ingestion/url",
            json={"pdfUrl": PAPER_URL, "title": "Attention Is All You Need"},
            headers={"Authorization": f"Bearer {token}"},
        )

        assert response.status_code == 202
        assert response.text == PAPER_DIGEST

        key = f"uploads/{PAPER_DIGEST}/Attention_Is_All_You_Need.pdf"
        stored = object_store.objects[(TEST_BUCKET, key)]
        assert stored.data == PAPER_BYTES
        assert stored.content_type == "application/pdf"

        event = publisher.events[0]
        assert event.s3_key == key
        assert event.original_name == "Attention Is All You Need.pdf"
        assert event.user_id == "user-7"
        assert event.preferred_language == "en"

    def test_download_failure_returns_502_without_side_effects(
        self, url_client, object_store, publisher
    ):
        response = url_client.post(
            "/api/ingestion/url",
            json={"pdfUrl": "https://papers.example.org/missing.pdf", "title": "Missing"},
        )

        assert response.status_code == 502
        assert response.json() == {"error": "Failed to download remote document"}
        assert object_store.calls == []
        assert publisher.attempts == 0

    @pytest.mark.parametrize(
        "body",
        [
            {"title": "No URL"},
            {"pdfUrl": "not a url", "title": "Bad URL"},
            {"pdfUrl": PAPER_URL, "title": ""},
        ],
    )
    def test_invalid_body_returns_400(self, url_client, body):
        response = url_client.post("/api/ingestion/url", json=body)

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid request"}
