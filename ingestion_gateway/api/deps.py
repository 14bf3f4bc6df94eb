from __future__ import annotations

from fastapi import Request

from ingestion_gateway.services.ingestion_service import IngestionService
from ingestion_gateway.services.remote_fetch import RemoteDocumentFetcher


def get_ingestion_service(request: Request) -> IngestionService:
    return request.app.state.ingestion_service


def get_remote_fetcher(request: Request) -> RemoteDocumentFetcher:
    return request.app.state.remote_fetcher
