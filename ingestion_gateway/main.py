from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI

from ingestion_gateway.api.router import api_router
from ingestion_gateway.core.config import Settings, get_settings
from ingestion_gateway.exception import register_exception_handlers
from ingestion_gateway.logger import configure_logging, get_logger
from ingestion_gateway.services.ingestion_service import IngestionService
from ingestion_gateway.services.remote_fetch import RemoteDocumentFetcher

logger = get_logger(__name__)


def create_application(
    settings: Optional[Settings] = None,
    *,
    ingestion_service: Optional[IngestionService] = None,
    remote_fetcher: Optional[RemoteDocumentFetcher] = None,
) -> FastAPI:
    """
    Build the gateway application.

    Clients that are not supplied are created once at startup and shared by
    all requests; a failure to create them aborts startup.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(application: FastAPI):
        if ingestion_service is None:
            application.state.ingestion_service = IngestionService.from_settings(settings)
        if remote_fetcher is None:
            application.state.remote_fetcher = RemoteDocumentFetcher(
                timeout=settings.remote_fetch.timeout_seconds,
                max_bytes=settings.remote_fetch.max_bytes,
            )
        logger.info("Ingestion gateway ready.", extra={"bucket": settings.gcp_bucket_name})
        yield

    application = FastAPI(title=settings.project_name, lifespan=lifespan)
    if ingestion_service is not None:
        application.state.ingestion_service = ingestion_service
    if remote_fetcher is not None:
        application.state.remote_fetcher = remote_fetcher

    register_exception_handlers(application)
    application.include_router(api_router, prefix=settings.api_prefix)

    @application.get("/actuator/health", tags=["health"])
    async def healthcheck():
        """Liveness/readiness probe."""
        return {"status": "UP", "service": settings.project_name}

    return application


def run() -> None:
    configure_logging()
    settings = get_settings()
    logger.info("Starting ingestion gateway.", extra={"port": settings.port})
    uvicorn.run(
        create_application(settings),
        host=settings.host,
        port=settings.port,
        log_config=None,
    )


if __name__ == "__main__":
    run()
