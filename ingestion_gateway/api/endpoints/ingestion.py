from __future__ import annotations

from typing import Optional
from uuid import uuid4

from fastapi import APIRouter, Depends, File, Header, UploadFile, status
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, ConfigDict, Field, HttpUrl

from ingestion_gateway.api.deps import get_ingestion_service, get_remote_fetcher
from ingestion_gateway.exception import FileReadError, ValidationError
from ingestion_gateway.logger import get_logger, log_context
from ingestion_gateway.services.ingestion_service import (
    IngestionService,
    IngestionStage,
    resolve_language,
)
from ingestion_gateway.services.object_store import upload_basename
from ingestion_gateway.services.remote_fetch import RemoteDocumentFetcher, safe_storage_name
from ingestion_gateway.services.token_claims import extract_user_id

router = APIRouter()
logger = get_logger(__name__)


class UrlIngestionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    pdf_url: HttpUrl = Field(..., alias="pdfUrl", description="Location of the PDF to ingest.")
    title: str = Field(..., min_length=1, description="Human readable document title.")


@router.post(
    "",
    status_code=status.HTTP_202_ACCEPTED,
    response_class=PlainTextResponse,
    summary="Store an uploaded file and queue it for processing",
)
def ingest_upload(
    file: Optional[UploadFile] = File(default=None),
    authorization: Optional[str] = Header(default=None),
    accept_language: Optional[str] = Header(default=None),
    service: IngestionService = Depends(get_ingestion_service),
):
    """
    Accept a multipart upload and return its SHA-256 digest.

    202 means the file is stored and the ingestion event is published;
    downstream processing happens asynchronously.
    """
    request_id = uuid4().hex

    with log_context(request_id=request_id, stage=IngestionStage.RECEIVING_FILE.value):
        # A part without a file name is a plain form value, not a file.
        filename = upload_basename(file.filename or "") if file is not None else ""
        if not filename:
            raise ValidationError()

        user_id = extract_user_id(authorization)
        language = resolve_language(accept_language)

        with log_context(uploaded_filename=filename):
            logger.info(
                "Received ingestion upload.",
                extra={"content_type": file.content_type, "user_id": user_id},
            )
            try:
                file.file.seek(0)
                content = file.file.read()
            except OSError as exc:
                raise FileReadError() from exc

            receipt = service.ingest(
                content,
                original_name=filename,
                content_type=file.content_type,
                user_id=user_id,
                language=language,
            )

        with log_context(stage=IngestionStage.RESPONDING.value):
            logger.info("Ingestion upload acknowledged.", extra={"file_hash": receipt.file_hash})
        return PlainTextResponse(receipt.file_hash, status_code=status.HTTP_202_ACCEPTED)


@router.post(
    "/url",
    status_code=status.HTTP_202_ACCEPTED,
    response_class=PlainTextResponse,
    summary="Download a remote PDF and queue it for processing",
)
def ingest_from_url(
    payload: UrlIngestionRequest,
    authorization: Optional[str] = Header(default=None),
    accept_language: Optional[str] = Header(default=None),
    service: IngestionService = Depends(get_ingestion_service),
    fetcher: RemoteDocumentFetcher = Depends(get_remote_fetcher),
):
    request_id = uuid4().hex
    url = str(payload.pdf_url)

    with log_context(request_id=request_id, stage=IngestionStage.RECEIVING_FILE.value):
        user_id = extract_user_id(authorization)
        logger.info("Downloading remote document.", extra={"url": url, "user_id": user_id})
        content = fetcher.fetch(url)

        receipt = service.ingest(
            content,
            original_name=f"{payload.title}.pdf",
            storage_name=safe_storage_name(payload.title),
            content_type="application/pdf",
            user_id=user_id,
            language=resolve_language(accept_language),
        )
        return PlainTextResponse(receipt.file_hash, status_code=status.HTTP_202_ACCEPTED)
