"""
Gateway exception hierarchy and HTTP translation.

Every failure of the ingestion pipeline is raised as an ``AppException``
subclass. The exception carries the request's logging context at the moment
it was raised (request id, stage, content hash), logs itself once, and is
rendered by a global FastAPI handler as ``{"error": <message>}`` with the
status code of the failing stage.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ingestion_gateway.logger import get_context, get_logger


class AppException(Exception):
    """
    Base class for all gateway exceptions.

    Args:
        message: Client-facing error description, returned as ``error``.
        code: Stable machine-readable code, used in logs.
        status_code: HTTP status code that represents the failure.
        detail: Optional structured detail, logged but never returned.
        context: Diagnostic metadata merged over the current logging context.
        log_level: Logging level name used by ``log``.
    """

    def __init__(
        self,
        message: str,
        *,
        code: str = "app_error",
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail: Optional[Dict[str, Any]] = None,
        context: Optional[Dict[str, Any]] = None,
        log_level: str = "ERROR",
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.detail = detail
        self.context = {
            key: value
            for key, value in {**get_context(), **(context or {})}.items()
            if value is not None
        }
        self.log_level = log_level.upper()

    def to_dict(self) -> Dict[str, Any]:
        """Response body for this exception."""
        return {"error": self.message}

    def log(self, logger: Optional[logging.Logger] = None) -> "AppException":
        logger = logger or get_logger(__name__)
        level = getattr(logging, self.log_level, logging.ERROR)
        extra: Dict[str, Any] = {
            "error_code": self.code,
            "status_code": self.status_code,
            **self.context,
        }
        if self.detail is not None:
            extra["error_detail"] = self.detail
        exc_info = (type(self), self, self.__traceback__) if self.__cause__ is not None else None
        logger.log(level, self.message, extra=extra, exc_info=exc_info)
        return self

    def enrich(self, **context: Any) -> "AppException":
        """Add context entries, ignoring ``None`` values."""
        self.context.update({key: value for key, value in context.items() if value is not None})
        return self


class ClientException(AppException):
    """4xx errors caused by the request itself."""

    def __init__(
        self,
        message: str,
        *,
        code: str = "client_error",
        status_code: int = status.HTTP_400_BAD_REQUEST,
        log_level: str = "WARNING",
        **kwargs: Any,
    ) -> None:
        super().__init__(message, code=code, status_code=status_code, log_level=log_level, **kwargs)


class ServerException(AppException):
    """5xx errors caused by the gateway or one of its backing services."""

    def __init__(
        self,
        message: str,
        *,
        code: str = "server_error",
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        log_level: str = "ERROR",
        **kwargs: Any,
    ) -> None:
        super().__init__(message, code=code, status_code=status_code, log_level=log_level, **kwargs)


class ValidationError(ClientException):
    """Raised when the multipart ``file`` field is missing."""

    def __init__(self, message: str = "File is required", **kwargs: Any) -> None:
        super().__init__(message, code="file_required", **kwargs)


class UploadTooLargeError(ClientException):
    """Raised when an upload exceeds the configured ``max_upload_bytes``."""

    def __init__(self, *, size: int, limit: int, **kwargs: Any) -> None:
        super().__init__(
            "File exceeds maximum upload size",
            code="upload_too_large",
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail={"size": size, "limit": limit},
            **kwargs,
        )


class FileReadError(ServerException):
    """Raised when the uploaded file cannot be opened or read."""

    def __init__(self, message: str = "Failed to open file", **kwargs: Any) -> None:
        super().__init__(message, code="file_read_failed", **kwargs)


class StorageWriteError(ServerException):
    """Raised when the object store write or its final commit fails."""

    def __init__(self, message: str = "Failed to upload to GCS", **kwargs: Any) -> None:
        super().__init__(message, code="storage_write_failed", **kwargs)


class PublishError(ServerException):
    """Raised when the ingestion event could not be delivered to the broker."""

    def __init__(self, message: str = "Failed to publish event", **kwargs: Any) -> None:
        super().__init__(message, code="event_publish_failed", **kwargs)


class RemoteFetchError(ServerException):
    """Raised when a document referenced by URL cannot be downloaded."""

    def __init__(self, message: str = "Failed to download remote document", **kwargs: Any) -> None:
        super().__init__(
            message,
            code="remote_fetch_failed",
            status_code=status.HTTP_502_BAD_GATEWAY,
            **kwargs,
        )


def register_exception_handlers(app: FastAPI) -> None:
    """Render ``AppException`` and request validation failures as ``{"error": ...}``."""

    @app.exception_handler(AppException)
    async def _handle_app_exception(request: Request, exc: AppException):
        exc.enrich(path=str(request.url.path), method=request.method)
        exc.log()
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def _handle_validation_error(request: Request, exc: RequestValidationError):
        if any("file" in error.get("loc", ()) for error in exc.errors()):
            error: AppException = ValidationError()
        else:
            error = ClientException("Invalid request", code="invalid_request")
        error.enrich(path=str(request.url.path), method=request.method)
        error.log()
        return JSONResponse(status_code=error.status_code, content=error.to_dict())
