from __future__ import annotations

from pathlib import PurePosixPath
from typing import Protocol

from google.cloud import storage

from ingestion_gateway.exception import StorageWriteError
from ingestion_gateway.logger import get_logger

logger = get_logger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"


class ObjectStore(Protocol):
    def upload(self, bucket: str, key: str, data: bytes, content_type: str) -> None:
        ...


def upload_basename(filename: str) -> str:
    """
    Last path segment of a client-supplied file name, split on ``/`` or ``\\``.

    Returns an empty string when no usable segment remains (``""``, ``"dir/"``, ``".."``).
    """
    name = PurePosixPath(filename.replace("\\", "/")).name
    return "" if name == ".." else name


def build_storage_key(digest: str, filename: str, *, prefix: str = "uploads") -> str:
    """Object name for an upload: ``<prefix>/<digest>/<filename>``."""
    return f"{prefix}/{digest}/{filename}"


class GcsObjectStore:
    """Writes uploads to Cloud Storage, one attempt per call."""

    def __init__(self, client: storage.Client, *, timeout: float = 60.0) -> None:
        self._client = client
        self._timeout = timeout

    def upload(self, bucket: str, key: str, data: bytes, content_type: str) -> None:
        """
        Store ``data`` at ``key``, replacing any existing object.

        The object is only committed when the writer closes, so a failed close
        is reported as a failed upload even when the write itself succeeded.
        """
        blob = self._client.bucket(bucket).blob(key)
        detail = {"bucket": bucket, "object_key": key}

        try:
            writer = blob.open(
                "wb",
                ignore_flush=True,
                content_type=content_type or DEFAULT_CONTENT_TYPE,
                timeout=self._timeout,
                retry=None,
            )
        except Exception as exc:  # noqa: BLE001 - transport and API errors alike
            logger.exception("Failed to open Cloud Storage writer.", extra=detail)
            raise StorageWriteError("Failed to upload to GCS", detail=detail) from exc

        try:
            writer.write(data)
        except Exception as exc:  # noqa: BLE001 - transport and API errors alike
            logger.exception("Failed to write object to Cloud Storage.", extra=detail)
            self._abandon(writer, detail)
            raise StorageWriteError("Failed to upload to GCS", detail=detail) from exc

        try:
            writer.close()
        except Exception as exc:  # noqa: BLE001 - the object was not committed
            logger.exception("Failed to commit object to Cloud Storage.", extra=detail)
            raise StorageWriteError("Failed to close GCS writer", detail=detail) from exc

        logger.info(
            "Upload committed to Cloud Storage.",
            extra={**detail, "size_bytes": len(data)},
        )

    @staticmethod
    def _abandon(writer, detail: dict) -> None:
        """Cancel the resumable session so a partial upload is never committed."""
        try:
            writer.terminate()
        except Exception:  # noqa: BLE001 - the write error is the one reported
            logger.warning(
                "Failed to cancel Cloud Storage upload session.", extra=detail, exc_info=True
            )
