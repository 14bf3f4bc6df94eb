from __future__ import annotations

import re

import httpx

from ingestion_gateway.exception import RemoteFetchError
from ingestion_gateway.logger import get_logger

logger = get_logger(__name__)

_UNSAFE_NAME_CHARS = re.compile(r"[^a-zA-Z0-9.-]")


def safe_storage_name(title: str, *, extension: str = ".pdf") -> str:
    """Object-name-safe version of a document title."""
    return _UNSAFE_NAME_CHARS.sub("_", title) + extension


class RemoteDocumentFetcher:
    """Downloads a document into memory, bounded by size and time."""

    def __init__(
        self,
        *,
        timeout: float = 30.0,
        max_bytes: int = 50 * 1024 * 1024,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._timeout = timeout
        self._max_bytes = max_bytes
        self._transport = transport

    def fetch(self, url: str) -> bytes:
        detail = {"url": url}
        try:
            with httpx.Client(
                timeout=self._timeout,
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                with client.stream("GET", url) as response:
                    response.raise_for_status()
                    return self._read_bounded(response, detail)
        except httpx.HTTPError as exc:
            logger.warning("Remote document download failed: %s", exc, extra=detail)
            raise RemoteFetchError(detail=detail) from exc

    def _read_bounded(self, response: httpx.Response, detail: dict[str, str]) -> bytes:
        buffer = bytearray()
        for chunk in response.iter_bytes():
            buffer.extend(chunk)
            if len(buffer) > self._max_bytes:
                logger.warning(
                    "Remote document exceeds size limit.",
                    extra={**detail, "limit": self._max_bytes},
                )
                raise RemoteFetchError(
                    "Remote document exceeds maximum size",
                    detail={**detail, "limit": self._max_bytes},
                )
        return bytes(buffer)
