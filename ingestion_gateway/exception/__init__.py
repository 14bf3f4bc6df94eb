"""Gateway exception helpers."""

from .custom_exception import (
    AppException,
    ClientException,
    FileReadError,
    PublishError,
    RemoteFetchError,
    ServerException,
    StorageWriteError,
    UploadTooLargeError,
    ValidationError,
    register_exception_handlers,
)

__all__ = [
    "AppException",
    "ClientException",
    "FileReadError",
    "PublishError",
    "RemoteFetchError",
    "ServerException",
    "StorageWriteError",
    "UploadTooLargeError",
    "ValidationError",
    "register_exception_handlers",
]
