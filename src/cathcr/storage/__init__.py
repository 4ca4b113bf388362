"""Durable note storage backed by MongoDB."""

from .client import MongoStorageClient, is_retryable_storage_error
from .notes import MongoNoteRepository

__all__ = [
    "MongoNoteRepository",
    "MongoStorageClient",
    "is_retryable_storage_error",
]
