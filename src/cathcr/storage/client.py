"""MongoDB storage client for Cathcr.

Provides connection management and repository access.
"""

import logging
import os
from typing import TYPE_CHECKING, Any

from pymongo import MongoClient
from pymongo.database import Database
from pymongo.errors import ConnectionFailure, PyMongoError, ServerSelectionTimeoutError

from .notes import MongoNoteRepository

if TYPE_CHECKING:
    from ..config import StorageConfig

logger = logging.getLogger(__name__)


def is_retryable_storage_error(error: BaseException) -> bool:
    """Decide whether a failed durable write may be attempted again.

    Connection loss, server selection timeouts and errors the driver
    labels as retryable are transient. Everything else (duplicate keys,
    validation, authorization) is not.
    """
    if isinstance(error, (ConnectionFailure, TimeoutError)):
        return True
    if isinstance(error, PyMongoError):
        return error.has_error_label("RetryableWriteError")
    return False


class MongoStorageClient:
    """Owns the MongoDB connection behind a note repository.

    The client can be handed a ready-made ``MongoClient`` (for example a
    mongomock client); it then never closes it.
    """

    def __init__(
        self,
        uri: str = "mongodb://localhost:27017",
        database_name: str = "cathcr",
        collection_name: str = "notes",
        max_pool_size: int = 10,
        connect_timeout_ms: int = 5000,
        server_selection_timeout_ms: int = 5000,
        client: MongoClient[dict[str, Any]] | None = None,
    ) -> None:
        """Initialize the storage client.

        Args:
            uri: MongoDB connection URI.
            database_name: Database holding the notes collection.
            collection_name: Notes collection name.
            max_pool_size: Maximum connection pool size.
            connect_timeout_ms: Socket connect timeout in milliseconds.
            server_selection_timeout_ms: Server selection timeout in milliseconds.
            client: Existing client to use instead of creating one.
        """
        self._uri = uri
        self._database_name = database_name
        self._collection_name = collection_name
        self._client_options = {
            "maxPoolSize": max_pool_size,
            "connectTimeoutMS": connect_timeout_ms,
            "serverSelectionTimeoutMS": server_selection_timeout_ms,
            "tz_aware": True,
        }
        self._client = client
        self._external_client = client is not None
        self._repository: MongoNoteRepository | None = None

    @classmethod
    def from_config(cls, config: "StorageConfig") -> "MongoStorageClient":
        """Create a client from configuration, honoring MONGODB_URI."""
        return cls(
            uri=os.environ.get("MONGODB_URI", "").strip() or config.uri,
            database_name=config.database,
            collection_name=config.collection,
            server_selection_timeout_ms=config.server_selection_timeout_ms,
        )

    def connect(self) -> MongoNoteRepository:
        """Open the connection and return the notes repository.

        Connecting again returns the same repository.

        Raises:
            ConnectionFailure: If the server cannot be reached.
        """
        if self._repository is not None:
            return self._repository

        if self._client is None:
            self._client = MongoClient(self._uri, **self._client_options)

        try:
            self._ping()
        except (ConnectionFailure, ServerSelectionTimeoutError) as e:
            logger.error("MongoDB at %s is unreachable: %s", self._database_name, e)
            self._drop_client()
            raise

        collection = self._client[self._database_name][self._collection_name]
        self._repository = MongoNoteRepository(collection)
        logger.info("Connected to %s.%s", self._database_name, self._collection_name)
        return self._repository

    def disconnect(self) -> None:
        """Release the connection. Safe to call when not connected."""
        if self._repository is None and self._client is None:
            return
        self._repository = None
        self._drop_client()
        logger.info("Disconnected from MongoDB")

    def is_connected(self) -> bool:
        """Whether the server still answers a ping."""
        if self._repository is None:
            return False
        try:
            self._ping()
        except PyMongoError:
            return False
        return True

    @property
    def notes(self) -> MongoNoteRepository:
        """The notes repository.

        Raises:
            RuntimeError: If connect() has not been called.
        """
        if self._repository is None:
            raise RuntimeError("Not connected to MongoDB. Call connect() first.")
        return self._repository

    def _ping(self) -> None:
        assert self._client is not None
        self._client.admin.command("ping")

    def _drop_client(self) -> None:
        if self._client is not None and not self._external_client:
            self._client.close()
            self._client = None

    def __enter__(self) -> MongoNoteRepository:
        return self.connect()

    def __exit__(self, *exc_info: object) -> None:
        self.disconnect()


__all__ = ["MongoStorageClient", "is_retryable_storage_error"]
