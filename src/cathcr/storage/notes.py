"""Note repository for MongoDB storage.

Every operation is scoped to a single owner.
"""

import logging
from datetime import datetime
from typing import Any

from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError

logger = logging.getLogger(__name__)


class MongoNoteRepository:
    """Repository for note storage operations."""

    def __init__(self, collection: Collection[dict[str, Any]]) -> None:
        """Initialize repository with MongoDB collection.

        Args:
            collection: MongoDB collection for notes.
        """
        self._collection = collection
        self._ensure_indexes()

    def _ensure_indexes(self) -> None:
        """Create indexes for owner-scoped queries and create dedup."""
        self._collection.create_index([("owner_id", ASCENDING), ("updated_at", DESCENDING)])
        self._collection.create_index(
            [("owner_id", ASCENDING), ("idempotency_key", ASCENDING)],
            unique=True,
        )

    def insert(self, owner_id: str, document: dict[str, Any]) -> dict[str, Any]:
        """Insert a note unless one with the same idempotency key exists.

        Args:
            owner_id: Owner the note belongs to.
            document: Full note document including ``idempotency_key``.

        Returns:
            The stored document, which is the earlier one on a repeated key.
        """
        key = document["idempotency_key"]
        try:
            self._collection.insert_one(document)
        except DuplicateKeyError:
            stored = self._collection.find_one({"owner_id": owner_id, "idempotency_key": key})
            if stored is None:
                raise
            logger.info("Create with key %s already stored as %s", key, stored["_id"])
            return stored
        return document

    def update(
        self,
        owner_id: str,
        note_id: str,
        fields: dict[str, Any],
        updated_at: datetime,
    ) -> dict[str, Any] | None:
        """Set fields on one note.

        Returns:
            The updated document, or None if the owner has no such note.
        """
        return self._collection.find_one_and_update(
            {"_id": note_id, "owner_id": owner_id},
            {"$set": {**fields, "updated_at": updated_at}},
            return_document=ReturnDocument.AFTER,
        )

    def delete(self, owner_id: str, note_id: str) -> bool:
        """Delete one note.

        Returns:
            True if a document was removed.
        """
        result = self._collection.delete_one({"_id": note_id, "owner_id": owner_id})
        return result.deleted_count > 0

    def get(self, owner_id: str, note_id: str) -> dict[str, Any] | None:
        """Retrieve one note document."""
        return self._collection.find_one({"_id": note_id, "owner_id": owner_id})

    def list_for_owner(self, owner_id: str, limit: int = 0) -> list[dict[str, Any]]:
        """Get an owner's notes, most recently updated first.

        Args:
            owner_id: Owner to list.
            limit: Maximum number of results, 0 for all.
        """
        cursor = self._collection.find({"owner_id": owner_id}).sort("updated_at", DESCENDING)
        if limit:
            cursor = cursor.limit(limit)
        return list(cursor)


__all__ = ["MongoNoteRepository"]
