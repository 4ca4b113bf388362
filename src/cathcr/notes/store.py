"""Owner-scoped note collection backed by a durable repository.

NoteStore is the single writer of the in-memory collection the UI reads.
Each mutation is written through to the repository first and applied
locally once the write is acknowledged, using the stored document.
"""

import asyncio
import logging
import uuid
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Protocol, TypeVar

from ..errors import NotFound, OwnershipViolation, PersistenceFailed, StoreClosed
from ..retry import RetryExhausted, retry_async
from .models import (
    Category,
    Note,
    NoteDraft,
    NotePatch,
    NoteSource,
    advance_timestamp,
    utc_now,
)

if TYPE_CHECKING:
    from datetime import datetime

    from ..config import StorageConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")

NotesListener = Callable[[list[Note]], None]


class NoteRepository(Protocol):
    """Protocol for owner-scoped durable note storage."""

    def insert(self, owner_id: str, document: dict[str, Any]) -> dict[str, Any]:
        """Insert (or return the existing note for) the document's idempotency key."""
        ...

    def update(
        self, owner_id: str, note_id: str, fields: dict[str, Any], updated_at: "datetime"
    ) -> dict[str, Any] | None:
        """Set fields, returning the updated document or None."""
        ...

    def delete(self, owner_id: str, note_id: str) -> bool:
        """Delete a note, returning whether it existed."""
        ...

    def list_for_owner(self, owner_id: str, limit: int = 0) -> list[dict[str, Any]]:
        """List an owner's notes, most recently updated first."""
        ...


def _default_retryable(error: BaseException) -> bool:
    from ..storage.client import is_retryable_storage_error

    return is_retryable_storage_error(error)


class NoteStore:
    """In-memory, newest-first note collection for one owner.

    Lifecycle: ``open()`` on session start, ``close()`` on sign-out.
    Listeners receive a snapshot of the collection after every change.
    """

    def __init__(
        self,
        repository: NoteRepository,
        owner_id: str,
        write_attempts: int = 3,
        backoff_seconds: float = 1.0,
        write_timeout: float | None = 10.0,
        is_retryable: Callable[[BaseException], bool] = _default_retryable,
    ) -> None:
        """Initialize note store.

        Args:
            repository: Durable storage
            owner_id: Authenticated owner every operation is scoped to
            write_attempts: Attempts per durable operation
            backoff_seconds: Linear backoff base between attempts
            write_timeout: Seconds allowed per attempt
            is_retryable: Classifies repository errors as transient
        """
        if not owner_id:
            raise ValueError("NoteStore requires an owner id")
        self._repository = repository
        self._owner_id = owner_id
        self._write_attempts = write_attempts
        self._backoff_seconds = backoff_seconds
        self._write_timeout = write_timeout
        self._is_retryable = is_retryable
        self._notes: list[Note] = []
        self._listeners: list[NotesListener] = []
        self._opened = False
        self._closed = False

    @classmethod
    def from_config(
        cls, config: "StorageConfig", repository: NoteRepository, owner_id: str
    ) -> "NoteStore":
        """Create a store using configured retry settings."""
        return cls(
            repository,
            owner_id,
            write_attempts=config.write_attempts,
            backoff_seconds=config.backoff_seconds,
            write_timeout=config.write_timeout_seconds,
        )

    @property
    def owner_id(self) -> str:
        return self._owner_id

    @property
    def notes(self) -> list[Note]:
        """Snapshot of the collection, newest first."""
        return list(self._notes)

    @property
    def is_open(self) -> bool:
        return self._opened and not self._closed

    def __len__(self) -> int:
        return len(self._notes)

    async def open(self) -> None:
        """Load the owner's notes. Calling it again is a no-op."""
        if self._closed:
            raise StoreClosed("NoteStore has been closed")
        if self._opened:
            return
        await self._load()
        self._opened = True
        logger.info("Opened note store for %s with %d notes", self._owner_id, len(self._notes))

    async def refresh(self) -> None:
        """Replace the collection with the repository's current contents."""
        self._require_open()
        await self._load()

    async def close(self) -> None:
        """Drop local state and reject further operations."""
        self._closed = True
        self._notes = []
        self._listeners.clear()
        logger.info("Closed note store for %s", self._owner_id)

    def subscribe(self, listener: NotesListener) -> Callable[[], None]:
        """Register a listener for collection changes.

        Returns:
            Callable that unsubscribes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def get(self, note_id: str) -> Note | None:
        """Look up a note in the collection."""
        for note in self._notes:
            if note.id == note_id:
                return note
        return None

    def filter(
        self,
        source: NoteSource | None = None,
        category: Category | None = None,
        tag: str | None = None,
        pinned: bool | None = None,
    ) -> list[Note]:
        """Notes matching every given criterion, newest first.

        Tag matching ignores case.
        """
        result = []
        for note in self._notes:
            if source is not None and note.source != source:
                continue
            if category is not None and note.category.main != category:
                continue
            if tag is not None and tag.lower() not in {t.lower() for t in note.tags}:
                continue
            if pinned is not None and note.pinned != pinned:
                continue
            result.append(note)
        return result

    async def create(self, draft: NoteDraft) -> Note:
        """Write a new note and add it to the head of the collection.

        Retrying with the same draft (same idempotency key) never
        produces a second note.

        Raises:
            ValueError: If the draft has no content
            PersistenceFailed: If the write failed; the draft is attached
            OwnershipViolation: If storage returned another owner's note
        """
        self._require_open()
        draft.validate()

        document = draft.to_document(self._owner_id, str(uuid.uuid4()), utc_now())
        stored = await self._write(
            lambda: self._repository.insert(self._owner_id, document),
            description="Create note",
            payload=draft,
        )
        note = self._to_note(stored, fallback=draft)

        index = self._index_of(note.id)
        if index is None:
            self._notes.insert(0, note)
        else:
            self._notes[index] = note
        logger.info("Created %s note %s: %s", note.source.value, note.id, note.title[:50])
        self._notify()
        return note

    async def update(self, note_id: str, patch: NotePatch | dict[str, Any]) -> Note:
        """Merge a patch into a note and write it through.

        Raises:
            NotFound: If the id is not in the collection
            ValueError: If the patch is invalid
            PersistenceFailed: If the write failed; the patch is attached
        """
        self._require_open()
        existing = self.get(note_id)
        if existing is None:
            raise NotFound(note_id)

        if isinstance(patch, dict):
            patch = NotePatch.from_dict(patch)
        fields = patch.to_fields()
        if not fields:
            return existing

        updated_at = advance_timestamp(existing.updated_at)
        stored = await self._write(
            lambda: self._repository.update(self._owner_id, note_id, fields, updated_at),
            description="Update note",
            payload=patch,
        )
        if stored is None:
            # Gone from durable storage; drop the stale local copy
            self._remove_local(note_id)
            raise NotFound(note_id)

        note = self._to_note(stored)
        index = self._index_of(note_id)
        if index is not None:
            self._notes[index] = note
            self._notify()
        logger.info("Updated note %s (%s)", note_id, ", ".join(sorted(fields)))
        return note

    async def toggle_pin(self, note_id: str) -> Note:
        """Flip the pinned flag of a note.

        Raises:
            NotFound: If the id is not in the collection
        """
        existing = self.get(note_id)
        if existing is None:
            raise NotFound(note_id)
        return await self.update(note_id, NotePatch(pinned=not existing.pinned))

    async def delete(self, note_id: str) -> None:
        """Delete a note. Deleting an absent id succeeds.

        Raises:
            PersistenceFailed: If the durable delete failed
        """
        self._require_open()
        existed = await self._write(
            lambda: self._repository.delete(self._owner_id, note_id),
            description="Delete note",
            payload=note_id,
        )
        removed = self._remove_local(note_id)
        if existed or removed:
            logger.info("Deleted note %s", note_id)
        else:
            logger.debug("Delete of absent note %s ignored", note_id)

    async def _load(self) -> None:
        documents = await self._write(
            lambda: self._repository.list_for_owner(self._owner_id),
            description="Load notes",
            payload=None,
        )
        notes = []
        for doc in documents:
            if doc.get("owner_id") != self._owner_id:
                logger.error("Skipping note %s owned by another user", doc.get("_id"))
                continue
            try:
                notes.append(Note.from_dict(doc))
            except ValueError as e:
                logger.warning("Skipping invalid note document: %s", e)
        self._notes = notes
        self._notify()

    async def _write(self, operation: Callable[[], T], description: str, payload: Any) -> T:
        """Run a blocking repository call with bounded retries."""

        async def attempt() -> T:
            return await asyncio.to_thread(operation)

        try:
            return await retry_async(
                attempt,
                max_attempts=self._write_attempts,
                base_delay=self._backoff_seconds,
                timeout=self._write_timeout,
                is_retryable=self._is_retryable,
                description=description,
            )
        except RetryExhausted as e:
            raise PersistenceFailed(
                f"{description} failed after {e.attempts} attempts: {e.last_error}",
                draft=payload,
                attempts=e.attempts,
            ) from e.last_error
        except Exception as e:
            logger.error("%s failed: %s", description, e)
            raise PersistenceFailed(f"{description} failed: {e}", draft=payload, attempts=1) from e

    def _to_note(self, document: dict[str, Any], fallback: NoteDraft | None = None) -> Note:
        if document.get("owner_id") != self._owner_id:
            logger.error("Storage returned note %s for another owner", document.get("_id"))
            raise OwnershipViolation(f"Note {document.get('_id')} belongs to another owner")
        return Note.from_dict(document, fallback=fallback)

    def _index_of(self, note_id: str) -> int | None:
        for index, note in enumerate(self._notes):
            if note.id == note_id:
                return index
        return None

    def _remove_local(self, note_id: str) -> bool:
        index = self._index_of(note_id)
        if index is None:
            return False
        del self._notes[index]
        self._notify()
        return True

    def _require_open(self) -> None:
        if self._closed:
            raise StoreClosed("NoteStore has been closed")
        if not self._opened:
            raise StoreClosed("NoteStore is not open; call open() first")

    def _notify(self) -> None:
        snapshot = self.notes
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.debug(f"Notes listener raised: {e}")


__all__ = ["NoteRepository", "NoteStore", "NotesListener"]
