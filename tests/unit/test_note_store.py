"""Unit tests for the owner-scoped NoteStore."""

import asyncio
from typing import Any
from unittest.mock import MagicMock

import pytest
from pymongo.errors import AutoReconnect, OperationFailure

from cathcr.errors import NotFound, OwnershipViolation, PersistenceFailed, StoreClosed
from cathcr.notes import Category, NoteCategory, NoteDraft, NotePatch, NoteSource, NoteStore
from cathcr.storage import MongoNoteRepository

OWNER_ID = "user-1"


class FlakyRepository:
    """Repository wrapper failing the first ``failures`` inserts.

    With ``land=True`` the failed attempts still reach storage, like a
    write whose acknowledgement was lost.
    """

    def __init__(self, inner: MongoNoteRepository, failures: int, land: bool = False) -> None:
        self._inner = inner
        self._failures = failures
        self._land = land
        self.insert_calls = 0

    def insert(self, owner_id: str, document: dict[str, Any]) -> dict[str, Any]:
        self.insert_calls += 1
        if self.insert_calls <= self._failures:
            if self._land:
                self._inner.insert(owner_id, dict(document))
            raise AutoReconnect("connection reset")
        return self._inner.insert(owner_id, document)

    def __getattr__(self, name: str) -> Any:
        return getattr(self._inner, name)


class TestNoteStoreLifecycle:
    """Tests for open/close behavior."""

    @pytest.mark.asyncio
    async def test_requires_open(self, repository: MongoNoteRepository) -> None:
        """Test that operations before open() are rejected."""
        store = NoteStore(repository, OWNER_ID)
        with pytest.raises(StoreClosed):
            await store.create(NoteDraft(content="x"))

    @pytest.mark.asyncio
    async def test_requires_owner(self, repository: MongoNoteRepository) -> None:
        """Test that a store cannot be built without an owner."""
        with pytest.raises(ValueError):
            NoteStore(repository, "")

    @pytest.mark.asyncio
    async def test_open_loads_only_own_notes(
        self, repository: MongoNoteRepository
    ) -> None:
        """Test that open() loads the owner's notes newest first."""
        other = NoteStore(repository, "user-2", backoff_seconds=0.0)
        await other.open()
        await other.create(NoteDraft(content="Not mine"))

        mine = NoteStore(repository, OWNER_ID, backoff_seconds=0.0)
        await mine.open()
        await mine.create(NoteDraft(content="First"))
        await mine.create(NoteDraft(content="Second"))

        reloaded = NoteStore(repository, OWNER_ID, backoff_seconds=0.0)
        await reloaded.open()
        assert sorted(n.content for n in reloaded.notes) == ["First", "Second"]

    @pytest.mark.asyncio
    async def test_close_clears_and_rejects(self, store: NoteStore) -> None:
        """Test that a closed store drops its notes and refuses writes."""
        await store.create(NoteDraft(content="x"))
        await store.close()

        assert store.notes == []
        assert not store.is_open
        with pytest.raises(StoreClosed):
            await store.create(NoteDraft(content="y"))
        with pytest.raises(StoreClosed):
            await store.open()


class TestNoteStoreCreate:
    """Tests for NoteStore.create()."""

    @pytest.mark.asyncio
    async def test_create_adds_to_head(self, store: NoteStore) -> None:
        """Test that new notes appear first."""
        first = await store.create(NoteDraft(content="First"))
        second = await store.create(NoteDraft(content="Second"))

        assert store.notes == [second, first]
        assert first.owner_id == OWNER_ID
        assert first.created_at == first.updated_at
        assert first.source == NoteSource.MANUAL

    @pytest.mark.asyncio
    async def test_create_derives_title(self, store: NoteStore) -> None:
        """Test that a missing title comes from the content."""
        note = await store.create(NoteDraft(content="Buy milk\nand eggs"))
        assert note.title == "Buy milk"

    @pytest.mark.asyncio
    async def test_empty_content_rejected(self, store: NoteStore) -> None:
        """Test that empty content is never written."""
        with pytest.raises(ValueError):
            await store.create(NoteDraft(content="   "))
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_same_draft_twice_is_one_note(self, store: NoteStore) -> None:
        """Test that repeating a create with one key keeps one note."""
        draft = NoteDraft(content="Once")
        first = await store.create(draft)
        second = await store.create(draft)

        assert second.id == first.id
        assert len(store) == 1

    @pytest.mark.asyncio
    async def test_transient_failure_retried(self, repository: MongoNoteRepository) -> None:
        """Test that a transient failure is retried to success."""
        flaky = FlakyRepository(repository, failures=2)
        store = NoteStore(flaky, OWNER_ID, backoff_seconds=0.0)
        await store.open()

        note = await store.create(NoteDraft(content="Eventually"))

        assert flaky.insert_calls == 3
        assert store.notes == [note]

    @pytest.mark.asyncio
    async def test_lost_acknowledgement_no_duplicate(
        self, repository: MongoNoteRepository
    ) -> None:
        """Test that a write that landed before failing is not duplicated."""
        flaky = FlakyRepository(repository, failures=1, land=True)
        store = NoteStore(flaky, OWNER_ID, backoff_seconds=0.0)
        await store.open()

        await store.create(NoteDraft(content="Landed"))

        assert len(repository.list_for_owner(OWNER_ID)) == 1
        assert len(store) == 1

    @pytest.mark.asyncio
    async def test_exhausted_retries_keep_draft(self, repository: MongoNoteRepository) -> None:
        """Test that failure returns the draft and leaves the collection alone."""
        flaky = FlakyRepository(repository, failures=10)
        store = NoteStore(flaky, OWNER_ID, write_attempts=3, backoff_seconds=0.0)
        await store.open()
        draft = NoteDraft(content="Keep me")

        with pytest.raises(PersistenceFailed) as exc_info:
            await store.create(draft)

        assert exc_info.value.draft is draft
        assert exc_info.value.attempts == 3
        assert flaky.insert_calls == 3
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_permanent_failure_not_retried(self) -> None:
        """Test that a non-transient error fails on the first attempt."""
        repository = MagicMock()
        repository.list_for_owner.return_value = []
        repository.insert.side_effect = OperationFailure("unauthorized")
        store = NoteStore(repository, OWNER_ID, backoff_seconds=0.0)
        await store.open()

        with pytest.raises(PersistenceFailed) as exc_info:
            await store.create(NoteDraft(content="x"))

        assert exc_info.value.attempts == 1
        assert repository.insert.call_count == 1

    @pytest.mark.asyncio
    async def test_other_owner_document_rejected(self) -> None:
        """Test that a note stored for another owner is never shown."""
        repository = MagicMock()
        repository.list_for_owner.return_value = []
        repository.insert.side_effect = lambda owner_id, doc: {**doc, "owner_id": "intruder"}
        store = NoteStore(repository, OWNER_ID, backoff_seconds=0.0)
        await store.open()

        with pytest.raises(OwnershipViolation):
            await store.create(NoteDraft(content="x"))
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_stored_document_wins(self) -> None:
        """Test that the stored document replaces the draft's values."""
        repository = MagicMock()
        repository.list_for_owner.return_value = []
        repository.insert.side_effect = lambda owner_id, doc: {**doc, "title": "Server title"}
        store = NoteStore(repository, OWNER_ID, backoff_seconds=0.0)
        await store.open()

        note = await store.create(NoteDraft(content="x", title="Local title"))
        assert note.title == "Server title"


class TestNoteStoreUpdate:
    """Tests for update, toggle_pin and delete."""

    @pytest.mark.asyncio
    async def test_update_in_place(self, store: NoteStore) -> None:
        """Test that an update replaces the note at its position."""
        first = await store.create(NoteDraft(content="First"))
        await store.create(NoteDraft(content="Second"))

        updated = await store.update(first.id, {"title": "Renamed", "tags": ["#Work"]})

        assert updated.title == "Renamed"
        assert updated.tags == ["Work"]
        assert store.notes[1] == updated
        assert updated.created_at == first.created_at
        assert updated.updated_at > first.updated_at

    @pytest.mark.asyncio
    async def test_update_unknown_id(self, store: NoteStore) -> None:
        """Test that an unknown id raises NotFound."""
        with pytest.raises(NotFound):
            await store.update("missing", NotePatch(title="x"))

    @pytest.mark.asyncio
    async def test_update_rejects_empty_content(self, store: NoteStore) -> None:
        """Test that content cannot be cleared."""
        note = await store.create(NoteDraft(content="x"))
        with pytest.raises(ValueError):
            await store.update(note.id, NotePatch(content=""))

    @pytest.mark.asyncio
    async def test_empty_patch_is_noop(self, store: NoteStore) -> None:
        """Test that an empty patch returns the note unchanged."""
        note = await store.create(NoteDraft(content="x"))
        assert await store.update(note.id, NotePatch()) is note

    @pytest.mark.asyncio
    async def test_update_of_note_deleted_elsewhere(
        self, store: NoteStore, repository: MongoNoteRepository
    ) -> None:
        """Test that a note gone from storage is dropped locally."""
        note = await store.create(NoteDraft(content="x"))
        repository.delete(OWNER_ID, note.id)

        with pytest.raises(NotFound):
            await store.update(note.id, NotePatch(pinned=True))
        assert store.get(note.id) is None

    @pytest.mark.asyncio
    async def test_toggle_pin_round_trip(self, store: NoteStore) -> None:
        """Test that pinning twice restores the flag with advancing times."""
        note = await store.create(NoteDraft(content="x"))

        pinned = await store.toggle_pin(note.id)
        unpinned = await store.toggle_pin(note.id)

        assert pinned.pinned is True
        assert unpinned.pinned is False
        assert note.updated_at < pinned.updated_at < unpinned.updated_at

    @pytest.mark.asyncio
    async def test_concurrent_updates_merge(self, store: NoteStore) -> None:
        """Test that concurrent partial updates both land in storage."""
        note = await store.create(NoteDraft(content="x"))

        await asyncio.gather(
            store.update(note.id, {"title": "A"}),
            store.update(note.id, {"priority": "high"}),
        )

        await store.refresh()
        final = store.get(note.id)
        assert final.priority.value == "high"
        assert final.title == "A"

    @pytest.mark.asyncio
    async def test_delete_is_idempotent(self, store: NoteStore) -> None:
        """Test that deleting twice or deleting nothing succeeds."""
        note = await store.create(NoteDraft(content="x"))

        await store.delete(note.id)
        await store.delete(note.id)
        await store.delete("never-existed")

        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_cannot_touch_other_owner_notes(
        self, store: NoteStore, repository: MongoNoteRepository
    ) -> None:
        """Test that another owner's note is invisible to this store."""
        other = NoteStore(repository, "user-2", backoff_seconds=0.0)
        await other.open()
        theirs = await other.create(NoteDraft(content="Private"))

        with pytest.raises(NotFound):
            await store.update(theirs.id, NotePatch(pinned=True))
        await store.delete(theirs.id)

        assert repository.get("user-2", theirs.id) is not None


class TestNoteStoreQueries:
    """Tests for filtering and change notification."""

    @pytest.mark.asyncio
    async def test_filter(self, store: NoteStore) -> None:
        """Test filtering by category, tag, source and pin state."""
        task = await store.create(
            NoteDraft(content="Ship it", category=NoteCategory(main=Category.TASK), tags=["Work"])
        )
        await store.create(NoteDraft(content="Musing", source=NoteSource.VOICE))
        await store.toggle_pin(task.id)

        assert [n.id for n in store.filter(category=Category.TASK)] == [task.id]
        assert [n.id for n in store.filter(tag="work")] == [task.id]
        assert [n.content for n in store.filter(source=NoteSource.VOICE)] == ["Musing"]
        assert [n.id for n in store.filter(pinned=True)] == [task.id]

    @pytest.mark.asyncio
    async def test_listeners_receive_snapshots(self, store: NoteStore) -> None:
        """Test that listeners see each change until unsubscribed."""
        snapshots: list[int] = []
        unsubscribe = store.subscribe(lambda notes: snapshots.append(len(notes)))

        note = await store.create(NoteDraft(content="x"))
        await store.delete(note.id)
        unsubscribe()
        await store.create(NoteDraft(content="y"))

        assert snapshots == [1, 0]

    @pytest.mark.asyncio
    async def test_listener_errors_ignored(self, store: NoteStore) -> None:
        """Test that a failing listener does not break a write."""

        def broken(notes: list) -> None:
            raise RuntimeError("listener bug")

        store.subscribe(broken)
        note = await store.create(NoteDraft(content="x"))
        assert store.get(note.id) == note

