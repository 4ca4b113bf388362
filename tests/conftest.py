"""Shared fixtures for Cathcr tests."""

import asyncio
from collections.abc import Awaitable, Callable

import pytest
import pytest_asyncio
from mongomock import MongoClient

from cathcr.audio.mock_capture import MockAudioDevice, generate_tone
from cathcr.notes.store import NoteStore
from cathcr.storage.notes import MongoNoteRepository

OWNER_ID = "user-1"


@pytest.fixture
def mock_db():
    """Create a mock MongoDB database for testing."""
    client = MongoClient()
    return client["cathcr_test"]


@pytest.fixture
def repository(mock_db) -> MongoNoteRepository:
    """Create MongoNoteRepository with mock database."""
    return MongoNoteRepository(mock_db["notes"])


@pytest_asyncio.fixture
async def store(repository: MongoNoteRepository) -> NoteStore:
    """Opened NoteStore for OWNER_ID with no backoff."""
    note_store = NoteStore(repository, OWNER_ID, backoff_seconds=0.0, write_timeout=5.0)
    await note_store.open()
    return note_store


@pytest.fixture
def speaking_device() -> MockAudioDevice:
    """Mock microphone holding one second of tone."""
    device = MockAudioDevice()
    device.set_audio_data(generate_tone(1.0))
    return device


@pytest.fixture
def wait_until() -> Callable[[Callable[[], bool]], Awaitable[None]]:
    """Poll a condition on the event loop, failing after a timeout."""

    async def _wait(condition: Callable[[], bool], timeout: float = 2.0) -> None:
        async def poll() -> None:
            while not condition():
                await asyncio.sleep(0.005)

        await asyncio.wait_for(poll(), timeout=timeout)

    return _wait
