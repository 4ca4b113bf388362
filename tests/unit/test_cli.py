"""Unit tests for the command line entry point."""

import os
from unittest.mock import patch

import mongomock
import pytest

from cathcr.__main__ import main, parse_args
from cathcr.storage import MongoStorageClient


@pytest.fixture
def mongo():
    """Shared mongomock client standing in for the database server."""
    client = mongomock.MongoClient()
    with patch.object(
        MongoStorageClient,
        "from_config",
        side_effect=lambda config: MongoStorageClient(
            database_name=config.database, client=client
        ),
    ):
        yield client


@pytest.fixture
def user_env():
    with patch.dict(os.environ, {"CATHCR_USER_ID": "cli-user", "CATHCR_PROFILE": "test"}):
        yield


class TestParseArgs:
    """Tests for argument parsing."""

    def test_capture_duration(self) -> None:
        """Test the capture command with a fixed duration."""
        args = parse_args(["--profile", "test", "capture", "--duration", "5"])
        assert args.command == "capture"
        assert args.duration == 5.0
        assert args.profile == "test"

    def test_command_required(self) -> None:
        """Test that a command must be given."""
        with pytest.raises(SystemExit):
            parse_args([])

    def test_unknown_profile(self) -> None:
        """Test that only known profiles are accepted."""
        with pytest.raises(SystemExit):
            parse_args(["--profile", "staging", "list"])


class TestMain:
    """Tests for main() against a mock database."""

    def test_requires_user(self, mongo, capsys) -> None:
        """Test that commands refuse to run without an owner."""
        with patch.dict(os.environ, {"CATHCR_PROFILE": "test"}, clear=True):
            assert main(["list"]) == 1
        assert "CATHCR_USER_ID" in capsys.readouterr().err

    def test_add_pin_list_delete(self, mongo, user_env, capsys) -> None:
        """Test the typed note commands end to end."""
        assert main(["add", "Buy milk"]) == 0
        note_id = capsys.readouterr().out.split()[0]

        assert main(["pin", note_id]) == 0
        assert capsys.readouterr().out.startswith("*")

        assert main(["list", "--pinned"]) == 0
        assert "Buy milk" in capsys.readouterr().out

        assert main(["delete", note_id]) == 0
        assert main(["list"]) == 0
        assert "No notes yet." in capsys.readouterr().out

    def test_pin_unknown_note(self, mongo, user_env, capsys) -> None:
        """Test that pinning a missing note fails cleanly."""
        assert main(["pin", "missing"]) == 1
        assert "missing" in capsys.readouterr().err

    def test_capture_with_mock_audio(self, mongo, user_env, capsys) -> None:
        """Test a timed capture with the test profile's mock services."""
        assert main(["capture", "--duration", "0.3"]) == 0

        out = capsys.readouterr().out
        assert "Note saved." in out
        assert "Reminder to call John" in out
        assert mongo["cathcr_test"]["notes"].count_documents({"owner_id": "cli-user"}) == 1
