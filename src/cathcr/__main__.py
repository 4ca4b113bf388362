"""Cathcr entry point.

Usage:
    python -m cathcr [OPTIONS] COMMAND

Commands:
    capture          Record a voice note
    add TEXT         Save a typed note
    list             List notes, newest first
    pin ID           Toggle a note's pin
    delete ID        Delete a note

Options:
    --config PATH    Path to YAML config file
    --profile NAME   Profile name (dev, prod, test)
    --mock-audio     Use mock audio and transcription
    --version        Show version
"""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from . import __version__
from .config import CathcrConfig
from .config.loader import PROFILES, detect_profile, load_config
from .errors import CathcrError

if TYPE_CHECKING:
    from .capture import CapturePipeline, CaptureStatus
    from .notes import Note

logger = logging.getLogger("cathcr")


def _load_env() -> None:
    """Load .env from the project root, else the current directory."""
    env_file = Path(__file__).parent.parent.parent / ".env"
    if env_file.exists():
        load_dotenv(env_file)
    else:
        load_dotenv()


def setup_logging(level: str) -> None:
    """Configure logging based on config."""
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="cathcr",
        description="Cathcr - capture voice notes",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m cathcr capture                  # Record until Enter is pressed
  python -m cathcr capture --duration 10    # Record for 10 seconds
  python -m cathcr add "Buy milk"           # Save a typed note
  python -m cathcr --profile prod list      # List notes using prod settings

Environment:
  CATHCR_PROFILE           Set profile (dev, prod, test)
  CATHCR_USER_ID           Owner of the notes (required)
  MONGODB_URI              MongoDB connection string
  ANTHROPIC_API_KEY        Enables AI categorization
  CATHCR_TRANSCRIBE_URL    Batch transcription endpoint
  CATHCR_TRANSCRIBE_TOKEN  Bearer token for the transcription endpoint
""",
    )

    parser.add_argument("--config", type=Path, help="Path to YAML config file", metavar="PATH")
    parser.add_argument("--profile", choices=list(PROFILES), help="Configuration profile to use")
    parser.add_argument(
        "--version", action="version", version=f"Cathcr v{__version__}"
    )
    parser.add_argument(
        "--mock-audio",
        action="store_true",
        help="Use mock audio components (for testing without hardware)",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    capture = commands.add_parser("capture", help="Record a voice note")
    capture.add_argument(
        "--duration",
        type=float,
        metavar="SECONDS",
        help="Stop after this many seconds instead of waiting for Enter",
    )

    add = commands.add_parser("add", help="Save a typed note")
    add.add_argument("text", help="Note content")

    list_cmd = commands.add_parser("list", help="List notes, newest first")
    list_cmd.add_argument("--pinned", action="store_true", help="Only pinned notes")

    pin = commands.add_parser("pin", help="Toggle a note's pin")
    pin.add_argument("note_id", metavar="ID")

    delete = commands.add_parser("delete", help="Delete a note")
    delete.add_argument("note_id", metavar="ID")

    return parser.parse_args(argv)


def _owner_id() -> str:
    owner_id = os.environ.get("CATHCR_USER_ID", "").strip()
    if not owner_id:
        raise ValueError(
            "CATHCR_USER_ID environment variable is not set. "
            "Set it to the id of the user whose notes to manage."
        )
    return owner_id


def _format_note(note: "Note") -> str:
    pin = "*" if note.pinned else " "
    tags = f" [{', '.join(note.tags)}]" if note.tags else ""
    return (
        f"{pin} {note.id}  {note.updated_at:%Y-%m-%d %H:%M}  "
        f"{note.category.main.value:<8} {note.priority.value:<6} {note.title}{tags}"
    )


async def _capture(pipeline: "CapturePipeline", duration: float | None) -> int:
    from .capture import CaptureOutcome, CaptureState

    last_partial = ""

    def on_status(status: "CaptureStatus") -> None:
        nonlocal last_partial
        if status.state == CaptureState.RECORDING and status.partial_transcript != last_partial:
            last_partial = status.partial_transcript
            print(f"  ... {last_partial}")

    pipeline.subscribe(on_status)
    status = await pipeline.start()
    if status.is_settled:
        print(status.message)
        return 1

    if duration:
        print(f"Recording for {duration:.0f}s...")
        await asyncio.sleep(duration)
    else:
        await asyncio.to_thread(input, "Recording... press Enter to stop. ")

    print("Processing...")
    if pipeline.state == CaptureState.RECORDING:
        status = await pipeline.stop()
    else:
        status = await pipeline.wait_settled()

    while status.can_retry:
        print(status.message)
        answer = await asyncio.to_thread(input, "Retry saving? [Y/n] ")
        if answer.strip().lower() in ("n", "no"):
            break
        status = await pipeline.retry_persist()

    if status.outcome == CaptureOutcome.SUCCESS and status.note is not None:
        print(f"\n{status.message}")
        print(_format_note(status.note))
        if status.categorization_degraded:
            print("  (saved without AI categorization)")
        return 0

    print(status.message)
    if status.transcript:
        print(f"Transcript: {status.transcript}")
    return 0 if status.outcome == CaptureOutcome.ABORTED else 1


async def run(args: argparse.Namespace, config: CathcrConfig) -> int:
    """Run one command against the note store."""
    from .notes import NoteDraft, NoteStore
    from .storage import MongoStorageClient

    owner_id = _owner_id()
    storage = MongoStorageClient.from_config(config.storage)
    repository = await asyncio.to_thread(storage.connect)

    store = NoteStore.from_config(config.storage, repository, owner_id)
    try:
        await store.open()

        if args.command == "capture":
            from .capture import CapturePipeline

            use_mock = config.testing.mock_audio_enabled or args.mock_audio
            pipeline = CapturePipeline.from_config(config, store, use_mock=use_mock)
            try:
                return await _capture(pipeline, args.duration)
            finally:
                await pipeline.close()

        if args.command == "add":
            note = await store.create(NoteDraft(content=args.text))
            print(_format_note(note))
        elif args.command == "list":
            notes = store.filter(pinned=True) if args.pinned else store.notes
            for note in notes:
                print(_format_note(note))
            if not notes:
                print("No notes yet.")
        elif args.command == "pin":
            print(_format_note(await store.toggle_pin(args.note_id)))
        elif args.command == "delete":
            await store.delete(args.note_id)
            print(f"Deleted {args.note_id}")
        return 0
    finally:
        await store.close()
        storage.disconnect()


def main(argv: list[str] | None = None) -> int:
    """Main entry point for Cathcr.

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    _load_env()
    args = parse_args(argv)

    # Load configuration
    try:
        if args.config:
            config = load_config(path=args.config)
        else:
            config = load_config(profile=args.profile or detect_profile())
    except FileNotFoundError as e:
        print(f"Error: Config file not found: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return 1

    setup_logging(config.logging.level)
    logger.debug(f"Cathcr v{__version__}, profile {args.profile or detect_profile()}")

    try:
        return asyncio.run(run(args, config))
    except KeyboardInterrupt:
        print("\nCancelled.")
        return 130
    except (CathcrError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        logger.error(f"Command failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
