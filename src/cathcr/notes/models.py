"""Data models for notes.

Defines the Note entity, the drafts and patches that create and mutate
it, and the categorization metadata attached to voice notes.
"""

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any

TITLE_MAX_CHARS = 50
AI_TITLE_MAX_CHARS = 100
MAX_TAGS = 10
UNTITLED = "Untitled Note"


def utc_now() -> datetime:
    """Current UTC time truncated to the millisecond the store keeps."""
    now = datetime.now(UTC)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes coming back from MongoDB."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class Category(Enum):
    """Semantic buckets for notes."""

    NOTE = "note"
    REMINDER = "reminder"
    TASK = "task"
    IDEA = "idea"
    MEETING = "meeting"
    LEARNING = "learning"
    PERSONAL = "personal"


class Priority(Enum):
    """Ordinal note priority."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def parse(cls, value: Any) -> "Priority":
        """Parse a service-supplied priority, defaulting to MEDIUM."""
        if isinstance(value, Priority):
            return value
        if not isinstance(value, str):
            return cls.MEDIUM
        text = value.strip().lower()
        if text in ("urgent", "critical"):
            return cls.HIGH
        try:
            return cls(text)
        except ValueError:
            return cls.MEDIUM


class NoteSource(Enum):
    """Provenance of a note."""

    MANUAL = "manual"
    VOICE = "voice"


@dataclass(frozen=True)
class NoteCategory:
    """Main category plus free-form sub-classification."""

    main: Category = Category.NOTE
    sub: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for storage."""
        data: dict[str, Any] = {"main": self.main.value}
        if self.sub:
            data["sub"] = self.sub
        return data

    @classmethod
    def parse(cls, value: Any) -> "NoteCategory":
        """Parse ``"task"`` or ``{"main": "task", "sub": "..."}``.

        Unknown main categories become NOTE with the raw value as ``sub``.
        """
        if isinstance(value, NoteCategory):
            return value

        main_raw: Any = value
        sub: Any = None
        if isinstance(value, dict):
            main_raw = value.get("main")
            sub = value.get("sub")

        sub = sub.strip() if isinstance(sub, str) and sub.strip() else None
        if not isinstance(main_raw, str) or not main_raw.strip():
            return cls(sub=sub)

        text = main_raw.strip().lower()
        try:
            return cls(main=Category(text), sub=sub)
        except ValueError:
            return cls(main=Category.NOTE, sub=sub or main_raw.strip())


def derive_title(content: str) -> str:
    """Take the first non-empty line, shortened to 50 characters."""
    for line in content.splitlines():
        line = line.strip()
        if line:
            if len(line) > TITLE_MAX_CHARS:
                return line[:TITLE_MAX_CHARS] + "..."
            return line
    return UNTITLED


def normalize_strings(items: Any) -> list[str]:
    """Normalize items to strings, handling objects from the AI service.

    Args:
        items: List that may contain strings or dicts

    Returns:
        List of non-empty strings only
    """
    if isinstance(items, str):
        items = [items]
    if not isinstance(items, list):
        return []

    result = []
    for item in items:
        if isinstance(item, str):
            if item.strip():
                result.append(item.strip())
        elif isinstance(item, dict):
            for key in ["description", "text", "task", "name", "value"]:
                if key in item and isinstance(item[key], str):
                    result.append(item[key].strip())
                    break
            else:
                parts = [v for v in item.values() if isinstance(v, str)]
                if parts:
                    result.append(" ".join(parts))
    return [r for r in result if r]


def normalize_tags(tags: Any) -> list[str]:
    """Trim, drop empties and case-insensitive duplicates, cap at 10."""
    result: list[str] = []
    seen: set[str] = set()
    for tag in normalize_strings(tags):
        tag = tag.lstrip("#").strip()
        key = tag.lower()
        if tag and key not in seen:
            seen.add(key)
            result.append(tag)
        if len(result) >= MAX_TAGS:
            break
    return result


def normalize_entities(entities: Any) -> dict[str, list[str]]:
    """Coerce entities into ``{kind: [value, ...]}``."""
    if not isinstance(entities, dict):
        return {}
    result: dict[str, list[str]] = {}
    for key, value in entities.items():
        values = normalize_strings(value)
        if isinstance(key, str) and values:
            result[key] = values
    return result


@dataclass
class Categorization:
    """Structured metadata for a transcript.

    Every field has a safe default so a partial or malformed AI
    response still produces a valid note.
    """

    title: str = ""
    tags: list[str] = field(default_factory=list)
    category: NoteCategory = field(default_factory=NoteCategory)
    priority: Priority = Priority.MEDIUM
    action_items: list[str] = field(default_factory=list)
    entities: dict[str, list[str]] = field(default_factory=dict)
    degraded: bool = False
    degraded_reason: str | None = None

    @classmethod
    def defaults(cls, reason: str | None = None) -> "Categorization":
        """All-defaults result used when categorization is unavailable."""
        return cls(degraded=reason is not None, degraded_reason=reason)

    @classmethod
    def from_payload(cls, data: Any) -> "Categorization":
        """Validate and normalize a categorization service payload.

        Accepts camelCase, snake_case and the ``suggested*`` spellings.
        Anything unusable falls back to its default.
        """
        if not isinstance(data, dict):
            return cls.defaults("payload is not an object")

        title = data.get("title", data.get("suggestedTitle", ""))
        title = title.strip()[:AI_TITLE_MAX_CHARS] if isinstance(title, str) else ""

        return cls(
            title=title,
            tags=normalize_tags(data.get("tags", data.get("suggestedTags", []))),
            category=NoteCategory.parse(data.get("category")),
            priority=Priority.parse(data.get("priority")),
            action_items=normalize_strings(
                data.get("actionItems", data.get("action_items", []))
            ),
            entities=normalize_entities(data.get("entities")),
        )


@dataclass
class NoteDraft:
    """A note that has not been written yet.

    ``idempotency_key`` identifies the create request; retrying a write
    with the same key never produces a second note.
    """

    content: str
    title: str | None = None
    tags: list[str] = field(default_factory=list)
    category: NoteCategory = field(default_factory=NoteCategory)
    priority: Priority = Priority.MEDIUM
    pinned: bool = False
    source: NoteSource = NoteSource.MANUAL
    action_items: list[str] = field(default_factory=list)
    entities: dict[str, list[str]] = field(default_factory=dict)
    idempotency_key: str = field(default_factory=lambda: uuid.uuid4().hex)

    def validate(self) -> None:
        """Raise ValueError if the draft cannot become a note."""
        if not isinstance(self.content, str) or not self.content.strip():
            raise ValueError("Note content must not be empty")

    @classmethod
    def from_transcript(
        cls,
        transcript: str,
        categorization: Categorization,
        idempotency_key: str | None = None,
    ) -> "NoteDraft":
        """Build a voice draft from a transcript and its metadata."""
        draft = cls(
            content=transcript,
            title=categorization.title or None,
            tags=list(categorization.tags),
            category=categorization.category,
            priority=categorization.priority,
            source=NoteSource.VOICE,
            action_items=list(categorization.action_items),
            entities=dict(categorization.entities),
        )
        if idempotency_key:
            draft.idempotency_key = idempotency_key
        return draft

    def to_document(self, owner_id: str, note_id: str, now: datetime) -> dict[str, Any]:
        """Build the MongoDB document for this draft."""
        return {
            "_id": note_id,
            "owner_id": owner_id,
            "content": self.content.strip(),
            "title": (self.title or "").strip() or derive_title(self.content),
            "tags": normalize_tags(self.tags),
            "category": self.category.to_dict(),
            "priority": self.priority.value,
            "pinned": bool(self.pinned),
            "source": self.source.value,
            "action_items": list(self.action_items),
            "entities": dict(self.entities),
            "idempotency_key": self.idempotency_key,
            "created_at": now,
            "updated_at": now,
        }


@dataclass
class NotePatch:
    """Fields to change on an existing note. None means unchanged."""

    content: str | None = None
    title: str | None = None
    tags: list[str] | None = None
    category: NoteCategory | None = None
    priority: Priority | None = None
    pinned: bool | None = None

    def to_fields(self) -> dict[str, Any]:
        """Storage fields for the set values.

        Raises:
            ValueError: If content is set to an empty string
        """
        fields: dict[str, Any] = {}
        if self.content is not None:
            if not self.content.strip():
                raise ValueError("Note content must not be empty")
            fields["content"] = self.content.strip()
        if self.title is not None:
            fields["title"] = self.title.strip()
        if self.tags is not None:
            fields["tags"] = normalize_tags(self.tags)
        if self.category is not None:
            fields["category"] = NoteCategory.parse(self.category).to_dict()
        if self.priority is not None:
            fields["priority"] = Priority.parse(self.priority).value
        if self.pinned is not None:
            fields["pinned"] = bool(self.pinned)
        return fields

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "NotePatch":
        """Build a patch from plain keyword values."""
        unknown = set(data) - {"content", "title", "tags", "category", "priority", "pinned"}
        if unknown:
            raise ValueError(f"Cannot patch fields: {', '.join(sorted(unknown))}")
        return cls(
            content=data.get("content"),
            title=data.get("title"),
            tags=data.get("tags"),
            category=NoteCategory.parse(data["category"]) if "category" in data else None,
            priority=Priority.parse(data["priority"]) if "priority" in data else None,
            pinned=data.get("pinned"),
        )


@dataclass(frozen=True)
class Note:
    """A persisted note.

    Attributes:
        id: Immutable unique identifier
        owner_id: Immutable owning user
        content: Transcript or typed body, never empty
        title: Short label, derived from content when absent
        tags: Display-ordered tags
        category: Main category and sub-classification
        priority: low, medium or high
        pinned: Pinned to the top of lists
        source: manual or voice
        created_at: Creation time (UTC)
        updated_at: Last mutation time (UTC)
        action_items: Action items found by categorization
        entities: People, places, dates found by categorization
        idempotency_key: Key of the create request that made this note
    """

    id: str
    owner_id: str
    content: str
    title: str
    tags: list[str]
    category: NoteCategory
    priority: Priority
    pinned: bool
    source: NoteSource
    created_at: datetime
    updated_at: datetime
    action_items: list[str] = field(default_factory=list)
    entities: dict[str, list[str]] = field(default_factory=dict)
    idempotency_key: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for MongoDB storage."""
        return {
            "_id": self.id,
            "owner_id": self.owner_id,
            "content": self.content,
            "title": self.title,
            "tags": list(self.tags),
            "category": self.category.to_dict(),
            "priority": self.priority.value,
            "pinned": self.pinned,
            "source": self.source.value,
            "action_items": list(self.action_items),
            "entities": dict(self.entities),
            "idempotency_key": self.idempotency_key,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], fallback: NoteDraft | None = None) -> "Note":
        """Create from a MongoDB document.

        The document is authoritative. ``fallback`` supplies values only
        for fields the document does not carry.

        Raises:
            ValueError: If the document has no id, owner or content
        """
        note_id = data.get("_id", data.get("id"))
        owner_id = data.get("owner_id")
        content = data.get("content")
        if content is None and fallback is not None:
            content = fallback.content
        if not note_id or not owner_id:
            raise ValueError("Note document is missing id or owner")
        if not isinstance(content, str) or not content.strip():
            raise ValueError(f"Note {note_id} has empty content")

        def pick(key: str, default: Any) -> Any:
            if data.get(key) is not None:
                return data[key]
            return default

        now = utc_now()
        created_at = ensure_utc(pick("created_at", now))
        updated_at = ensure_utc(pick("updated_at", created_at))
        title = pick("title", fallback.title if fallback else None)

        return cls(
            id=str(note_id),
            owner_id=str(owner_id),
            content=content,
            title=title.strip() if isinstance(title, str) and title.strip() else derive_title(content),
            tags=normalize_tags(pick("tags", fallback.tags if fallback else [])),
            category=NoteCategory.parse(
                pick("category", fallback.category if fallback else None)
            ),
            priority=Priority.parse(pick("priority", fallback.priority if fallback else None)),
            pinned=bool(pick("pinned", fallback.pinned if fallback else False)),
            source=NoteSource(pick("source", fallback.source.value if fallback else "manual")),
            created_at=created_at,
            updated_at=updated_at,
            action_items=normalize_strings(
                pick("action_items", fallback.action_items if fallback else [])
            ),
            entities=normalize_entities(pick("entities", fallback.entities if fallback else {})),
            idempotency_key=pick("idempotency_key", fallback.idempotency_key if fallback else None),
        )


def advance_timestamp(previous: datetime) -> datetime:
    """A mutation time strictly after ``previous``."""
    now = utc_now()
    if now <= previous:
        return previous + timedelta(milliseconds=1)
    return now


__all__ = [
    "Categorization",
    "Category",
    "Note",
    "NoteCategory",
    "NoteDraft",
    "NotePatch",
    "NoteSource",
    "Priority",
    "UNTITLED",
    "advance_timestamp",
    "derive_title",
    "ensure_utc",
    "normalize_entities",
    "normalize_strings",
    "normalize_tags",
    "utc_now",
]
