"""Notes module for Cathcr.

Provides the note model, AI categorization and the owner-scoped store.
"""

from .categorizer import CategorizationService, Categorizer, create_categorizer
from .models import (
    Categorization,
    Category,
    Note,
    NoteCategory,
    NoteDraft,
    NotePatch,
    NoteSource,
    Priority,
    derive_title,
)
from .store import NoteRepository, NoteStore

__all__ = [
    "Categorization",
    "CategorizationService",
    "Categorizer",
    "Category",
    "Note",
    "NoteCategory",
    "NoteDraft",
    "NotePatch",
    "NoteRepository",
    "NoteSource",
    "NoteStore",
    "Priority",
    "create_categorizer",
    "derive_title",
]
