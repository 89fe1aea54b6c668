"""Data models for books, highlights and sync results."""
from dataclasses import dataclass
from enum import Enum
from typing import Optional


@dataclass(frozen=True)
class Book:
    """A book with at least one highlight on the device."""
    content_id: str
    title: str
    author: str


@dataclass(frozen=True)
class Highlight:
    """A single highlight as stored in the Kobo Bookmark table."""
    text: Optional[str]
    color: Optional[int]

    @property
    def has_text(self) -> bool:
        return bool(self.text)


class BookState(Enum):
    """Where a book stands in the Notion database before this run touches it."""
    NOT_FOUND = "not_found"
    INCOMPLETE = "incomplete"
    COMPLETE = "complete"


class BookOutcome(Enum):
    CREATED = "created"
    RESUMED = "resumed"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class BookResult:
    """What happened to one book during a run."""
    title: str
    outcome: BookOutcome
    page_id: Optional[str] = None
    items_exported: int = 0
    chunks_appended: int = 0
    chunks_failed: int = 0
    completed: bool = False
    error: Optional[str] = None

    @property
    def had_errors(self) -> bool:
        """True if any step for this book failed."""
        return self.outcome is BookOutcome.FAILED or self.error is not None
