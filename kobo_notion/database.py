"""Read-only access to the Kobo highlights database."""
import sqlite3
from pathlib import Path
from typing import List, Optional, Union
import logging

from kobo_notion.models import Book, Highlight

logger = logging.getLogger(__name__)


class SourceReadError(RuntimeError):
    """Raised when the Kobo database cannot be queried."""


BOOK_LIST_QUERY = """
    SELECT DISTINCT content.ContentID, content.Title, content.Attribution
    FROM Bookmark
    INNER JOIN content ON Bookmark.VolumeID = content.ContentID
    ORDER BY content.Title
"""

HIGHLIGHTS_QUERY = """
    SELECT Bookmark.Text, Bookmark.Color
    FROM Bookmark
    WHERE Bookmark.VolumeID = ?
    ORDER BY Bookmark.DateCreated DESC
"""


class HighlightDatabase:
    """Kobo ``KoboReader.sqlite`` export, opened read-only for the process lifetime."""

    def __init__(self, path: Union[str, Path]):
        """
        Open the database.

        Args:
            path: Path to the SQLite file copied from the device

        Raises:
            SourceReadError: If the file is missing or cannot be opened
        """
        self.path = Path(path)
        if not self.path.is_file():
            raise SourceReadError(f"Highlights database not found: {self.path}")

        try:
            self.connection = sqlite3.connect(f"{self.path.resolve().as_uri()}?mode=ro", uri=True)
        except sqlite3.Error as e:
            raise SourceReadError(f"Failed to open {self.path}: {e}") from e

        logger.info(f"Opened highlights database {self.path}")

    def list_books(self) -> List[Book]:
        """
        List distinct books that have at least one highlight.

        Returns:
            Books ordered by title
        """
        try:
            rows = self.connection.execute(BOOK_LIST_QUERY).fetchall()
        except sqlite3.Error as e:
            raise SourceReadError(f"Failed to list books: {e}") from e

        books = [
            Book(content_id=str(content_id), title=title or "", author=author or "")
            for content_id, title, author in rows
        ]
        logger.info(f"Found {len(books)} books with highlights")
        return books

    def list_highlights(self, content_id: str) -> List[Highlight]:
        """
        List highlights of one book, most recent first.

        Args:
            content_id: Kobo ContentID of the book

        Returns:
            Highlights ordered by creation time, descending
        """
        try:
            rows = self.connection.execute(HIGHLIGHTS_QUERY, (content_id,)).fetchall()
        except sqlite3.Error as e:
            raise SourceReadError(f"Failed to read highlights for {content_id}: {e}") from e

        return [Highlight(text=text, color=_color_code(color)) for text, color in rows]

    def close(self):
        """Close the connection."""
        if self.connection:
            self.connection.close()
            logger.info("Highlights database closed")

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()


def _color_code(value) -> Optional[int]:
    # Color is an INTEGER column but older firmware leaves it NULL or stores text
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
