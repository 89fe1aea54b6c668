"""Tests for reading the Kobo database."""
import sqlite3
from pathlib import Path

import pytest

from kobo_notion.database import HighlightDatabase, SourceReadError


def build_kobo_db(path: Path) -> Path:
    """Create the subset of the Kobo schema the sync reads."""
    conn = sqlite3.connect(path)
    conn.executescript("""
        CREATE TABLE content (ContentID TEXT PRIMARY KEY, Title TEXT, Attribution TEXT);
        CREATE TABLE Bookmark (
            BookmarkID TEXT PRIMARY KEY,
            VolumeID TEXT,
            Text TEXT,
            Color INTEGER,
            DateCreated TEXT
        );
    """)
    conn.executemany(
        "INSERT INTO content VALUES (?, ?, ?)",
        [
            ("file:///dune.epub", "Dune", "Frank Herbert"),
            ("file:///anathem.epub", "Anathem", None),
            ("file:///unread.epub", "Unread", "Nobody"),
        ],
    )
    conn.executemany(
        "INSERT INTO Bookmark VALUES (?, ?, ?, ?, ?)",
        [
            ("b1", "file:///dune.epub", "oldest", 0, "2023-01-01T10:00:00"),
            ("b2", "file:///dune.epub", "newest", 3, "2023-03-01T10:00:00"),
            ("b3", "file:///dune.epub", None, 1, "2023-02-01T10:00:00"),
            ("b4", "file:///anathem.epub", "only one", None, "2023-01-05T10:00:00"),
        ],
    )
    conn.commit()
    conn.close()
    return path


def test_list_books_distinct_and_sorted(tmp_path):
    path = build_kobo_db(tmp_path / "KoboReader.sqlite")

    with HighlightDatabase(path) as db:
        books = db.list_books()

    assert [b.title for b in books] == ["Anathem", "Dune"]
    assert books[0].author == ""
    assert books[1].content_id == "file:///dune.epub"
    assert books[1].author == "Frank Herbert"


def test_list_highlights_newest_first(tmp_path):
    path = build_kobo_db(tmp_path / "KoboReader.sqlite")

    with HighlightDatabase(path) as db:
        highlights = db.list_highlights("file:///dune.epub")
        anathem = db.list_highlights("file:///anathem.epub")

    assert [h.text for h in highlights] == ["newest", None, "oldest"]
    assert [h.color for h in highlights] == [3, 1, 0]
    assert anathem[0].color is None


def test_database_is_read_only(tmp_path):
    path = build_kobo_db(tmp_path / "KoboReader.sqlite")

    with HighlightDatabase(path) as db:
        with pytest.raises(sqlite3.OperationalError):
            db.connection.execute("DELETE FROM Bookmark")


def test_missing_file_raises(tmp_path):
    with pytest.raises(SourceReadError):
        HighlightDatabase(tmp_path / "missing.sqlite")


def test_query_error_wrapped(tmp_path):
    path = tmp_path / "other.sqlite"
    conn = sqlite3.connect(path)
    conn.execute("CREATE TABLE unrelated (id INTEGER)")
    conn.commit()
    conn.close()

    with HighlightDatabase(path) as db:
        with pytest.raises(SourceReadError):
            db.list_books()
