"""
Unit tests for storage layer.

Tests schema creation and note history operations.
"""

import os
import tempfile
from datetime import datetime, timedelta

import pytest

from note_forge.storage.db import get_connection
from note_forge.storage.models import GenerationArtifact, NotePage
from note_forge.storage.repository import NoteRepository, initialize_schema


def _artifact(note_id: str, user_id: str = "alice", created_at: datetime = None, **overrides):
    fields = dict(
        id=note_id,
        user_id=user_id,
        title=f"Note {note_id}",
        template_id="study",
        page_count=1,
        coins_spent=1,
        html_content=f"<html><body>{note_id}</body></html>",
        created_at=created_at or datetime(2024, 1, 1, 12, 0, 0)
    )
    fields.update(overrides)
    return GenerationArtifact(**fields)


class TestStorageSchema:
    """Test database schema creation and structure."""

    def test_schema_creation(self):
        """Verify all tables are created."""
        with tempfile.TemporaryDirectory() as temp_dir:
            db_path = os.path.join(temp_dir, "test.db")
            initialize_schema(db_path)

            conn = get_connection(db_path)
            try:
                cursor = conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
                tables = {row[0] for row in cursor.fetchall()}
                assert {"user_notes", "coin_account", "coin_transaction"} <= tables

                cursor = conn.execute("PRAGMA table_info(user_notes)")
                column_names = [col[1] for col in cursor.fetchall()]
                assert column_names == [
                    'id', 'user_id', 'title', 'template_id', 'page_count',
                    'coins_spent', 'html_content', 'created_at', 'warning'
                ]
            finally:
                conn.close()

    def test_missing_parent_directory_created(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            db_path = os.path.join(temp_dir, "nested", "data", "test.db")

            initialize_schema(db_path)

            assert os.path.exists(db_path)

    def test_schema_creation_is_idempotent(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            db_path = os.path.join(temp_dir, "test.db")
            initialize_schema(db_path)
            initialize_schema(db_path)


class TestNoteRepository:
    """Test note history persistence."""

    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()
        self.db_path = os.path.join(self.temp_dir, "test.db")
        initialize_schema(self.db_path)
        self.repo = NoteRepository(self.db_path)

    def teardown_method(self):
        """Clean up test environment."""
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_save_and_get_note(self):
        artifact = _artifact("n1", warning="partial")
        self.repo.save_note(artifact)

        fetched = self.repo.get_note("alice", "n1")

        assert fetched == artifact

    def test_get_note_scoped_to_owner(self):
        self.repo.save_note(_artifact("n1", user_id="alice"))

        assert self.repo.get_note("bob", "n1") is None
        assert self.repo.get_note("alice", "missing") is None

    def test_list_notes_newest_first(self):
        base = datetime(2024, 1, 1)
        for i in range(3):
            self.repo.save_note(_artifact(f"n{i}", created_at=base + timedelta(days=i)))
        self.repo.save_note(_artifact("other", user_id="bob"))

        page = self.repo.list_notes("alice")

        assert [note.id for note in page.items] == ["n2", "n1", "n0"]
        assert page.total == 3
        assert page.has_more is False

    def test_list_notes_pagination(self):
        base = datetime(2024, 1, 1)
        for i in range(5):
            self.repo.save_note(_artifact(f"n{i}", created_at=base + timedelta(hours=i)))

        first = self.repo.list_notes("alice", limit=2, offset=0)
        last = self.repo.list_notes("alice", limit=2, offset=4)

        assert [note.id for note in first.items] == ["n4", "n3"]
        assert first.total == 5
        assert first.has_more is True
        assert [note.id for note in last.items] == ["n0"]
        assert last.has_more is False

    def test_list_notes_invalid_arguments(self):
        with pytest.raises(ValueError, match="limit must be > 0"):
            self.repo.list_notes("alice", limit=0)
        with pytest.raises(ValueError, match="offset must be >= 0"):
            self.repo.list_notes("alice", offset=-1)

    def test_delete_note(self):
        self.repo.save_note(_artifact("n1"))

        assert self.repo.delete_note("bob", "n1") is False
        assert self.repo.delete_note("alice", "n1") is True
        assert self.repo.get_note("alice", "n1") is None
        assert self.repo.delete_note("alice", "n1") is False


class TestNotePage:
    """Test pagination arithmetic."""

    def test_has_more(self):
        assert NotePage(items=[], total=21, limit=20, offset=0).has_more is True
        assert NotePage(items=[], total=20, limit=20, offset=0).has_more is False
        assert NotePage(items=[], total=0).has_more is False
