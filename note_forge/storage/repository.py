"""
Repository pattern for note history.

Handles persistence of generated notes and paginated history queries.
"""

from datetime import datetime
from typing import List, Optional

from note_forge.config.loader import DEFAULT_DB_PATH
from .db import get_connection
from .ledger import LedgerRepository
from .models import GenerationArtifact, NotePage, NoteSummary

_NOTE_COLUMNS = (
    "id, user_id, title, template_id, page_count, coins_spent, "
    "html_content, created_at, warning"
)


def _row_to_artifact(row) -> GenerationArtifact:
    return GenerationArtifact(
        id=row[0],
        user_id=row[1],
        title=row[2],
        template_id=row[3],
        page_count=row[4],
        coins_spent=row[5],
        html_content=row[6],
        created_at=datetime.fromisoformat(row[7]),
        warning=row[8]
    )


class NoteRepository:
    """Repository for generated notes.

    Every query is scoped to the owning user; a note id alone never
    exposes another user's document.
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        """Initialize the repository with a database path.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path

    def initialize_schema(self) -> None:
        """Create the user_notes table if it doesn't exist."""
        conn = get_connection(self.db_path)
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS user_notes (
                    id TEXT PRIMARY KEY,
                    user_id TEXT,
                    title TEXT NOT NULL,
                    template_id TEXT NOT NULL,
                    page_count INTEGER NOT NULL,
                    coins_spent INTEGER NOT NULL DEFAULT 0,
                    html_content TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    warning TEXT
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_user_notes_user_created
                ON user_notes (user_id, created_at)
            """)
            conn.commit()
        finally:
            conn.close()

    def save_note(self, artifact: GenerationArtifact) -> None:
        """Insert a generated note.

        Args:
            artifact: The note to record
        """
        conn = get_connection(self.db_path)
        try:
            conn.execute(f"""
                INSERT INTO user_notes ({_NOTE_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                artifact.id,
                artifact.user_id,
                artifact.title,
                artifact.template_id,
                artifact.page_count,
                artifact.coins_spent,
                artifact.html_content,
                artifact.created_at.isoformat(),
                artifact.warning
            ))
            conn.commit()
        finally:
            conn.close()

    def list_notes(self, user_id: str, limit: int = 20, offset: int = 0) -> NotePage:
        """Get a page of a user's notes, newest first.

        Args:
            user_id: Owner of the notes
            limit: Maximum number of notes to return
            offset: Number of notes to skip

        Returns:
            NotePage with summaries and the user's total note count
        """
        if limit <= 0:
            raise ValueError("limit must be > 0")
        if offset < 0:
            raise ValueError("offset must be >= 0")

        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute("""
                SELECT id, title, template_id, page_count, coins_spent, created_at
                FROM user_notes
                WHERE user_id = ?
                ORDER BY created_at DESC, rowid DESC
                LIMIT ? OFFSET ?
            """, (user_id, limit, offset))
            items: List[NoteSummary] = [
                NoteSummary(
                    id=row[0],
                    title=row[1],
                    template_id=row[2],
                    page_count=row[3],
                    coins_spent=row[4],
                    created_at=datetime.fromisoformat(row[5])
                )
                for row in cursor.fetchall()
            ]

            total = conn.execute(
                "SELECT COUNT(*) FROM user_notes WHERE user_id = ?", (user_id,)
            ).fetchone()[0]
        finally:
            conn.close()

        return NotePage(items=items, total=total, limit=limit, offset=offset)

    def get_note(self, user_id: str, note_id: str) -> Optional[GenerationArtifact]:
        """Fetch one of the user's notes, or None if it doesn't exist."""
        conn = get_connection(self.db_path)
        try:
            row = conn.execute(
                f"SELECT {_NOTE_COLUMNS} FROM user_notes WHERE id = ? AND user_id = ?",
                (note_id, user_id)
            ).fetchone()
        finally:
            conn.close()
        return _row_to_artifact(row) if row else None

    def delete_note(self, user_id: str, note_id: str) -> bool:
        """Delete one of the user's notes.

        Returns:
            True if a note was deleted
        """
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute(
                "DELETE FROM user_notes WHERE id = ? AND user_id = ?",
                (note_id, user_id)
            )
            conn.commit()
            return cursor.rowcount > 0
        finally:
            conn.close()


def initialize_schema(db_path: str = DEFAULT_DB_PATH) -> None:
    """Create every table the service uses.

    Args:
        db_path: Path to SQLite database file
    """
    NoteRepository(db_path).initialize_schema()
    LedgerRepository(db_path).initialize_schema()
