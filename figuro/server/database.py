"""
Favorites database - SQLite persistence for the sync backend.

One row per (user, item, language, kind). Rows are returned newest first.
"""

import json
import sqlite3
import time
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional

from loguru import logger

from ..errors import CapacityExceeded


class FavoritesDatabase:
    """
    SQLite-backed favorites table.

    Connections are opened per call; the database file is created on
    first use together with its schema.
    """

    SCHEMA_VERSION = 1

    def __init__(self, db_path: str, capacity: int = 50):
        """
        Initialize the database.

        Args:
            db_path: Path to the SQLite file
            capacity: Maximum favorites per user
        """
        self.db_path = Path(db_path)
        self.capacity = capacity
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    def _init_schema(self) -> None:
        with self._get_connection() as conn:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY,
                    applied_at TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS favorites (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    idiom TEXT NOT NULL,
                    language TEXT NOT NULL,
                    type TEXT NOT NULL DEFAULT 'idioms',
                    meaning TEXT NOT NULL,
                    history TEXT NOT NULL,
                    examples TEXT NOT NULL,
                    audio_url TEXT,
                    saved_at INTEGER NOT NULL,
                    UNIQUE(user_id, idiom, language, type)
                )
            """)

            cursor.execute("CREATE INDEX IF NOT EXISTS idx_user_favorites ON favorites(user_id)")
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_saved_at ON favorites(saved_at DESC)")

            cursor.execute("INSERT OR IGNORE INTO schema_version (version, applied_at) VALUES (?, ?)",
                           (self.SCHEMA_VERSION, datetime.now().isoformat()))
            conn.commit()

    @staticmethod
    def _row_to_dict(row: sqlite3.Row) -> Dict[str, Any]:
        data = dict(row)
        try:
            data["examples"] = json.loads(data.get("examples") or "[]")
        except json.JSONDecodeError:
            data["examples"] = []
        return data

    def get_favorites(self, user_id: str) -> List[Dict[str, Any]]:
        """All favorites of a user, newest first, capped."""
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM favorites WHERE user_id = ? ORDER BY saved_at DESC LIMIT ?",
                (user_id, self.capacity),
            ).fetchall()
        return [self._row_to_dict(r) for r in rows]

    def count(self, user_id: str) -> int:
        with self._get_connection() as conn:
            row = conn.execute("SELECT COUNT(*) FROM favorites WHERE user_id = ?", (user_id,)).fetchone()
        return int(row[0])

    def get_favorite(self, user_id: str, idiom: str, language: str, kind: str) -> Optional[Dict[str, Any]]:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM favorites WHERE user_id = ? AND idiom = ? AND language = ? AND type = ?",
                (user_id, idiom, language, kind),
            ).fetchone()
        return self._row_to_dict(row) if row else None

    def add_favorite(self, favorite: Dict[str, Any]) -> int:
        """
        Insert or replace a favorite.

        Args:
            favorite: user_id, idiom, language, type, meaning, history,
                examples, audio_url, saved_at

        Returns:
            Row id

        Raises:
            CapacityExceeded: the user is full and the favorite is new
        """
        kind = favorite.get("type") or "idioms"
        saved_at = int(favorite.get("saved_at") or time.time() * 1000)
        with self._get_connection() as conn:
            existing = conn.execute(
                "SELECT id FROM favorites WHERE user_id = ? AND idiom = ? AND language = ? AND type = ?",
                (favorite["user_id"], favorite["idiom"], favorite["language"], kind),
            ).fetchone()

            if existing is None:
                count = conn.execute(
                    "SELECT COUNT(*) FROM favorites WHERE user_id = ?", (favorite["user_id"],)
                ).fetchone()[0]
                if count >= self.capacity:
                    raise CapacityExceeded(self.capacity)

            params = (
                favorite.get("meaning", ""),
                favorite.get("history", ""),
                json.dumps(list(favorite.get("examples") or []), ensure_ascii=False),
                favorite.get("audio_url"),
                saved_at,
            )
            if existing is None:
                cursor = conn.execute(
                    """INSERT INTO favorites
                       (user_id, idiom, language, type, meaning, history, examples, audio_url, saved_at)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                    (favorite["user_id"], favorite["idiom"], favorite["language"], kind) + params,
                )
                row_id = cursor.lastrowid
            else:
                conn.execute(
                    """UPDATE favorites
                       SET meaning = ?, history = ?, examples = ?,
                           audio_url = COALESCE(?, audio_url), saved_at = ?
                       WHERE id = ?""",
                    params + (existing["id"],),
                )
                row_id = existing["id"]
            conn.commit()
        return int(row_id)

    def delete_favorite(
        self, user_id: str, idiom: str, language: str, kind: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """
        Delete a favorite.

        Without kind, every kind of the (idiom, language) pair is removed.

        Returns:
            The deleted rows (for media cleanup)
        """
        query = "SELECT * FROM favorites WHERE user_id = ? AND idiom = ? AND language = ?"
        params: tuple = (user_id, idiom, language)
        if kind:
            query += " AND type = ?"
            params += (kind,)

        with self._get_connection() as conn:
            rows = conn.execute(query, params).fetchall()
            if not rows:
                return []
            conn.executemany("DELETE FROM favorites WHERE id = ?", [(r["id"],) for r in rows])
            conn.commit()
        logger.debug(f"Deleted {len(rows)} favorite row(s) for user {user_id}")
        return [self._row_to_dict(r) for r in rows]
