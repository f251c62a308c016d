"""
SQLite Database Manager for Beatfolio.
Holds beats with their authoritative like/dislike counters, comments and the
artist profile.
"""

import sqlite3
import json
import logging
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import List, Dict, Any, Optional, Iterator

from shared.models import Beat, Comment, Profile, utc_now_iso
from shared.constants import DEFAULT_DATA_DIR, DATABASE_FILENAME, MAX_REACTION_COUNT, MAX_REACTION_DELTA

logger = logging.getLogger(__name__)

# Fields the admin may edit after upload
EDITABLE_BEAT_FIELDS = ("title", "bpm", "key", "description", "for_sale", "price", "cover_path")


class DatabaseManager:
    def __init__(self, db_path: Optional[str] = None):
        if db_path is None:
            db_dir = Path(DEFAULT_DATA_DIR).expanduser()
            self.db_path = db_dir / DATABASE_FILENAME
        else:
            self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._init_db()

    @contextmanager
    def _get_connection(self) -> Iterator[sqlite3.Connection]:
        # Autocommit mode; transactions are opened explicitly
        conn = sqlite3.connect(self.db_path, isolation_level=None, timeout=10)
        conn.row_factory = sqlite3.Row
        try:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")
            conn.execute("PRAGMA foreign_keys=ON")
            yield conn
        finally:
            conn.close()

    @contextmanager
    def _transaction(self, immediate: bool = False) -> Iterator[sqlite3.Connection]:
        with self._get_connection() as conn:
            conn.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
            try:
                yield conn
                conn.execute("COMMIT")
            except Exception:
                conn.execute("ROLLBACK")
                raise

    def _init_db(self):
        """Initialize the database schema."""
        with self._transaction() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS beats (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    bpm INTEGER DEFAULT 0,
                    key TEXT DEFAULT '',
                    cover_path TEXT DEFAULT '',
                    audio_path TEXT NOT NULL,
                    description TEXT DEFAULT '',
                    created_at TEXT NOT NULL,
                    like_count INTEGER NOT NULL DEFAULT 0 CHECK (like_count >= 0),
                    dislike_count INTEGER NOT NULL DEFAULT 0 CHECK (dislike_count >= 0),
                    for_sale BOOLEAN DEFAULT 0,
                    price REAL
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS comments (
                    id TEXT PRIMARY KEY,
                    beat_id TEXT NOT NULL REFERENCES beats(id) ON DELETE CASCADE,
                    author TEXT NOT NULL,
                    content TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_comments_beat ON comments(beat_id, created_at)")

            conn.execute("""
                CREATE TABLE IF NOT EXISTS settings (
                    key TEXT PRIMARY KEY,
                    value TEXT
                )
            """)

    # --- Beats ---

    def get_all_beats(self) -> List[Beat]:
        """Fetch all beats, newest first."""
        with self._get_connection() as conn:
            cursor = conn.execute("SELECT * FROM beats ORDER BY created_at DESC")
            return [self._row_to_beat(row) for row in cursor.fetchall()]

    def get_beat(self, beat_id: str) -> Optional[Beat]:
        with self._get_connection() as conn:
            row = conn.execute("SELECT * FROM beats WHERE id = ?", (beat_id,)).fetchone()
            return self._row_to_beat(row) if row else None

    def add_beat(self, beat: Beat) -> Beat:
        """Insert a beat. Counters start from the beat's values, floored at zero."""
        beat.like_count = min(MAX_REACTION_COUNT, max(0, beat.like_count or 0))
        beat.dislike_count = min(MAX_REACTION_COUNT, max(0, beat.dislike_count or 0))
        with self._transaction() as conn:
            conn.execute("""
                INSERT INTO beats (
                    id, title, bpm, key, cover_path, audio_path, description,
                    created_at, like_count, dislike_count, for_sale, price
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                beat.id, beat.title, beat.bpm, beat.key, beat.cover_path,
                beat.audio_path, beat.description, beat.created_at,
                beat.like_count, beat.dislike_count, beat.for_sale, beat.price
            ))
        return beat

    def update_beat(self, beat_id: str, updates: Dict[str, Any]) -> Optional[Beat]:
        """
        Apply metadata updates to a beat.

        Only EDITABLE_BEAT_FIELDS are written; counters are never touched here.

        Returns:
            The updated beat, or None if it does not exist
        """
        clean = {k: v for k, v in updates.items() if k in EDITABLE_BEAT_FIELDS}
        with self._transaction(immediate=True) as conn:
            if clean:
                assignments = ", ".join(f"{name} = ?" for name in clean)
                conn.execute(
                    f"UPDATE beats SET {assignments} WHERE id = ?",
                    (*clean.values(), beat_id)
                )
            row = conn.execute("SELECT * FROM beats WHERE id = ?", (beat_id,)).fetchone()
        return self._row_to_beat(row) if row else None

    def apply_reaction_delta(self, beat_id: str, like_delta: int, dislike_delta: int) -> Optional[Beat]:
        """
        Add signed deltas to the like/dislike counters, clamping each to
        [0, MAX_REACTION_COUNT].

        Returns:
            The beat with its new totals, or None if the beat does not exist

        Raises:
            ValueError: If a delta exceeds MAX_REACTION_DELTA in magnitude
        """
        if abs(like_delta) > MAX_REACTION_DELTA or abs(dislike_delta) > MAX_REACTION_DELTA:
            raise ValueError(f"Reaction delta out of range: {like_delta}, {dislike_delta}")

        with self._transaction(immediate=True) as conn:
            cursor = conn.execute("""
                UPDATE beats SET
                    like_count = MIN(?, MAX(0, like_count + ?)),
                    dislike_count = MIN(?, MAX(0, dislike_count + ?))
                WHERE id = ?
            """, (MAX_REACTION_COUNT, like_delta, MAX_REACTION_COUNT, dislike_delta, beat_id))
            if cursor.rowcount == 0:
                return None
            row = conn.execute("SELECT * FROM beats WHERE id = ?", (beat_id,)).fetchone()
        return self._row_to_beat(row)

    def delete_beat(self, beat_id: str) -> Optional[Beat]:
        """
        Delete a beat and its comments.

        Returns:
            The deleted beat (so callers can clean up media), or None if not found
        """
        with self._transaction(immediate=True) as conn:
            row = conn.execute("SELECT * FROM beats WHERE id = ?", (beat_id,)).fetchone()
            if not row:
                return None
            conn.execute("DELETE FROM comments WHERE beat_id = ?", (beat_id,))
            conn.execute("DELETE FROM beats WHERE id = ?", (beat_id,))
        return self._row_to_beat(row)

    def _row_to_beat(self, row: sqlite3.Row) -> Beat:
        data = dict(row)
        data['for_sale'] = bool(data.get('for_sale'))
        return Beat.from_dict(data)

    # --- Comments ---

    def get_comments(self, beat_id: str) -> List[Comment]:
        """Comments for a beat, oldest first."""
        with self._get_connection() as conn:
            cursor = conn.execute(
                "SELECT * FROM comments WHERE beat_id = ? ORDER BY created_at ASC, rowid ASC",
                (beat_id,)
            )
            return [Comment.from_dict(dict(row)) for row in cursor.fetchall()]

    def add_comment(self, beat_id: str, author: str, content: str) -> Comment:
        comment = Comment(id=str(uuid.uuid4()), beat_id=beat_id, author=author, content=content)
        with self._transaction() as conn:
            conn.execute(
                "INSERT INTO comments (id, beat_id, author, content, created_at) VALUES (?, ?, ?, ?, ?)",
                (comment.id, comment.beat_id, comment.author, comment.content, comment.created_at)
            )
        return comment

    # --- Profile ---

    def get_profile(self) -> Profile:
        """Stored profile, or the default one when absent or unreadable."""
        with self._get_connection() as conn:
            row = conn.execute("SELECT value FROM settings WHERE key = 'profile'").fetchone()
        if not row:
            return Profile()
        try:
            return Profile.from_dict(json.loads(row["value"]))
        except (json.JSONDecodeError, TypeError, ValueError) as e:
            logger.warning(f"Stored profile is unreadable, using defaults: {e}")
            return Profile()

    def update_profile(self, profile: Profile) -> Profile:
        with self._transaction() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO settings (key, value) VALUES ('profile', ?)",
                (json.dumps(profile.to_dict()),)
            )
            conn.execute(
                "INSERT OR REPLACE INTO settings (key, value) VALUES ('profile_updated_at', ?)",
                (utc_now_iso(),)
            )
        return profile

    def get_stats(self) -> Dict[str, int]:
        with self._get_connection() as conn:
            beats = conn.execute("SELECT COUNT(*) FROM beats").fetchone()[0]
            comments = conn.execute("SELECT COUNT(*) FROM comments").fetchone()[0]
            likes, dislikes = conn.execute(
                "SELECT COALESCE(SUM(like_count), 0), COALESCE(SUM(dislike_count), 0) FROM beats"
            ).fetchone()
            return {"beats": beats, "comments": comments, "likes": likes, "dislikes": dislikes}
