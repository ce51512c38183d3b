"""SQLite cache of parsed sessions, keyed by transcript path and mtime."""

import logging
import sqlite3
from pathlib import Path
from typing import Optional

import orjson

from claude_roi.serialization import dumps, session_from_dict, session_to_dict
from claude_roi.types import Session

logger = logging.getLogger(__name__)

CACHE_DIR = Path.home() / ".cache" / "claude-roi"
CACHE_VERSION = 1


class SessionCache:
    """Caches parsed sessions to avoid re-parsing unchanged JSONL files."""

    def __init__(self, db_path: str | None = None):
        if db_path is None:
            CACHE_DIR.mkdir(parents=True, exist_ok=True)
            db_path = str(CACHE_DIR / "sessions.db")
        self._db_path = db_path
        self._conn = sqlite3.connect(db_path)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA synchronous=NORMAL")
        self._conn.row_factory = sqlite3.Row
        self._create_table()

    def _create_table(self):
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS parsed_sessions (
                file_path TEXT PRIMARY KEY,
                file_size INTEGER NOT NULL,
                mtime REAL NOT NULL,
                version INTEGER NOT NULL,
                payload BLOB NOT NULL
            )
        """)
        self._conn.commit()

    def get(self, file_path: str, file_size: int, mtime: float) -> Optional[Session]:
        """Return the cached session if the transcript is unchanged."""
        row = self._conn.execute(
            "SELECT * FROM parsed_sessions WHERE file_path = ?",
            (file_path,)
        ).fetchone()
        if row is None:
            return None
        if row["version"] != CACHE_VERSION:
            return None
        if row["file_size"] != file_size or abs(row["mtime"] - mtime) > 0.001:
            return None
        try:
            return session_from_dict(orjson.loads(row["payload"]))
        except (orjson.JSONDecodeError, KeyError, TypeError, ValueError):
            logger.debug("Discarding unreadable cache row for %s", file_path, exc_info=True)
            return None

    def put(self, file_path: str, file_size: int, mtime: float, session: Session):
        self._conn.execute("""
            INSERT OR REPLACE INTO parsed_sessions
            (file_path, file_size, mtime, version, payload)
            VALUES (?, ?, ?, ?, ?)
        """, (file_path, file_size, mtime, CACHE_VERSION, dumps(session_to_dict(session))))
        self._conn.commit()

    def paths(self) -> list[str]:
        rows = self._conn.execute("SELECT file_path FROM parsed_sessions").fetchall()
        return [r["file_path"] for r in rows]

    def remove(self, file_path: str):
        self._conn.execute(
            "DELETE FROM parsed_sessions WHERE file_path = ?",
            (file_path,)
        )
        self._conn.commit()

    def prune(self) -> int:
        """Drop rows for transcripts deleted from disk. Returns the count removed."""
        stale = [p for p in self.paths() if not Path(p).exists()]
        for path in stale:
            self.remove(path)
        return len(stale)

    def clear(self):
        self._conn.execute("DELETE FROM parsed_sessions")
        self._conn.commit()

    def close(self):
        self._conn.close()
