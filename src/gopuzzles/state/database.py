"""SQLite database shared by the catalog and progress stores."""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_timestamp(moment: datetime) -> str:
    """ISO-8601 UTC text; lexical order matches time order."""
    return moment.astimezone(timezone.utc).isoformat(timespec="microseconds")


SCHEMA = """
CREATE TABLE IF NOT EXISTS collections (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    description TEXT DEFAULT '',
    difficulty INTEGER NOT NULL,
    private INTEGER DEFAULT 0,
    color_transform INTEGER DEFAULT 0,
    position_transform INTEGER DEFAULT 0,
    author TEXT DEFAULT 'Admin',
    views INTEGER DEFAULT 0,
    likes INTEGER DEFAULT 0,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS puzzles (
    id TEXT PRIMARY KEY,
    collection_id TEXT NOT NULL REFERENCES collections(id) ON DELETE CASCADE,
    name TEXT NOT NULL,
    description TEXT DEFAULT '',
    difficulty INTEGER NOT NULL,
    category TEXT NOT NULL,
    next_to_play TEXT NOT NULL,
    initial_position TEXT NOT NULL,
    variations TEXT NOT NULL DEFAULT '[]',
    author TEXT DEFAULT 'Admin',
    views INTEGER DEFAULT 0,
    likes INTEGER DEFAULT 0,
    attempt_count INTEGER DEFAULT 0,
    completed_count INTEGER DEFAULT 0,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_puzzles_collection ON puzzles (collection_id, created_at);
CREATE INDEX IF NOT EXISTS idx_puzzles_difficulty ON puzzles (difficulty);
CREATE INDEX IF NOT EXISTS idx_puzzles_category ON puzzles (category);

CREATE TABLE IF NOT EXISTS likes (
    kind TEXT NOT NULL,
    entity_id TEXT NOT NULL,
    visitor_id TEXT NOT NULL,
    created_at TEXT NOT NULL,
    PRIMARY KEY (kind, entity_id, visitor_id)
);

CREATE TABLE IF NOT EXISTS completion_events (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    puzzle_id TEXT NOT NULL REFERENCES puzzles(id) ON DELETE CASCADE,
    visitor_id TEXT NOT NULL,
    move_count INTEGER,
    completed_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_events_puzzle ON completion_events (puzzle_id);

CREATE TABLE IF NOT EXISTS progress (
    visitor_id TEXT NOT NULL,
    puzzle_id TEXT NOT NULL REFERENCES puzzles(id) ON DELETE CASCADE,
    collection_id TEXT NOT NULL,
    attempts INTEGER DEFAULT 0,
    completed INTEGER DEFAULT 0,
    completed_at TEXT,
    best_moves INTEGER,
    best_time REAL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    PRIMARY KEY (visitor_id, puzzle_id)
);
CREATE INDEX IF NOT EXISTS idx_progress_collection ON progress (visitor_id, collection_id);
CREATE INDEX IF NOT EXISTS idx_progress_puzzle ON progress (puzzle_id);
"""


class Database:
    """Owns the schema and hands out connections and transactions."""

    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = db_path or (Path.home() / ".gopuzzles" / "gopuzzles.db")
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self) -> None:
        conn = self.connect()
        try:
            conn.executescript(SCHEMA)
        finally:
            conn.close()
        logger.debug("Database ready at %s", self.db_path)

    def connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, isolation_level=None, timeout=10)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection inside a write transaction.

        ``BEGIN IMMEDIATE`` takes the write lock up front, so a
        read-modify-write inside the block cannot interleave with another
        writer. The block commits on success and rolls back on any error.
        """
        conn = self.connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        finally:
            conn.close()

    @contextmanager
    def reading(self) -> Iterator[sqlite3.Connection]:
        conn = self.connect()
        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def using(self, conn: Optional[sqlite3.Connection]) -> Iterator[sqlite3.Connection]:
        """Join the caller's transaction if one is given, else open a new one."""
        if conn is not None:
            yield conn
        else:
            with self.transaction() as own:
                yield own
