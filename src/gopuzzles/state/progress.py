"""SQLite-backed per-visitor progress records for GoPuzzles."""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from typing import Optional

from gopuzzles.state.database import Database

logger = logging.getLogger(__name__)


@dataclass
class ProgressRecord:
    visitor_id: str
    puzzle_id: str
    collection_id: str
    attempts: int
    completed: bool
    completed_at: Optional[str]
    best_moves: Optional[int]
    best_time: Optional[float]
    created_at: str
    updated_at: str


@dataclass
class ProgressTotals:
    total_attempts: int
    total_completed: int
    unique_visitors: int


def _record_from_row(row: sqlite3.Row) -> ProgressRecord:
    return ProgressRecord(
        visitor_id=row["visitor_id"],
        puzzle_id=row["puzzle_id"],
        collection_id=row["collection_id"],
        attempts=row["attempts"],
        completed=bool(row["completed"]),
        completed_at=row["completed_at"],
        best_moves=row["best_moves"],
        best_time=row["best_time"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class ProgressStore:
    def __init__(self, db: Database):
        self.db = db

    def get(
        self,
        visitor_id: str,
        puzzle_id: str,
        conn: Optional[sqlite3.Connection] = None,
    ) -> Optional[ProgressRecord]:
        query = "SELECT * FROM progress WHERE visitor_id = ? AND puzzle_id = ?"
        if conn is not None:
            row = conn.execute(query, (visitor_id, puzzle_id)).fetchone()
        else:
            with self.db.reading() as own:
                row = own.execute(query, (visitor_id, puzzle_id)).fetchone()
        if not row:
            return None
        return _record_from_row(row)

    def for_visitor(self, visitor_id: str) -> list[ProgressRecord]:
        with self.db.reading() as conn:
            rows = conn.execute(
                "SELECT * FROM progress WHERE visitor_id = ? ORDER BY created_at, puzzle_id",
                (visitor_id,),
            ).fetchall()
        return [_record_from_row(r) for r in rows]

    def for_collection(self, collection_id: str, visitor_id: Optional[str] = None) -> list[ProgressRecord]:
        query = "SELECT * FROM progress WHERE collection_id = ?"
        params: tuple = (collection_id,)
        if visitor_id is not None:
            query += " AND visitor_id = ?"
            params += (visitor_id,)
        with self.db.reading() as conn:
            rows = conn.execute(query + " ORDER BY created_at, puzzle_id", params).fetchall()
        return [_record_from_row(r) for r in rows]

    def completed_puzzle_ids(self, visitor_id: str) -> set[str]:
        with self.db.reading() as conn:
            rows = conn.execute(
                "SELECT puzzle_id FROM progress WHERE visitor_id = ? AND completed = 1",
                (visitor_id,),
            ).fetchall()
        return {r["puzzle_id"] for r in rows}

    def increment_attempts(
        self,
        visitor_id: str,
        puzzle_id: str,
        collection_id: str,
        now: str,
        conn: Optional[sqlite3.Connection] = None,
    ) -> ProgressRecord:
        """Add one attempt, creating the record with attempts = 1 if absent."""
        with self.db.using(conn) as c:
            c.execute(
                """INSERT INTO progress
                   (visitor_id, puzzle_id, collection_id, attempts, created_at, updated_at)
                   VALUES (?, ?, ?, 1, ?, ?)
                   ON CONFLICT (visitor_id, puzzle_id) DO UPDATE SET
                       attempts = attempts + 1,
                       collection_id = excluded.collection_id,
                       updated_at = excluded.updated_at""",
                (visitor_id, puzzle_id, collection_id, now, now),
            )
            return self.get(visitor_id, puzzle_id, conn=c)

    def apply_completion(
        self,
        visitor_id: str,
        puzzle_id: str,
        collection_id: str,
        now: str,
        move_count: Optional[int] = None,
        elapsed_time: Optional[float] = None,
        conn: Optional[sqlite3.Connection] = None,
    ) -> ProgressRecord:
        """Mark completed and ratchet the best results in a single statement.

        ``completed_at`` is written once; ``best_moves``/``best_time`` only
        ever decrease and stay NULL when no value is supplied.
        """
        with self.db.using(conn) as c:
            c.execute(
                """INSERT INTO progress
                   (visitor_id, puzzle_id, collection_id, attempts, completed, completed_at,
                    best_moves, best_time, created_at, updated_at)
                   VALUES (?, ?, ?, 0, 1, ?, ?, ?, ?, ?)
                   ON CONFLICT (visitor_id, puzzle_id) DO UPDATE SET
                       completed = 1,
                       completed_at = COALESCE(completed_at, excluded.completed_at),
                       best_moves = CASE
                           WHEN excluded.best_moves IS NULL THEN best_moves
                           WHEN best_moves IS NULL THEN excluded.best_moves
                           ELSE MIN(best_moves, excluded.best_moves) END,
                       best_time = CASE
                           WHEN excluded.best_time IS NULL THEN best_time
                           WHEN best_time IS NULL THEN excluded.best_time
                           ELSE MIN(best_time, excluded.best_time) END,
                       collection_id = excluded.collection_id,
                       updated_at = excluded.updated_at""",
                (visitor_id, puzzle_id, collection_id, now, move_count, elapsed_time, now, now),
            )
            return self.get(visitor_id, puzzle_id, conn=c)

    def totals(self) -> ProgressTotals:
        with self.db.reading() as conn:
            row = conn.execute(
                """SELECT COALESCE(SUM(attempts), 0) AS attempts,
                          COALESCE(SUM(completed), 0) AS completed,
                          COUNT(DISTINCT visitor_id) AS visitors
                   FROM progress"""
            ).fetchone()
        return ProgressTotals(
            total_attempts=row["attempts"],
            total_completed=row["completed"],
            unique_visitors=row["visitors"],
        )

    def recent(self, limit: int, visitor_id: Optional[str] = None) -> list[ProgressRecord]:
        query = "SELECT * FROM progress"
        params: tuple = ()
        if visitor_id is not None:
            query += " WHERE visitor_id = ?"
            params = (visitor_id,)
        with self.db.reading() as conn:
            rows = conn.execute(query + " ORDER BY updated_at DESC LIMIT ?", params + (limit,)).fetchall()
        return [_record_from_row(r) for r in rows]

    def delete_stale(self, cutoff: str, conn: Optional[sqlite3.Connection] = None) -> int:
        """Delete never-completed records last updated before ``cutoff``."""
        with self.db.using(conn) as c:
            cur = c.execute(
                "DELETE FROM progress WHERE completed = 0 AND updated_at < ?",
                (cutoff,),
            )
            deleted = cur.rowcount
        logger.info("Deleted %d stale progress records older than %s", deleted, cutoff)
        return deleted

    def export_rows(self) -> list[dict]:
        with self.db.reading() as conn:
            rows = conn.execute("SELECT * FROM progress ORDER BY created_at, visitor_id, puzzle_id").fetchall()
        return [{**dict(r), "completed": bool(r["completed"])} for r in rows]
