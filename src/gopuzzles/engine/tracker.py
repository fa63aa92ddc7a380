"""Progress tracking: attempts, completions, views, likes and retention."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from gopuzzles.catalog.models import CompletionEvent, EntityKind
from gopuzzles.errors import InvalidArgument, NotFound
from gopuzzles.state.catalog import CatalogStore
from gopuzzles.state.database import to_timestamp, utc_now
from gopuzzles.state.progress import ProgressRecord, ProgressStore

logger = logging.getLogger(__name__)


def _check_non_negative(label: str, value, integral: bool) -> None:
    if value is None:
        return
    types = (int,) if integral else (int, float)
    if isinstance(value, bool) or not isinstance(value, types) or value < 0:
        raise InvalidArgument(f"{label} must be a non-negative number, got {value!r}")


class ProgressTracker:
    """Turns visitor actions into progress records and puzzle counters.

    Every operation runs in a single store transaction, so a failure leaves
    neither the puzzle counters nor the progress record half-updated.
    """

    def __init__(
        self,
        catalog: CatalogStore,
        progress: ProgressStore,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.catalog = catalog
        self.progress = progress
        self.clock = clock or utc_now

    def _collection_of(self, conn, puzzle_id: str) -> str:
        row = conn.execute("SELECT collection_id FROM puzzles WHERE id = ?", (puzzle_id,)).fetchone()
        if row is None:
            raise NotFound(f"Puzzle not found: {puzzle_id}")
        return row["collection_id"]

    def record_attempt(self, visitor_id: str, puzzle_id: str) -> ProgressRecord:
        now = to_timestamp(self.clock())
        with self.catalog.db.transaction() as conn:
            collection_id = self._collection_of(conn, puzzle_id)
            self.catalog.increment_attempts(puzzle_id, conn=conn)
            record = self.progress.increment_attempts(
                visitor_id, puzzle_id, collection_id, now, conn=conn
            )
        logger.debug("Attempt %d by %s on %s", record.attempts, visitor_id, puzzle_id)
        return record

    def record_completion(
        self,
        visitor_id: str,
        puzzle_id: str,
        move_count: Optional[int] = None,
        elapsed_time: Optional[float] = None,
        solved: bool = True,
    ) -> Optional[ProgressRecord]:
        """Record a successful solve.

        Best moves and best time ratchet downwards; a missing value leaves the
        stored best untouched. With ``solved=False`` nothing is written and
        None is returned, but the puzzle must still exist.
        """
        _check_non_negative("move_count", move_count, integral=True)
        _check_non_negative("elapsed_time", elapsed_time, integral=False)
        now = to_timestamp(self.clock())

        with self.catalog.db.transaction() as conn:
            collection_id = self._collection_of(conn, puzzle_id)
            if not solved:
                return None
            self.catalog.increment_completions(puzzle_id, conn=conn)
            self.catalog.append_completion_event(
                puzzle_id,
                CompletionEvent(visitor_id=visitor_id, move_count=move_count, completed_at=now),
                conn=conn,
            )
            record = self.progress.apply_completion(
                visitor_id,
                puzzle_id,
                collection_id,
                now,
                move_count=move_count,
                elapsed_time=elapsed_time,
                conn=conn,
            )
        logger.info(
            "Completion by %s on %s (moves=%s, time=%s, best_moves=%s)",
            visitor_id, puzzle_id, move_count, elapsed_time, record.best_moves,
        )
        return record

    def record_view(self, kind: EntityKind, entity_id: str) -> int:
        views = self.catalog.increment_views(EntityKind.parse(kind), entity_id)
        logger.debug("View on %s %s (now %d)", kind, entity_id, views)
        return views

    def like(self, kind: EntityKind, entity_id: str, visitor_id: str) -> int:
        likes = self.catalog.add_like(EntityKind.parse(kind), entity_id, visitor_id)
        logger.info("Like on %s %s by %s (now %d)", kind, entity_id, visitor_id, likes)
        return likes

    def cleanup_stale(self, days: int = 30) -> int:
        """Delete never-completed progress not touched for ``days`` days."""
        if isinstance(days, bool) or not isinstance(days, int) or days < 0:
            raise InvalidArgument(f"days must be a non-negative integer, got {days!r}")
        cutoff = to_timestamp(self.clock() - timedelta(days=days))
        return self.progress.delete_stale(cutoff)
