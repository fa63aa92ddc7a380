"""SQLite-backed puzzle and collection store."""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from typing import Iterable, Optional

from gopuzzles.catalog.models import (
    Category,
    Collection,
    Color,
    CompletionEvent,
    EntityKind,
    Move,
    Puzzle,
    PuzzleSummary,
    Variation,
    board_from_rows,
    board_to_rows,
    validate_collection,
    validate_puzzle,
)
from gopuzzles.errors import Conflict, NotFound
from gopuzzles.state.database import Database, to_timestamp, utc_now

logger = logging.getLogger(__name__)

_TABLES = {EntityKind.PUZZLE: "puzzles", EntityKind.COLLECTION: "collections"}
_COUNTERS = {"views", "likes", "attempt_count", "completed_count"}

_SUMMARY_SELECT = """
    SELECT p.id, p.collection_id, c.name AS collection_name, c.private AS collection_private,
           p.name, p.difficulty, p.category, p.views, p.likes, p.attempt_count, p.completed_count
    FROM puzzles p JOIN collections c ON c.id = p.collection_id
"""


def _variations_to_json(variations: list[Variation]) -> str:
    return json.dumps([
        {
            "moves": [
                {"row": m.row, "col": m.col, "color": Color(m.color).value, "moveNumber": m.move_number}
                for m in v.moves
            ],
            "correct": v.correct,
            "comment": v.comment,
        }
        for v in variations
    ])


def _variations_from_json(raw: str) -> list[Variation]:
    return [
        Variation(
            moves=[
                Move(row=m["row"], col=m["col"], color=Color(m["color"]), move_number=m["moveNumber"])
                for m in v.get("moves", [])
            ],
            correct=v["correct"],
            comment=v.get("comment"),
        )
        for v in json.loads(raw)
    ]


def _summary_from_row(row: sqlite3.Row) -> PuzzleSummary:
    return PuzzleSummary(
        id=row["id"],
        collection_id=row["collection_id"],
        collection_name=row["collection_name"],
        collection_private=bool(row["collection_private"]),
        name=row["name"],
        difficulty=row["difficulty"],
        category=Category(row["category"]),
        views=row["views"],
        likes=row["likes"],
        attempt_count=row["attempt_count"],
        completed_count=row["completed_count"],
    )


class CatalogStore:
    """Read/write access to collections, puzzles, likes and completion events.

    Write methods take an optional ``conn`` so callers can fold several
    writes (across this store and the progress store) into one transaction.
    """

    def __init__(self, db: Database):
        self.db = db

    # --- Catalog edits ---

    def add_collection(self, collection: Collection, conn: Optional[sqlite3.Connection] = None) -> Collection:
        validate_collection(collection)
        collection.id = collection.id or uuid.uuid4().hex
        collection.created_at = collection.created_at or to_timestamp(utc_now())
        with self.db.using(conn) as c:
            c.execute(
                """INSERT INTO collections
                   (id, name, description, difficulty, private, color_transform,
                    position_transform, author, views, likes, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    collection.id, collection.name, collection.description, collection.difficulty,
                    int(collection.private), int(collection.color_transform),
                    int(collection.position_transform), collection.author,
                    collection.views, collection.likes, collection.created_at,
                ),
            )
        logger.info("Added collection %s (%s)", collection.id, collection.name)
        return collection

    def add_puzzle(self, puzzle: Puzzle, conn: Optional[sqlite3.Connection] = None) -> Puzzle:
        validate_puzzle(puzzle)
        puzzle.category = Category.parse(puzzle.category)
        puzzle.id = puzzle.id or uuid.uuid4().hex
        puzzle.created_at = puzzle.created_at or to_timestamp(utc_now())
        with self.db.using(conn) as c:
            self._require(c, EntityKind.COLLECTION, puzzle.collection_id)
            c.execute(
                """INSERT INTO puzzles
                   (id, collection_id, name, description, difficulty, category, next_to_play,
                    initial_position, variations, author, views, likes, attempt_count,
                    completed_count, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    puzzle.id, puzzle.collection_id, puzzle.name, puzzle.description,
                    puzzle.difficulty, puzzle.category.value, Color(puzzle.next_to_play).value,
                    json.dumps(board_to_rows(puzzle.initial_position)),
                    _variations_to_json(puzzle.variations), puzzle.author,
                    puzzle.views, puzzle.likes, puzzle.attempt_count,
                    puzzle.completed_count, puzzle.created_at,
                ),
            )
        logger.info("Added puzzle %s to collection %s", puzzle.id, puzzle.collection_id)
        return puzzle

    def delete_puzzle(self, puzzle_id: str, conn: Optional[sqlite3.Connection] = None) -> None:
        """Delete a puzzle with its likes; events and progress cascade."""
        with self.db.using(conn) as c:
            self._require(c, EntityKind.PUZZLE, puzzle_id)
            c.execute("DELETE FROM likes WHERE kind = ? AND entity_id = ?", (EntityKind.PUZZLE.value, puzzle_id))
            c.execute("DELETE FROM puzzles WHERE id = ?", (puzzle_id,))
        logger.info("Deleted puzzle %s", puzzle_id)

    def delete_collection(self, collection_id: str, conn: Optional[sqlite3.Connection] = None) -> None:
        """Delete a collection and everything it owns."""
        with self.db.using(conn) as c:
            self._require(c, EntityKind.COLLECTION, collection_id)
            c.execute(
                """DELETE FROM likes WHERE kind = ? AND entity_id IN
                   (SELECT id FROM puzzles WHERE collection_id = ?)""",
                (EntityKind.PUZZLE.value, collection_id),
            )
            c.execute(
                "DELETE FROM likes WHERE kind = ? AND entity_id = ?",
                (EntityKind.COLLECTION.value, collection_id),
            )
            c.execute("DELETE FROM collections WHERE id = ?", (collection_id,))
        logger.info("Deleted collection %s", collection_id)

    # --- Counters and event log ---

    def _require(self, conn: sqlite3.Connection, kind: EntityKind, entity_id: str) -> None:
        row = conn.execute(f"SELECT 1 FROM {_TABLES[kind]} WHERE id = ?", (entity_id,)).fetchone()
        if row is None:
            raise NotFound(f"{kind.value.capitalize()} not found: {entity_id}")

    def _increment(self, conn: sqlite3.Connection, kind: EntityKind, column: str, entity_id: str) -> int:
        if column not in _COUNTERS:
            raise ValueError(f"Not a counter column: {column!r}")
        table = _TABLES[kind]
        cur = conn.execute(f"UPDATE {table} SET {column} = {column} + 1 WHERE id = ?", (entity_id,))
        if cur.rowcount == 0:
            raise NotFound(f"{kind.value.capitalize()} not found: {entity_id}")
        return conn.execute(f"SELECT {column} FROM {table} WHERE id = ?", (entity_id,)).fetchone()[0]

    def increment_views(self, kind: EntityKind, entity_id: str, conn: Optional[sqlite3.Connection] = None) -> int:
        with self.db.using(conn) as c:
            return self._increment(c, EntityKind(kind), "views", entity_id)

    def increment_attempts(self, puzzle_id: str, conn: Optional[sqlite3.Connection] = None) -> int:
        with self.db.using(conn) as c:
            return self._increment(c, EntityKind.PUZZLE, "attempt_count", puzzle_id)

    def increment_completions(self, puzzle_id: str, conn: Optional[sqlite3.Connection] = None) -> int:
        with self.db.using(conn) as c:
            return self._increment(c, EntityKind.PUZZLE, "completed_count", puzzle_id)

    def add_like(
        self,
        kind: EntityKind,
        entity_id: str,
        visitor_id: str,
        conn: Optional[sqlite3.Connection] = None,
    ) -> int:
        """Add the visitor to the entity's liked-by set and return the new like count.

        Raises Conflict if the visitor already liked it; the membership insert
        and the counter increment commit together.
        """
        kind = EntityKind(kind)
        with self.db.using(conn) as c:
            self._require(c, kind, entity_id)
            cur = c.execute(
                "INSERT OR IGNORE INTO likes (kind, entity_id, visitor_id, created_at) VALUES (?, ?, ?, ?)",
                (kind.value, entity_id, visitor_id, to_timestamp(utc_now())),
            )
            if cur.rowcount == 0:
                raise Conflict("Already liked")
            return self._increment(c, kind, "likes", entity_id)

    def append_completion_event(
        self,
        puzzle_id: str,
        event: CompletionEvent,
        conn: Optional[sqlite3.Connection] = None,
    ) -> None:
        with self.db.using(conn) as c:
            c.execute(
                "INSERT INTO completion_events (puzzle_id, visitor_id, move_count, completed_at) VALUES (?, ?, ?, ?)",
                (puzzle_id, event.visitor_id, event.move_count, event.completed_at),
            )

    # --- Lookups ---

    def _liked_by(self, conn: sqlite3.Connection, kind: EntityKind, entity_id: str) -> set[str]:
        rows = conn.execute(
            "SELECT visitor_id FROM likes WHERE kind = ? AND entity_id = ?", (kind.value, entity_id)
        ).fetchall()
        return {r["visitor_id"] for r in rows}

    def _puzzle_from_row(self, conn: sqlite3.Connection, row: sqlite3.Row) -> Puzzle:
        events = conn.execute(
            "SELECT visitor_id, move_count, completed_at FROM completion_events WHERE puzzle_id = ? ORDER BY seq",
            (row["id"],),
        ).fetchall()
        return Puzzle(
            id=row["id"],
            collection_id=row["collection_id"],
            name=row["name"],
            description=row["description"],
            difficulty=row["difficulty"],
            category=Category(row["category"]),
            next_to_play=Color(row["next_to_play"]),
            initial_position=board_from_rows(json.loads(row["initial_position"])),
            variations=_variations_from_json(row["variations"]),
            author=row["author"],
            views=row["views"],
            likes=row["likes"],
            liked_by=self._liked_by(conn, EntityKind.PUZZLE, row["id"]),
            attempt_count=row["attempt_count"],
            completed_count=row["completed_count"],
            completions=[
                CompletionEvent(visitor_id=e["visitor_id"], move_count=e["move_count"], completed_at=e["completed_at"])
                for e in events
            ],
            created_at=row["created_at"],
        )

    def _collection_from_row(self, conn: sqlite3.Connection, row: sqlite3.Row) -> Collection:
        return Collection(
            id=row["id"],
            name=row["name"],
            description=row["description"],
            difficulty=row["difficulty"],
            private=bool(row["private"]),
            color_transform=bool(row["color_transform"]),
            position_transform=bool(row["position_transform"]),
            author=row["author"],
            views=row["views"],
            likes=row["likes"],
            liked_by=self._liked_by(conn, EntityKind.COLLECTION, row["id"]),
            puzzle_ids=self._puzzle_ids(conn, row["id"]),
            created_at=row["created_at"],
        )

    def _puzzle_ids(self, conn: sqlite3.Connection, collection_id: str) -> list[str]:
        rows = conn.execute(
            "SELECT id FROM puzzles WHERE collection_id = ? ORDER BY created_at, rowid", (collection_id,)
        ).fetchall()
        return [r["id"] for r in rows]

    def get_puzzle(self, puzzle_id: str) -> Puzzle:
        with self.db.reading() as conn:
            row = conn.execute("SELECT * FROM puzzles WHERE id = ?", (puzzle_id,)).fetchone()
            if row is None:
                raise NotFound(f"Puzzle not found: {puzzle_id}")
            return self._puzzle_from_row(conn, row)

    def get_collection(self, collection_id: str) -> Collection:
        with self.db.reading() as conn:
            row = conn.execute("SELECT * FROM collections WHERE id = ?", (collection_id,)).fetchone()
            if row is None:
                raise NotFound(f"Collection not found: {collection_id}")
            return self._collection_from_row(conn, row)

    def list_collections(self, include_private: bool = False) -> list[Collection]:
        query = "SELECT * FROM collections"
        if not include_private:
            query += " WHERE private = 0"
        with self.db.reading() as conn:
            rows = conn.execute(query + " ORDER BY created_at DESC, rowid DESC").fetchall()
            return [self._collection_from_row(conn, r) for r in rows]

    def puzzles_in_collection(self, collection_id: str) -> list[PuzzleSummary]:
        with self.db.reading() as conn:
            rows = conn.execute(
                _SUMMARY_SELECT + " WHERE p.collection_id = ? ORDER BY p.created_at, p.rowid",
                (collection_id,),
            ).fetchall()
        return [_summary_from_row(r) for r in rows]

    def summaries(self, puzzle_ids: Iterable[str]) -> dict[str, PuzzleSummary]:
        ids = list(dict.fromkeys(puzzle_ids))
        if not ids:
            return {}
        placeholders = ", ".join("?" * len(ids))
        with self.db.reading() as conn:
            rows = conn.execute(_SUMMARY_SELECT + f" WHERE p.id IN ({placeholders})", ids).fetchall()
        return {r["id"]: _summary_from_row(r) for r in rows}

    def candidate_puzzles(
        self,
        exclude_ids: Iterable[str],
        min_difficulty: int,
        max_difficulty: int,
        category: Category,
    ) -> list[PuzzleSummary]:
        """Puzzles inside the difficulty window OR in the category, minus exclusions."""
        excluded = set(exclude_ids)
        with self.db.reading() as conn:
            rows = conn.execute(
                _SUMMARY_SELECT + " WHERE (p.difficulty BETWEEN ? AND ?) OR p.category = ?"
                " ORDER BY p.created_at, p.rowid",
                (min_difficulty, max_difficulty, Category(category).value),
            ).fetchall()
        return [_summary_from_row(r) for r in rows if r["id"] not in excluded]

    # --- Aggregates ---

    def count_collections(self) -> int:
        with self.db.reading() as conn:
            return conn.execute("SELECT COUNT(*) FROM collections").fetchone()[0]

    def count_puzzles(self, collection_id: Optional[str] = None) -> int:
        with self.db.reading() as conn:
            if collection_id is None:
                return conn.execute("SELECT COUNT(*) FROM puzzles").fetchone()[0]
            return conn.execute(
                "SELECT COUNT(*) FROM puzzles WHERE collection_id = ?", (collection_id,)
            ).fetchone()[0]

    def difficulty_distribution(self) -> list[tuple[int, int]]:
        with self.db.reading() as conn:
            rows = conn.execute(
                "SELECT difficulty, COUNT(*) AS n FROM puzzles GROUP BY difficulty ORDER BY difficulty"
            ).fetchall()
        return [(r["difficulty"], r["n"]) for r in rows]

    def category_distribution(self) -> list[tuple[Category, int]]:
        with self.db.reading() as conn:
            rows = conn.execute(
                "SELECT category, COUNT(*) AS n FROM puzzles GROUP BY category ORDER BY n DESC, category"
            ).fetchall()
        return [(Category(r["category"]), r["n"]) for r in rows]

    def popular_collections(self, limit: int = 5) -> list[Collection]:
        with self.db.reading() as conn:
            rows = conn.execute(
                "SELECT * FROM collections ORDER BY views DESC, likes DESC, created_at LIMIT ?", (limit,)
            ).fetchall()
            return [self._collection_from_row(conn, r) for r in rows]

    def export_rows(self, kind: EntityKind) -> list[dict]:
        """Raw rows for the admin export, with JSON columns decoded."""
        kind = EntityKind(kind)
        with self.db.reading() as conn:
            rows = [dict(r) for r in conn.execute(f"SELECT * FROM {_TABLES[kind]} ORDER BY created_at, rowid")]
            for row in rows:
                row["likedBy"] = sorted(self._liked_by(conn, kind, row["id"]))
                if kind is EntityKind.PUZZLE:
                    row["initial_position"] = json.loads(row["initial_position"])
                    row["variations"] = json.loads(row["variations"])
                    row["completedBy"] = [
                        dict(e) for e in conn.execute(
                            "SELECT visitor_id, move_count, completed_at FROM completion_events"
                            " WHERE puzzle_id = ? ORDER BY seq",
                            (row["id"],),
                        )
                    ]
                else:
                    row["private"] = bool(row["private"])
        return rows
