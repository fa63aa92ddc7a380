"""Server handler: dispatches JSON-lines requests to the tracker engines."""

from __future__ import annotations

import logging
import secrets
from datetime import datetime
from typing import Callable, Optional

from gopuzzles.catalog.models import Collection, Puzzle, PuzzleSummary, board_to_rows
from gopuzzles.config.settings import Settings
from gopuzzles.engine.achievements import Achievement, AchievementEngine
from gopuzzles.engine.completion import CompletionDetector
from gopuzzles.engine.recommender import Recommender
from gopuzzles.engine.statistics import ActivityEntry, StatisticsEngine
from gopuzzles.engine.tracker import ProgressTracker
from gopuzzles.errors import InvalidArgument, NotFound, Unauthorized
from gopuzzles.state.catalog import CatalogStore
from gopuzzles.state.database import Database
from gopuzzles.state.progress import ProgressRecord, ProgressStore
from gopuzzles.state.transfer import export_data

from .protocol import Notification, Request

logger = logging.getLogger(__name__)


def _record_to_dict(record: Optional[ProgressRecord]) -> dict:
    if record is None:
        return {}
    return {
        "puzzleId": record.puzzle_id,
        "collectionId": record.collection_id,
        "attempts": record.attempts,
        "completed": record.completed,
        "completedAt": record.completed_at,
        "bestMoves": record.best_moves,
        "bestTime": record.best_time,
    }


def _summary_to_dict(summary: PuzzleSummary) -> dict:
    return {
        "id": summary.id,
        "name": summary.name,
        "difficulty": summary.difficulty,
        "category": summary.category.value,
        "collectionId": summary.collection_id,
        "collectionName": summary.collection_name,
        "views": summary.views,
        "likes": summary.likes,
        "attempts": summary.attempt_count,
        "completed": summary.completed_count,
    }


def _collection_to_dict(collection: Collection) -> dict:
    return {
        "id": collection.id,
        "name": collection.name,
        "description": collection.description,
        "difficulty": collection.difficulty,
        "private": collection.private,
        "colorTransform": collection.color_transform,
        "positionTransform": collection.position_transform,
        "author": collection.author,
        "views": collection.views,
        "likes": collection.likes,
        "puzzles": collection.puzzle_ids,
        "createdAt": collection.created_at,
    }


def _puzzle_to_dict(puzzle: Puzzle) -> dict:
    return {
        "id": puzzle.id,
        "collectionId": puzzle.collection_id,
        "name": puzzle.name,
        "description": puzzle.description,
        "difficulty": puzzle.difficulty,
        "category": puzzle.category.value,
        "nextToPlay": puzzle.next_to_play.value,
        "initialPosition": board_to_rows(puzzle.initial_position),
        "variations": [
            {
                "moves": [
                    {"row": m.row, "col": m.col, "color": m.color.value, "moveNumber": m.move_number}
                    for m in v.moves
                ],
                "correct": v.correct,
                "comment": v.comment,
            }
            for v in puzzle.variations
        ],
        "author": puzzle.author,
        "views": puzzle.views,
        "likes": puzzle.likes,
        "attemptCount": puzzle.attempt_count,
        "completedCount": puzzle.completed_count,
        "createdAt": puzzle.created_at,
    }


def _achievement_to_dict(achievement: Achievement) -> dict:
    return {
        "id": achievement.id,
        "type": achievement.type,
        "title": achievement.title,
        "description": achievement.description,
        "unlocked": achievement.unlocked,
        "unlockedAt": achievement.unlocked_at,
    }


def _activity_to_dict(entry: ActivityEntry) -> dict:
    return {
        "visitorId": entry.visitor_id,
        "puzzleId": entry.puzzle_id,
        "puzzleName": entry.puzzle_name,
        "collectionId": entry.collection_id,
        "collectionName": entry.collection_name,
        "attempts": entry.attempts,
        "completed": entry.completed,
        "completedAt": entry.completed_at,
        "updatedAt": entry.updated_at,
    }


def _require(params: dict, key: str):
    value = params.get(key)
    if value is None or value == "":
        raise InvalidArgument(f"Missing parameter: {key}")
    return value


def _optional(params: dict, key: str, default):
    """The parameter if supplied (even 0 or empty), else the default; engines validate it."""
    value = params.get(key)
    return default if value is None else value


class ServerHandler:
    """Routes incoming requests to engine methods and returns result dicts."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        write_notification: Optional[Callable[[Notification], None]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.settings = settings or Settings.load()
        self._write_notification = write_notification or (lambda n: None)

        self.db = Database(self.settings.db_path)
        self.catalog = CatalogStore(self.db)
        self.progress = ProgressStore(self.db)
        self.tracker = ProgressTracker(self.catalog, self.progress, clock=clock)
        self.completion = CompletionDetector(self.catalog, self.progress)
        self.achievements = AchievementEngine(self.catalog, self.progress)
        self.recommender = Recommender(
            self.catalog, self.progress, default_limit=self.settings.recommendation_limit
        )
        self.statistics = StatisticsEngine(self.catalog, self.progress)

    async def dispatch(self, msg: dict) -> dict:
        """Route a request message to the appropriate handler method."""
        request = Request.from_dict(msg)

        handler_map = {
            "recordAttempt": self._record_attempt,
            "recordCompletion": self._record_completion,
            "recordView": self._record_view,
            "like": self._like,
            "isCollectionComplete": self._is_collection_complete,
            "getCollectionProgress": self._get_collection_progress,
            "getAchievements": self._get_achievements,
            "getRecommendations": self._get_recommendations,
            "getVisitorStats": self._get_visitor_stats,
            "getActivity": self._get_activity,
            "listCollections": self._list_collections,
            "getCollection": self._get_collection,
            "getPuzzle": self._get_puzzle,
            # admin
            "getCatalogStats": self._get_catalog_stats,
            "getCollectionStats": self._get_collection_stats,
            "getRecentActivity": self._get_recent_activity,
            "cleanup": self._cleanup,
            "export": self._export,
        }

        handler = handler_map.get(request.method)
        if handler is None:
            raise InvalidArgument(f"Unknown method: {request.method}")

        return await handler(request.params)

    # --- Visibility ---

    def _is_admin(self, params: dict) -> bool:
        expected = self.settings.get_admin_key()
        supplied = params.get("adminKey")
        if not expected or not isinstance(supplied, str):
            return False
        return secrets.compare_digest(supplied, expected)

    def _require_admin(self, params: dict) -> None:
        if not self._is_admin(params):
            logger.warning("Rejected admin request without a valid key")
            raise Unauthorized("Admin access required")

    def _visible_collection(self, collection_id: str, params: dict) -> Collection:
        collection = self.catalog.get_collection(collection_id)
        if collection.private and not self._is_admin(params):
            raise NotFound(f"Collection not found: {collection_id}")
        return collection

    # --- Progress tracking ---

    async def _record_attempt(self, params: dict) -> dict:
        record = self.tracker.record_attempt(_require(params, "visitorId"), _require(params, "puzzleId"))
        return {"success": True, "progress": _record_to_dict(record)}

    async def _record_completion(self, params: dict) -> dict:
        visitor_id = _require(params, "visitorId")
        before = {a.id for a in self.achievements.compute_achievements(visitor_id)}

        record = self.tracker.record_completion(
            visitor_id,
            _require(params, "puzzleId"),
            move_count=params.get("moves"),
            elapsed_time=params.get("time"),
            solved=bool(params.get("solved", True)),
        )
        if record is None:
            return {"success": True, "recorded": False}

        for achievement in self.achievements.compute_achievements(visitor_id):
            if achievement.id not in before:
                self._write_notification(
                    Notification("achievementUnlocked", _achievement_to_dict(achievement))
                )
        return {"success": True, "recorded": True, "progress": _record_to_dict(record)}

    async def _record_view(self, params: dict) -> dict:
        views = self.tracker.record_view(_require(params, "kind"), _require(params, "id"))
        return {"success": True, "views": views}

    async def _like(self, params: dict) -> dict:
        likes = self.tracker.like(
            _require(params, "kind"), _require(params, "id"), _require(params, "visitorId")
        )
        return {"success": True, "likes": likes}

    # --- Derived visitor state ---

    async def _is_collection_complete(self, params: dict) -> dict:
        collection = self._visible_collection(_require(params, "collectionId"), params)
        complete = self.completion.is_collection_complete(_require(params, "visitorId"), collection.id)
        return {"complete": complete}

    async def _get_collection_progress(self, params: dict) -> dict:
        collection = self._visible_collection(_require(params, "collectionId"), params)
        progress = self.completion.collection_progress(_require(params, "visitorId"), collection.id)
        return {"progress": {pid: _record_to_dict(r) for pid, r in progress.items()}}

    async def _get_achievements(self, params: dict) -> dict:
        achievements = self.achievements.compute_achievements(_require(params, "visitorId"))
        return {"achievements": [_achievement_to_dict(a) for a in achievements]}

    async def _get_recommendations(self, params: dict) -> dict:
        puzzles = self.recommender.recommend(_require(params, "visitorId"), limit=params.get("limit"))
        return {"recommendations": [_summary_to_dict(p) for p in puzzles]}

    async def _get_visitor_stats(self, params: dict) -> dict:
        stats = self.statistics.visitor_stats(_require(params, "visitorId"))
        return {
            "totalSolved": stats.total_solved,
            "totalAttempts": stats.total_attempts,
            "collectionsCompleted": stats.collections_completed,
        }

    async def _get_activity(self, params: dict) -> dict:
        entries = self.statistics.recent_activity(
            _optional(params, "limit", self.settings.activity_limit),
            visitor_id=_require(params, "visitorId"),
        )
        return {"activity": [_activity_to_dict(e) for e in entries]}

    # --- Catalog reads ---

    async def _list_collections(self, params: dict) -> dict:
        collections = self.catalog.list_collections(include_private=self._is_admin(params))
        return {"collections": [_collection_to_dict(c) for c in collections]}

    async def _get_collection(self, params: dict) -> dict:
        collection = self._visible_collection(_require(params, "collectionId"), params)
        puzzles = self.catalog.puzzles_in_collection(collection.id)
        return {
            "collection": _collection_to_dict(collection),
            "puzzles": [_summary_to_dict(p) for p in puzzles],
        }

    async def _get_puzzle(self, params: dict) -> dict:
        puzzle_id = _require(params, "puzzleId")
        puzzle = self.catalog.get_puzzle(puzzle_id)
        try:
            self._visible_collection(puzzle.collection_id, params)
        except NotFound:
            raise NotFound(f"Puzzle not found: {puzzle_id}") from None
        return {"puzzle": _puzzle_to_dict(puzzle)}

    # --- Admin ---

    async def _get_catalog_stats(self, params: dict) -> dict:
        self._require_admin(params)
        stats = self.statistics.catalog_stats()
        return {
            "totalCollections": stats.total_collections,
            "totalPuzzles": stats.total_puzzles,
            "totalUsers": stats.total_visitors,
            "totalAttempts": stats.total_attempts,
            "totalSolved": stats.total_completed,
            "averageSuccessRate": stats.average_success_rate,
            "popularCollections": [
                {"id": c.id, "name": c.name, "views": c.views, "likes": c.likes}
                for c in stats.popular_collections
            ],
            "difficultyDistribution": [
                {"difficulty": d, "count": n} for d, n in stats.difficulty_distribution
            ],
            "categoryDistribution": [
                {"category": c.value, "count": n} for c, n in stats.category_distribution
            ],
        }

    async def _get_collection_stats(self, params: dict) -> dict:
        self._require_admin(params)
        stats = self.statistics.collection_stats(_require(params, "collectionId"))
        return {
            "collection": {"id": stats.id, "name": stats.name, "views": stats.views, "likes": stats.likes},
            "totalPuzzles": stats.total_puzzles,
            "totalViews": stats.total_views,
            "totalLikes": stats.total_likes,
            "totalAttempts": stats.total_attempts,
            "totalCompleted": stats.total_completed,
            "uniqueUsers": stats.unique_visitors,
            "completedUsers": stats.completed_visitors,
            "completionRate": stats.completion_rate,
            "puzzleStats": [
                {
                    "id": p.id,
                    "name": p.name,
                    "difficulty": p.difficulty,
                    "views": p.views,
                    "likes": p.likes,
                    "attempts": p.attempts,
                    "completed": p.completed,
                    "successRate": p.success_rate,
                }
                for p in stats.puzzle_stats
            ],
        }

    async def _get_recent_activity(self, params: dict) -> dict:
        self._require_admin(params)
        entries = self.statistics.recent_activity(_optional(params, "limit", self.settings.admin_activity_limit))
        return {"activity": [_activity_to_dict(e) for e in entries]}

    async def _cleanup(self, params: dict) -> dict:
        self._require_admin(params)
        days = _optional(params, "days", self.settings.retention_days)
        deleted = self.tracker.cleanup_stale(days)
        return {
            "success": True,
            "deletedEntries": deleted,
            "message": f"Cleaned up {deleted} old progress entries older than {days} days",
        }

    async def _export(self, params: dict) -> dict:
        self._require_admin(params)
        return export_data(self.catalog, self.progress, kind=_optional(params, "type", "all"))
