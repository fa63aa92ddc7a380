"""Catalog-wide, per-collection and per-visitor summary statistics.

Everything here is read-only and recomputed per call.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from gopuzzles.catalog.models import Category
from gopuzzles.engine.completion import CompletionDetector
from gopuzzles.engine.rounding import percent
from gopuzzles.errors import InvalidArgument
from gopuzzles.state.catalog import CatalogStore
from gopuzzles.state.progress import ProgressStore

POPULAR_COLLECTIONS = 5


@dataclass
class PopularCollection:
    id: str
    name: str
    views: int
    likes: int


@dataclass
class CatalogStats:
    total_collections: int
    total_puzzles: int
    total_visitors: int
    total_attempts: int
    total_completed: int
    average_success_rate: int
    popular_collections: list[PopularCollection] = field(default_factory=list)
    difficulty_distribution: list[tuple[int, int]] = field(default_factory=list)
    category_distribution: list[tuple[Category, int]] = field(default_factory=list)


@dataclass
class PuzzleStats:
    id: str
    name: str
    difficulty: int
    views: int
    likes: int
    attempts: int
    completed: int
    success_rate: int


@dataclass
class CollectionStats:
    id: str
    name: str
    views: int
    likes: int
    total_puzzles: int
    total_views: int
    total_likes: int
    total_attempts: int
    total_completed: int
    unique_visitors: int
    completed_visitors: int
    completion_rate: int
    puzzle_stats: list[PuzzleStats] = field(default_factory=list)


@dataclass
class VisitorStats:
    total_solved: int
    total_attempts: int
    collections_completed: int


@dataclass
class ActivityEntry:
    visitor_id: str
    puzzle_id: str
    puzzle_name: str
    collection_id: str
    collection_name: str
    attempts: int
    completed: bool
    completed_at: Optional[str]
    updated_at: str


class StatisticsEngine:
    def __init__(self, catalog: CatalogStore, progress: ProgressStore):
        self.catalog = catalog
        self.progress = progress
        self.completion = CompletionDetector(catalog, progress)

    def catalog_stats(self) -> CatalogStats:
        totals = self.progress.totals()
        return CatalogStats(
            total_collections=self.catalog.count_collections(),
            total_puzzles=self.catalog.count_puzzles(),
            total_visitors=totals.unique_visitors,
            total_attempts=totals.total_attempts,
            total_completed=totals.total_completed,
            average_success_rate=percent(totals.total_completed, totals.total_attempts),
            popular_collections=[
                PopularCollection(id=c.id, name=c.name, views=c.views, likes=c.likes)
                for c in self.catalog.popular_collections(POPULAR_COLLECTIONS)
            ],
            difficulty_distribution=self.catalog.difficulty_distribution(),
            category_distribution=self.catalog.category_distribution(),
        )

    def collection_stats(self, collection_id: str) -> CollectionStats:
        collection = self.catalog.get_collection(collection_id)
        puzzles = self.catalog.puzzles_in_collection(collection_id)
        records = self.progress.for_collection(collection_id)

        total_attempts = sum(p.attempt_count for p in puzzles)
        total_completed = sum(p.completed_count for p in puzzles)
        return CollectionStats(
            id=collection.id,
            name=collection.name,
            views=collection.views,
            likes=collection.likes,
            total_puzzles=len(puzzles),
            total_views=sum(p.views for p in puzzles),
            total_likes=sum(p.likes for p in puzzles),
            total_attempts=total_attempts,
            total_completed=total_completed,
            unique_visitors=len({r.visitor_id for r in records}),
            completed_visitors=len({r.visitor_id for r in records if r.completed}),
            completion_rate=percent(total_completed, total_attempts),
            puzzle_stats=[
                PuzzleStats(
                    id=p.id,
                    name=p.name,
                    difficulty=p.difficulty,
                    views=p.views,
                    likes=p.likes,
                    attempts=p.attempt_count,
                    completed=p.completed_count,
                    success_rate=percent(p.completed_count, p.attempt_count),
                )
                for p in puzzles
            ],
        )

    def visitor_stats(self, visitor_id: str) -> VisitorStats:
        records = self.progress.for_visitor(visitor_id)
        return VisitorStats(
            total_solved=sum(1 for r in records if r.completed),
            total_attempts=sum(r.attempts for r in records),
            collections_completed=len(self.completion.completed_collections(visitor_id)),
        )

    def recent_activity(self, limit: int, visitor_id: Optional[str] = None) -> list[ActivityEntry]:
        """Most recently updated progress, newest first, optionally for one visitor."""
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            raise InvalidArgument(f"limit must be a positive integer, got {limit!r}")
        records = self.progress.recent(limit, visitor_id=visitor_id)
        summaries = self.catalog.summaries(r.puzzle_id for r in records)
        entries = []
        for r in records:
            summary = summaries.get(r.puzzle_id)
            entries.append(ActivityEntry(
                visitor_id=r.visitor_id,
                puzzle_id=r.puzzle_id,
                puzzle_name=summary.name if summary else "",
                collection_id=r.collection_id,
                collection_name=summary.collection_name if summary else "",
                attempts=r.attempts,
                completed=r.completed,
                completed_at=r.completed_at,
                updated_at=r.updated_at,
            ))
        return entries
