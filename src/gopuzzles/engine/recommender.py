"""Personalized puzzle recommendations.

A visitor's solved puzzles give a skill estimate (mean difficulty) and a
topic preference (most-solved category). Candidates are unsolved public
puzzles near that difficulty or in that category, ranked by popularity.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Optional

from gopuzzles.catalog.models import PUZZLE_DIFFICULTY_RANGE, Category, PuzzleSummary
from gopuzzles.engine.rounding import round_half_up
from gopuzzles.errors import InvalidArgument
from gopuzzles.state.catalog import CatalogStore
from gopuzzles.state.progress import ProgressStore

logger = logging.getLogger(__name__)

DEFAULT_DIFFICULTY = 3
DEFAULT_CATEGORY = Category.LIFE_AND_DEATH
DIFFICULTY_WINDOW = 1
DEFAULT_LIMIT = 10


@dataclass
class SolverProfile:
    """Skill and preference signals derived from a visitor's solved puzzles."""
    completed_ids: set[str] = field(default_factory=set)
    difficulties: list[int] = field(default_factory=list)
    categories: Counter = field(default_factory=Counter)

    @property
    def completed_count(self) -> int:
        return len(self.completed_ids)

    @property
    def avg_difficulty(self) -> int:
        if not self.difficulties:
            return DEFAULT_DIFFICULTY
        return round_half_up(sum(self.difficulties) / len(self.difficulties))

    @property
    def preferred_category(self) -> Category:
        if not self.categories:
            return DEFAULT_CATEGORY
        best = max(self.categories.values())
        # Ties go to the earliest category in declaration order.
        return next(c for c in Category if self.categories.get(c) == best)

    @property
    def difficulty_window(self) -> tuple[int, int]:
        lo, hi = PUZZLE_DIFFICULTY_RANGE
        avg = self.avg_difficulty
        return max(lo, avg - DIFFICULTY_WINDOW), min(hi, avg + DIFFICULTY_WINDOW)


def rank_candidates(candidates: list[PuzzleSummary], limit: int) -> list[PuzzleSummary]:
    """Drop private-collection puzzles, order by (views, likes) descending, truncate."""
    public = [c for c in candidates if not c.collection_private]
    public.sort(key=lambda c: (-c.views, -c.likes))
    return public[:limit]


class Recommender:
    def __init__(self, catalog: CatalogStore, progress: ProgressStore, default_limit: int = DEFAULT_LIMIT):
        self.catalog = catalog
        self.progress = progress
        self.default_limit = default_limit

    def build_profile(self, visitor_id: str) -> SolverProfile:
        completed_ids = self.progress.completed_puzzle_ids(visitor_id)
        summaries = self.catalog.summaries(completed_ids)
        return SolverProfile(
            completed_ids=completed_ids,
            difficulties=[s.difficulty for s in summaries.values()],
            categories=Counter(s.category for s in summaries.values()),
        )

    def recommend(self, visitor_id: str, limit: Optional[int] = None) -> list[PuzzleSummary]:
        if limit is None:
            limit = self.default_limit
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            raise InvalidArgument(f"limit must be a positive integer, got {limit!r}")

        profile = self.build_profile(visitor_id)
        lo, hi = profile.difficulty_window
        candidates = self.catalog.candidate_puzzles(
            exclude_ids=profile.completed_ids,
            min_difficulty=lo,
            max_difficulty=hi,
            category=profile.preferred_category,
        )
        ranked = rank_candidates(candidates, limit)
        logger.debug(
            "Recommendations for %s: avg=%d category=%s candidates=%d returned=%d",
            visitor_id, profile.avg_difficulty, profile.preferred_category.value,
            len(candidates), len(ranked),
        )
        return ranked
