"""Achievement computation from aggregate progress.

Achievements are derived fresh on each call and never persisted, so an
unlock has no timestamp (``unlocked_at`` is always None).
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Optional

from gopuzzles.catalog.models import Category
from gopuzzles.state.catalog import CatalogStore
from gopuzzles.state.progress import ProgressStore

SOLVING_MILESTONES = (1, 5, 10, 25, 50, 100, 200, 500)
PERFECT_MIN_ATTEMPTS = 10
CATEGORY_MASTERY_THRESHOLD = 10


@dataclass
class Achievement:
    id: str
    type: str  # "solving", "perfect", "category"
    title: str
    description: str
    unlocked: bool = True
    unlocked_at: Optional[str] = None


def milestone_achievements(total_solved: int) -> list[Achievement]:
    return [
        Achievement(
            id=f"solved-{m}",
            type="solving",
            title=f"{m} Puzzles Solved",
            description=f"You have solved {m} puzzles!",
        )
        for m in SOLVING_MILESTONES
        if total_solved >= m
    ]


def is_perfect_solver(total_attempts: int, total_solved: int) -> bool:
    # Aggregate equality across all puzzles, not a per-puzzle check.
    return total_attempts >= PERFECT_MIN_ATTEMPTS and total_attempts == total_solved


def category_achievements(solved_by_category: Counter) -> list[Achievement]:
    achievements = []
    for category in Category:
        count = solved_by_category.get(category, 0)
        if count >= CATEGORY_MASTERY_THRESHOLD:
            achievements.append(Achievement(
                id=f"master-{category.value}",
                type="category",
                title=f"{category.display_name} Master",
                description=f"Solved {count} {category.value} puzzles",
            ))
    return achievements


class AchievementEngine:
    def __init__(self, catalog: CatalogStore, progress: ProgressStore):
        self.catalog = catalog
        self.progress = progress

    def compute_achievements(self, visitor_id: str) -> list[Achievement]:
        records = self.progress.for_visitor(visitor_id)
        completed_ids = [r.puzzle_id for r in records if r.completed]
        total_attempts = sum(r.attempts for r in records)
        total_solved = len(completed_ids)

        achievements = milestone_achievements(total_solved)

        if is_perfect_solver(total_attempts, total_solved):
            achievements.append(Achievement(
                id="perfect-solver",
                type="perfect",
                title="Perfect Solver",
                description="Solved every puzzle on the first try!",
            ))

        summaries = self.catalog.summaries(completed_ids)
        solved_by_category = Counter(s.category for s in summaries.values())
        achievements.extend(category_achievements(solved_by_category))
        return achievements
