"""Tests for achievement computation."""

from collections import Counter

import pytest

from gopuzzles.catalog.models import Category
from gopuzzles.engine.achievements import (
    AchievementEngine,
    category_achievements,
    is_perfect_solver,
    milestone_achievements,
)


@pytest.fixture
def engine(catalog, progress):
    return AchievementEngine(catalog, progress)


@pytest.fixture
def many_puzzles(make_collection, make_puzzle):
    """Twelve tesuji puzzles and nine endgame puzzles in one collection."""
    make_collection("drill")
    for i in range(12):
        make_puzzle(f"t{i}", "drill", category=Category.TESUJI)
    for i in range(9):
        make_puzzle(f"e{i}", "drill", category=Category.ENDGAME)


def ids(achievements):
    return [a.id for a in achievements]


class TestPureRules:
    def test_milestones(self):
        assert milestone_achievements(0) == []
        assert ids(milestone_achievements(4)) == ["solved-1"]
        assert ids(milestone_achievements(25)) == ["solved-1", "solved-5", "solved-10", "solved-25"]
        assert len(milestone_achievements(499)) == 7
        assert len(milestone_achievements(500)) == 8

    def test_milestone_text(self):
        (first,) = milestone_achievements(1)
        assert first.title == "1 Puzzles Solved"
        assert first.type == "solving"
        assert first.unlocked is True
        assert first.unlocked_at is None

    @pytest.mark.parametrize("attempts,solved,expected", [
        (10, 10, True),
        (40, 40, True),
        (9, 9, False),
        (12, 10, False),
        (0, 0, False),
    ])
    def test_perfect_solver(self, attempts, solved, expected):
        assert is_perfect_solver(attempts, solved) is expected

    def test_category_mastery(self):
        result = category_achievements(Counter({Category.LIFE_AND_DEATH: 10, Category.OPENING: 9}))
        assert len(result) == 1
        assert result[0].id == "master-life-and-death"
        assert result[0].title == "Life And Death Master"
        assert result[0].description == "Solved 10 life-and-death puzzles"


class TestComputeAchievements:
    def test_no_progress(self, engine):
        assert engine.compute_achievements("nobody") == []

    def test_first_solve(self, seeded, engine, tracker):
        tracker.record_attempt("v", "p1")
        tracker.record_completion("v", "p1", move_count=3)
        assert ids(engine.compute_achievements("v")) == ["solved-1"]

    def test_attempts_only(self, seeded, engine, tracker):
        tracker.record_attempt("v", "p1")
        assert engine.compute_achievements("v") == []

    def test_perfect_solver_with_mastery(self, many_puzzles, engine, tracker):
        for i in range(10):
            tracker.record_attempt("v", f"t{i}")
            tracker.record_completion("v", f"t{i}", move_count=4)

        result = {a.id: a for a in engine.compute_achievements("v")}
        assert set(result) == {"solved-1", "solved-5", "solved-10", "perfect-solver", "master-tesuji"}
        assert result["perfect-solver"].description == "Solved every puzzle on the first try!"
        assert result["master-tesuji"].title == "Tesuji Master"

    def test_too_few_attempts_for_perfect(self, many_puzzles, engine, tracker):
        for i in range(3):
            tracker.record_attempt("v", f"t{i}")
            tracker.record_completion("v", f"t{i}")
        assert "perfect-solver" not in ids(engine.compute_achievements("v"))

    def test_failed_attempt_breaks_perfect(self, many_puzzles, engine, tracker):
        for i in range(10):
            tracker.record_attempt("v", f"t{i}")
            tracker.record_completion("v", f"t{i}")
        tracker.record_attempt("v", "e0")
        assert "perfect-solver" not in ids(engine.compute_achievements("v"))

    def test_category_below_threshold(self, many_puzzles, engine, tracker):
        for i in range(9):
            tracker.record_completion("v", f"e{i}")
        assert "master-endgame" not in ids(engine.compute_achievements("v"))

    def test_monotonic_as_solves_grow(self, many_puzzles, engine, tracker):
        seen: set[str] = set()
        for i in range(12):
            tracker.record_completion("v", f"t{i}")
            current = set(ids(engine.compute_achievements("v")))
            assert seen <= current
            seen = current
        assert {"solved-10", "master-tesuji"} <= seen

    def test_repeat_solves_count_once(self, seeded, engine, tracker):
        for _ in range(5):
            tracker.record_completion("v", "p1")
        assert ids(engine.compute_achievements("v")) == ["solved-1"]
