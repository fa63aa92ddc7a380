"""Tests for personalized recommendations."""

from collections import Counter

import pytest

from gopuzzles.catalog.models import Category, PuzzleSummary
from gopuzzles.engine.recommender import Recommender, SolverProfile, rank_candidates
from gopuzzles.engine.rounding import percent, round_half_up
from gopuzzles.errors import InvalidArgument


@pytest.fixture
def recommender(catalog, progress):
    return Recommender(catalog, progress)


def _ids(puzzles):
    return [p.id for p in puzzles]


def _summary(pid, views=0, likes=0, private=False):
    return PuzzleSummary(
        id=pid, collection_id="c", collection_name="C", collection_private=private,
        name=pid, difficulty=3, category=Category.TESUJI, views=views, likes=likes,
    )


class TestRounding:
    @pytest.mark.parametrize("value,expected", [(2.5, 3), (3.5, 4), (2.49, 2), (4.0, 4)])
    def test_round_half_up(self, value, expected):
        assert round_half_up(value) == expected

    def test_percent(self):
        assert percent(1, 8) == 13
        assert percent(1, 3) == 33
        assert percent(5, 0) == 0


class TestSolverProfile:
    def test_defaults(self):
        profile = SolverProfile()
        assert profile.avg_difficulty == 3
        assert profile.preferred_category is Category.LIFE_AND_DEATH
        assert profile.difficulty_window == (2, 4)

    def test_window_clamped(self):
        assert SolverProfile(difficulties=[10, 10]).difficulty_window == (9, 10)
        assert SolverProfile(difficulties=[1]).difficulty_window == (1, 2)

    def test_average_rounds_half_up(self):
        assert SolverProfile(difficulties=[2, 3]).avg_difficulty == 3

    def test_tie_uses_category_order(self):
        profile = SolverProfile(categories=Counter({Category.ENDGAME: 2, Category.TESUJI: 2}))
        assert profile.preferred_category is Category.TESUJI

    def test_build_profile(self, seeded, recommender, tracker):
        tracker.record_completion("v", "p2")
        tracker.record_completion("v", "p4")
        profile = recommender.build_profile("v")
        assert profile.completed_ids == {"p2", "p4"}
        assert profile.avg_difficulty == 5
        assert profile.preferred_category is Category.TESUJI


class TestRankCandidates:
    def test_popularity_then_likes(self):
        ranked = rank_candidates(
            [_summary("a", 1, 0), _summary("b", 3, 0), _summary("c", 1, 5)], limit=10
        )
        assert _ids(ranked) == ["b", "c", "a"]

    def test_private_filtered_before_limit(self):
        ranked = rank_candidates([_summary("hot", 99, private=True), _summary("a"), _summary("b")], limit=1)
        assert _ids(ranked) == ["a"]


class TestRecommend:
    def test_new_visitor_gets_defaults(self, seeded, recommender):
        # window 2..4 or life-and-death; p6 is private
        assert _ids(recommender.recommend("new")) == ["p1", "p2", "p3"]

    def test_excludes_completed(self, seeded, recommender, tracker):
        tracker.record_completion("v", "p1")
        # avg 2 -> window 1..3, preferred life-and-death
        assert _ids(recommender.recommend("v")) == ["p2"]

    def test_mixed_profile(self, seeded, recommender, tracker):
        tracker.record_completion("v", "p2")
        tracker.record_completion("v", "p4")
        # avg 5 -> window 4..6, preferred tesuji
        assert _ids(recommender.recommend("v")) == ["p3"]

    def test_ranked_by_views_then_likes(self, seeded, recommender, tracker):
        tracker.record_view("puzzle", "p3")
        tracker.record_view("puzzle", "p3")
        tracker.record_view("puzzle", "p2")
        tracker.record_view("puzzle", "p1")
        tracker.like("puzzle", "p1", "fan")
        assert _ids(recommender.recommend("new")) == ["p3", "p1", "p2"]

    def test_never_recommends_private(self, seeded, recommender, tracker):
        for _ in range(5):
            tracker.record_view("puzzle", "p6")
        result = recommender.recommend("new", limit=1)
        assert _ids(result) == ["p1"]

    def test_limit(self, seeded, recommender):
        assert len(recommender.recommend("new", limit=2)) == 2

    def test_default_limit_from_constructor(self, seeded, catalog, progress):
        assert len(Recommender(catalog, progress, default_limit=1).recommend("new")) == 1

    @pytest.mark.parametrize("limit", [0, -3, "5", True])
    def test_bad_limit(self, seeded, recommender, limit):
        with pytest.raises(InvalidArgument):
            recommender.recommend("new", limit=limit)

    def test_nothing_left(self, seeded, recommender, tracker):
        for pid in ("p1", "p2", "p3", "p4", "p5"):
            tracker.record_completion("v", pid)
        assert recommender.recommend("v") == []
