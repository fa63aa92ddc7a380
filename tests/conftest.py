"""Shared fixtures for GoPuzzles tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
import yaml

from gopuzzles.catalog.models import Category, Collection, Color, Puzzle
from gopuzzles.engine.tracker import ProgressTracker
from gopuzzles.state.catalog import CatalogStore
from gopuzzles.state.database import Database
from gopuzzles.state.progress import ProgressStore


class FixedClock:
    """Deterministic clock; call ``advance`` to move time forward."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FixedClock(datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def db(tmp_path):
    return Database(tmp_path / "data" / "test.db")


@pytest.fixture
def catalog(db):
    return CatalogStore(db)


@pytest.fixture
def progress(db):
    return ProgressStore(db)


@pytest.fixture
def tracker(catalog, progress, clock):
    return ProgressTracker(catalog, progress, clock=clock)


def add_collection(catalog: CatalogStore, cid: str, private: bool = False, **kwargs) -> Collection:
    kwargs.setdefault("name", f"Collection {cid}")
    kwargs.setdefault("difficulty", 2)
    return catalog.add_collection(Collection(id=cid, private=private, **kwargs))


def add_puzzle(
    catalog: CatalogStore,
    pid: str,
    collection_id: str,
    difficulty: int = 3,
    category: Category = Category.LIFE_AND_DEATH,
    **kwargs,
) -> Puzzle:
    kwargs.setdefault("name", f"Puzzle {pid}")
    return catalog.add_puzzle(Puzzle(
        id=pid,
        collection_id=collection_id,
        difficulty=difficulty,
        category=category,
        next_to_play=Color.BLACK,
        **kwargs,
    ))


@pytest.fixture
def make_collection(catalog):
    return lambda cid, **kwargs: add_collection(catalog, cid, **kwargs)


@pytest.fixture
def make_puzzle(catalog):
    return lambda pid, collection_id, **kwargs: add_puzzle(catalog, pid, collection_id, **kwargs)


@pytest.fixture
def seeded(catalog):
    """Two public collections and one private collection.

    basics:   p1 (d2, life-and-death), p2 (d3, tesuji), p3 (d4, tesuji)
    advanced: p4 (d7, endgame), p5 (d8, opening)
    hidden:   p6 (d3, tesuji)  -- private
    """
    add_collection(catalog, "basics")
    add_collection(catalog, "advanced", difficulty=4)
    add_collection(catalog, "hidden", private=True)
    add_puzzle(catalog, "p1", "basics", difficulty=2, category=Category.LIFE_AND_DEATH)
    add_puzzle(catalog, "p2", "basics", difficulty=3, category=Category.TESUJI)
    add_puzzle(catalog, "p3", "basics", difficulty=4, category=Category.TESUJI)
    add_puzzle(catalog, "p4", "advanced", difficulty=7, category=Category.ENDGAME)
    add_puzzle(catalog, "p5", "advanced", difficulty=8, category=Category.OPENING)
    add_puzzle(catalog, "p6", "hidden", difficulty=3, category=Category.TESUJI)
    return catalog


EMPTY_ROW = "." * 19


@pytest.fixture
def sample_catalog_dir(tmp_path):
    """Create a minimal YAML catalog with one collection."""
    catalog_dir = tmp_path / "catalog"
    collection_dir = catalog_dir / "corner-basics"
    collection_dir.mkdir(parents=True)

    position = [EMPTY_ROW] * 19
    position[0] = "XXO" + "." * 16
    position[1] = "OO." + "." * 16

    data = {
        "collection": {
            "id": "corner-basics",
            "name": "Corner Basics",
            "description": "First steps in the corner",
            "difficulty": 1,
        },
        "puzzles": [
            {
                "id": "cb-001",
                "name": "Save the corner",
                "difficulty": 2,
                "category": "life-and-death",
                "next_to_play": "black",
                "position": position,
                "variations": [
                    {"correct": True, "comment": "Vital point", "moves": ["B 1 2", "W 0 3"]},
                    {"correct": False, "moves": [{"row": 2, "col": 0, "color": "black"}]},
                ],
            },
            {
                "id": "cb-002",
                "name": "Snapback",
                "difficulty": 4,
                "category": "tesuji",
            },
        ],
    }
    with open(collection_dir / "collection.yaml", "w") as f:
        yaml.dump(data, f)

    # directories without collection.yaml are ignored
    (catalog_dir / "notes").mkdir()
    return catalog_dir
