"""YAML catalog parser for GoPuzzles.

A catalog directory holds one sub-directory per collection, each with a
``collection.yaml``::

    collection:
      id: corner-basics
      name: Corner Basics
      difficulty: 2
      private: false
    puzzles:
      - id: cb-001
        name: Make two eyes
        difficulty: 3
        category: life-and-death
        next_to_play: black
        position:            # 19 rows of '.', 'X' (black), 'O' (white)
          - "..................."
          ...
        variations:
          - correct: true
            moves: ["B 0 1", "W 1 1", {row: 0, col: 3, color: black}]
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml

from gopuzzles.catalog.models import (
    Category,
    Collection,
    Color,
    Move,
    Puzzle,
    Variation,
    board_from_rows,
    empty_board,
    validate_collection,
    validate_puzzle,
)
from gopuzzles.errors import InvalidArgument

_COLOR_LETTERS = {"B": Color.BLACK, "W": Color.WHITE}


@dataclass
class CollectionBundle:
    collection: Collection
    puzzles: list[Puzzle] = field(default_factory=list)


def _parse_move(raw, index: int) -> Move:
    if isinstance(raw, str):
        # "B 3 4" style: color letter, row, col
        parts = raw.split()
        if len(parts) != 3 or parts[0].upper() not in _COLOR_LETTERS:
            raise InvalidArgument(f"Malformed move: {raw!r}")
        try:
            row, col = int(parts[1]), int(parts[2])
        except ValueError:
            raise InvalidArgument(f"Malformed move coordinates: {raw!r}") from None
        return Move(row=row, col=col, color=_COLOR_LETTERS[parts[0].upper()], move_number=index + 1)
    if isinstance(raw, dict):
        try:
            return Move(
                row=raw["row"],
                col=raw["col"],
                color=Color.parse(raw["color"]),
                move_number=raw.get("move_number", index + 1),
            )
        except KeyError as e:
            raise InvalidArgument(f"Move is missing {e.args[0]!r}: {raw!r}") from None
    raise InvalidArgument(f"Malformed move: {raw!r}")


def _parse_variations(raw) -> list[Variation]:
    variations = []
    for item in raw or []:
        variations.append(Variation(
            moves=[_parse_move(m, i) for i, m in enumerate(item.get("moves", []))],
            correct=bool(item.get("correct", False)),
            comment=item.get("comment"),
        ))
    return variations


def parse_puzzle(raw: dict, collection_id: str) -> Puzzle:
    try:
        puzzle = Puzzle(
            id=str(raw.get("id", "")),
            collection_id=collection_id,
            name=raw["name"],
            description=raw.get("description", ""),
            difficulty=raw["difficulty"],
            category=Category.parse(raw.get("category", Category.LIFE_AND_DEATH.value)),
            next_to_play=Color.parse(raw.get("next_to_play", Color.BLACK.value)),
            initial_position=board_from_rows(raw["position"]) if "position" in raw else empty_board(),
            variations=_parse_variations(raw.get("variations")),
            author=raw.get("author", "Admin"),
        )
    except KeyError as e:
        raise InvalidArgument(f"Puzzle is missing {e.args[0]!r}") from None
    validate_puzzle(puzzle)
    return puzzle


def load_collection(collection_dir: Path) -> CollectionBundle:
    """Load collection.yaml from a collection directory."""
    collection_file = collection_dir / "collection.yaml"
    with open(collection_file) as f:
        data = yaml.safe_load(f) or {}

    try:
        c = data["collection"]
        collection = Collection(
            id=str(c.get("id", collection_dir.name)),
            name=c["name"],
            description=c.get("description", ""),
            difficulty=c["difficulty"],
            private=c.get("private", False),
            color_transform=c.get("color_transform", False),
            position_transform=c.get("position_transform", False),
            author=c.get("author", "Admin"),
        )
    except KeyError as e:
        raise InvalidArgument(f"{collection_file}: collection is missing {e.args[0]!r}") from None
    validate_collection(collection)

    puzzles = [parse_puzzle(raw, collection.id) for raw in data.get("puzzles") or []]
    return CollectionBundle(collection=collection, puzzles=puzzles)


def discover_collections(catalog_dir: Path) -> list[CollectionBundle]:
    """Load every sub-directory that has a collection.yaml, in name order."""
    return [
        load_collection(path)
        for path in sorted(catalog_dir.iterdir())
        if path.is_dir() and (path / "collection.yaml").exists()
    ]
