"""Tests for the YAML catalog loader and bulk import."""

import pytest
import yaml

from gopuzzles.catalog.loader import discover_collections, load_collection, parse_puzzle
from gopuzzles.catalog.models import Category, Color, Stone
from gopuzzles.errors import InvalidArgument, NotFound
from gopuzzles.state.transfer import import_catalog


class TestLoader:
    def test_discover(self, sample_catalog_dir):
        bundles = discover_collections(sample_catalog_dir)
        assert len(bundles) == 1
        assert bundles[0].collection.id == "corner-basics"
        assert [p.id for p in bundles[0].puzzles] == ["cb-001", "cb-002"]

    def test_puzzle_fields(self, sample_catalog_dir):
        bundle = load_collection(sample_catalog_dir / "corner-basics")
        puzzle = bundle.puzzles[0]
        assert puzzle.collection_id == "corner-basics"
        assert puzzle.category is Category.LIFE_AND_DEATH
        assert puzzle.next_to_play is Color.BLACK
        assert puzzle.initial_position[0][:3] == [Stone.BLACK, Stone.BLACK, Stone.WHITE]

    def test_variations(self, sample_catalog_dir):
        puzzle = load_collection(sample_catalog_dir / "corner-basics").puzzles[0]
        correct, wrong = puzzle.variations
        assert correct.correct and correct.comment == "Vital point"
        assert [(m.row, m.col, m.color, m.move_number) for m in correct.moves] == [
            (1, 2, Color.BLACK, 1),
            (0, 3, Color.WHITE, 2),
        ]
        assert not wrong.correct
        assert wrong.moves[0].color is Color.BLACK

    def test_defaults(self, sample_catalog_dir):
        puzzle = load_collection(sample_catalog_dir / "corner-basics").puzzles[1]
        assert puzzle.variations == []
        assert all(cell is Stone.EMPTY for row in puzzle.initial_position for cell in row)

    def test_collection_id_defaults_to_dir_name(self, tmp_path):
        collection_dir = tmp_path / "ladders"
        collection_dir.mkdir()
        (collection_dir / "collection.yaml").write_text(
            yaml.dump({"collection": {"name": "Ladders", "difficulty": 2}})
        )
        bundle = load_collection(collection_dir)
        assert bundle.collection.id == "ladders"
        assert bundle.puzzles == []

    def test_missing_name(self):
        with pytest.raises(InvalidArgument, match="name"):
            parse_puzzle({"difficulty": 3}, "c")

    @pytest.mark.parametrize("move", ["B 1", "G 1 2", "B one 2", {"row": 1, "col": 2}, 7])
    def test_malformed_move(self, move):
        with pytest.raises(InvalidArgument):
            parse_puzzle(
                {"name": "x", "difficulty": 3, "variations": [{"moves": [move]}]}, "c"
            )

    def test_bad_difficulty(self):
        with pytest.raises(InvalidArgument):
            parse_puzzle({"name": "x", "difficulty": 42}, "c")


class TestImport:
    def test_import(self, sample_catalog_dir, catalog):
        bundles = discover_collections(sample_catalog_dir)
        assert import_catalog(catalog, bundles) == (1, 2)

        collection = catalog.get_collection("corner-basics")
        assert collection.puzzle_ids == ["cb-001", "cb-002"]
        stored = catalog.get_puzzle("cb-001")
        assert stored.variations[0].comment == "Vital point"
        assert stored.initial_position[1][:2] == [Stone.WHITE, Stone.WHITE]

    def test_import_is_atomic(self, sample_catalog_dir, catalog):
        bundles = discover_collections(sample_catalog_dir)
        bundles[0].puzzles[1].collection_id = "nowhere"
        with pytest.raises(NotFound):
            import_catalog(catalog, bundles)
        assert catalog.count_collections() == 0
        assert catalog.count_puzzles() == 0
