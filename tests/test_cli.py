"""Tests for the click command line."""

import json

import pytest
from click.testing import CliRunner

from gopuzzles.cli import main


@pytest.fixture
def invoke(tmp_path):
    runner = CliRunner()
    base = ["--config", str(tmp_path / "missing.yaml"), "--data-dir", str(tmp_path / "data")]

    def run(*args):
        return runner.invoke(main, base + list(args))

    return run


@pytest.fixture
def imported(invoke, sample_catalog_dir):
    result = invoke("import", str(sample_catalog_dir))
    assert result.exit_code == 0, result.output
    return result


class TestCli:
    def test_import(self, imported):
        assert "Imported 1 collections, 2 puzzles" in imported.output

    def test_import_twice_fails(self, imported, invoke, sample_catalog_dir):
        result = invoke("import", str(sample_catalog_dir))
        assert result.exit_code != 0

    def test_stats(self, imported, invoke):
        result = invoke("stats")
        assert result.exit_code == 0
        assert "Collections: 1  Puzzles: 2" in result.output
        assert "Success rate: 0%" in result.output

    def test_collection_stats(self, imported, invoke):
        result = invoke("stats", "--collection", "corner-basics")
        assert result.exit_code == 0
        assert "Corner Basics: 2 puzzles" in result.output
        assert "Save the corner" in result.output

    def test_unknown_collection(self, imported, invoke):
        result = invoke("stats", "--collection", "missing")
        assert result.exit_code == 1
        assert "Collection not found: missing" in result.output

    def test_recommend(self, imported, invoke):
        result = invoke("recommend", "1.2.3.4")
        assert result.exit_code == 0
        assert "cb-001: Save the corner" in result.output
        assert "cb-002" in result.output

    def test_recommend_bad_limit(self, imported, invoke):
        result = invoke("recommend", "1.2.3.4", "--limit", "0")
        assert result.exit_code == 1

    def test_achievements(self, imported, invoke):
        result = invoke("achievements", "1.2.3.4")
        assert "No achievements yet." in result.output

    def test_cleanup(self, imported, invoke):
        result = invoke("cleanup", "--days", "7")
        assert result.exit_code == 0
        assert "Cleaned up 0 old progress entries older than 7 days" in result.output

    def test_export_to_file(self, imported, invoke, tmp_path):
        out = tmp_path / "dump.json"
        result = invoke("export", "--type", "puzzles", "-o", str(out))
        assert result.exit_code == 0
        data = json.loads(out.read_text())
        assert [p["id"] for p in data["puzzles"]] == ["cb-001", "cb-002"]
        assert "collections" not in data
