"""Collection completion detection."""

from __future__ import annotations

from typing import Optional

from gopuzzles.state.catalog import CatalogStore
from gopuzzles.state.progress import ProgressRecord, ProgressStore


class CompletionDetector:
    """Derives collection completion from progress records on every call."""

    def __init__(self, catalog: CatalogStore, progress: ProgressStore):
        self.catalog = catalog
        self.progress = progress

    def is_collection_complete(
        self,
        visitor_id: str,
        collection_id: str,
        completed_ids: Optional[set[str]] = None,
    ) -> bool:
        """True iff every current puzzle of a non-empty collection is completed."""
        puzzle_ids = set(self.catalog.get_collection(collection_id).puzzle_ids)
        if not puzzle_ids:
            return False
        if completed_ids is None:
            completed_ids = self.progress.completed_puzzle_ids(visitor_id)
        return len(puzzle_ids & completed_ids) == len(puzzle_ids)

    def completed_collections(self, visitor_id: str) -> list[str]:
        """Ids of the collections, among those the visitor touched, that are complete."""
        records = self.progress.for_visitor(visitor_id)
        completed_ids = {r.puzzle_id for r in records if r.completed}
        touched = list(dict.fromkeys(r.collection_id for r in records))
        return [
            cid for cid in touched
            if self.is_collection_complete(visitor_id, cid, completed_ids=completed_ids)
        ]

    def collection_progress(self, visitor_id: str, collection_id: str) -> dict[str, ProgressRecord]:
        """The visitor's records in a collection, keyed by puzzle id."""
        self.catalog.get_collection(collection_id)
        return {
            r.puzzle_id: r
            for r in self.progress.for_collection(collection_id, visitor_id=visitor_id)
        }
