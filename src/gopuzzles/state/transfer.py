"""Bulk catalog import and admin data export."""

from __future__ import annotations

import logging
from datetime import datetime

from gopuzzles.catalog.loader import CollectionBundle
from gopuzzles.catalog.models import EntityKind
from gopuzzles.errors import InvalidArgument
from gopuzzles.state.catalog import CatalogStore
from gopuzzles.state.database import to_timestamp, utc_now
from gopuzzles.state.progress import ProgressStore

logger = logging.getLogger(__name__)

EXPORT_KINDS = ("all", "collections", "puzzles", "progress")


def import_catalog(catalog: CatalogStore, bundles: list[CollectionBundle]) -> tuple[int, int]:
    """Insert collections and their puzzles in one transaction.

    Returns (collections added, puzzles added).
    """
    puzzles = 0
    with catalog.db.transaction() as conn:
        for bundle in bundles:
            catalog.add_collection(bundle.collection, conn=conn)
            for puzzle in bundle.puzzles:
                catalog.add_puzzle(puzzle, conn=conn)
                puzzles += 1
    logger.info("Imported %d collections with %d puzzles", len(bundles), puzzles)
    return len(bundles), puzzles


def export_data(
    catalog: CatalogStore,
    progress: ProgressStore,
    kind: str = "all",
    now: datetime | None = None,
) -> dict:
    if kind not in EXPORT_KINDS:
        raise InvalidArgument(f"Unknown export type: {kind!r}")
    data: dict = {"exportedAt": to_timestamp(now or utc_now())}
    if kind in ("all", "collections"):
        data["collections"] = catalog.export_rows(EntityKind.COLLECTION)
    if kind in ("all", "puzzles"):
        data["puzzles"] = catalog.export_rows(EntityKind.PUZZLE)
    if kind in ("all", "progress"):
        data["userProgress"] = progress.export_rows()
    return data
