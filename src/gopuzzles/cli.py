"""CLI entry point for GoPuzzles."""

import json
from pathlib import Path

import click

from gopuzzles.config.settings import Settings
from gopuzzles.errors import TrackerError


class _Services:
    """Stores and engines built lazily from the loaded settings."""

    def __init__(self, settings: Settings):
        from gopuzzles.state.catalog import CatalogStore
        from gopuzzles.state.database import Database
        from gopuzzles.state.progress import ProgressStore

        self.settings = settings
        self.db = Database(settings.db_path)
        self.catalog = CatalogStore(self.db)
        self.progress = ProgressStore(self.db)


def _services(ctx: click.Context) -> _Services:
    if "services" not in ctx.obj:
        ctx.obj["services"] = _Services(ctx.obj["settings"])
    return ctx.obj["services"]


@click.group()
@click.option("--config", "config_path", type=click.Path(path_type=Path), default=None,
              help="Path to config.yaml (default: ~/.gopuzzles/config.yaml)")
@click.option("--data-dir", type=click.Path(path_type=Path), default=None,
              help="Override the directory holding the database")
@click.option("-v", "--verbose", is_flag=True, help="Log debug output to stderr")
@click.pass_context
def main(ctx: click.Context, config_path, data_dir, verbose: bool) -> None:
    """GoPuzzles: progress tracking for Go puzzle collections."""
    from gopuzzles.server.__main__ import configure_logging

    ctx.ensure_object(dict)
    settings = Settings.load(config_path)
    if data_dir is not None:
        settings.data_dir = data_dir
    configure_logging("DEBUG" if verbose else settings.log_level)
    ctx.obj["settings"] = settings


@main.command()
@click.pass_context
def serve(ctx: click.Context) -> None:
    """Run the JSON-lines server on stdin/stdout."""
    import asyncio

    from gopuzzles.server.__main__ import main as server_main

    asyncio.run(server_main(ctx.obj["settings"]))


@main.command("import")
@click.argument("catalog_dir", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.pass_context
def import_catalog(ctx: click.Context, catalog_dir: Path) -> None:
    """Import collections from a YAML catalog directory."""
    from gopuzzles.catalog.loader import discover_collections
    from gopuzzles.state.transfer import import_catalog as do_import

    svc = _services(ctx)
    try:
        collections, puzzles = do_import(svc.catalog, discover_collections(catalog_dir))
    except TrackerError as e:
        raise click.ClickException(str(e))
    click.echo(f"Imported {collections} collections, {puzzles} puzzles")


@main.command()
@click.option("--collection", "collection_id", default=None, help="Show one collection in detail")
@click.pass_context
def stats(ctx: click.Context, collection_id) -> None:
    """Show catalog or collection statistics."""
    from gopuzzles.engine.statistics import StatisticsEngine

    svc = _services(ctx)
    engine = StatisticsEngine(svc.catalog, svc.progress)
    try:
        if collection_id:
            s = engine.collection_stats(collection_id)
            click.echo(f"{s.name}: {s.total_puzzles} puzzles, {s.unique_visitors} visitors "
                       f"({s.completed_visitors} completed), completion rate {s.completion_rate}%")
            for p in s.puzzle_stats:
                click.echo(f"  {p.name} [d{p.difficulty}] attempts={p.attempts} "
                           f"completed={p.completed} success={p.success_rate}%")
            return
        s = engine.catalog_stats()
    except TrackerError as e:
        raise click.ClickException(str(e))
    click.echo(f"Collections: {s.total_collections}  Puzzles: {s.total_puzzles}  Visitors: {s.total_visitors}")
    click.echo(f"Attempts: {s.total_attempts}  Solved: {s.total_completed}  "
               f"Success rate: {s.average_success_rate}%")
    for difficulty, count in s.difficulty_distribution:
        click.echo(f"  difficulty {difficulty}: {count}")
    for category, count in s.category_distribution:
        click.echo(f"  {category.value}: {count}")


@main.command()
@click.argument("visitor_id")
@click.pass_context
def achievements(ctx: click.Context, visitor_id: str) -> None:
    """List achievements unlocked by a visitor."""
    from gopuzzles.engine.achievements import AchievementEngine

    svc = _services(ctx)
    unlocked = AchievementEngine(svc.catalog, svc.progress).compute_achievements(visitor_id)
    if not unlocked:
        click.echo("No achievements yet.")
    for a in unlocked:
        click.echo(f"  {a.title}: {a.description}")


@main.command()
@click.argument("visitor_id")
@click.option("--limit", type=int, default=None, help="Number of puzzles to recommend")
@click.pass_context
def recommend(ctx: click.Context, visitor_id: str, limit) -> None:
    """Recommend puzzles for a visitor."""
    from gopuzzles.engine.recommender import Recommender

    svc = _services(ctx)
    recommender = Recommender(svc.catalog, svc.progress, default_limit=svc.settings.recommendation_limit)
    try:
        puzzles = recommender.recommend(visitor_id, limit=limit)
    except TrackerError as e:
        raise click.ClickException(str(e))
    for p in puzzles:
        click.echo(f"  {p.id}: {p.name} [{p.category.value}, d{p.difficulty}] "
                   f"in {p.collection_name} ({p.views} views, {p.likes} likes)")


@main.command()
@click.option("--days", type=int, default=None, help="Age threshold in days")
@click.pass_context
def cleanup(ctx: click.Context, days) -> None:
    """Delete stale, never-completed progress records."""
    from gopuzzles.engine.tracker import ProgressTracker

    svc = _services(ctx)
    days = days if days is not None else svc.settings.retention_days
    try:
        deleted = ProgressTracker(svc.catalog, svc.progress).cleanup_stale(days)
    except TrackerError as e:
        raise click.ClickException(str(e))
    click.echo(f"Cleaned up {deleted} old progress entries older than {days} days")


@main.command()
@click.option("--type", "kind", type=click.Choice(["all", "collections", "puzzles", "progress"]),
              default="all", show_default=True)
@click.option("-o", "--output", type=click.Path(dir_okay=False, path_type=Path), default=None,
              help="Write to a file instead of stdout")
@click.pass_context
def export(ctx: click.Context, kind: str, output) -> None:
    """Export catalog and progress data as JSON."""
    from gopuzzles.state.transfer import export_data

    svc = _services(ctx)
    text = json.dumps(export_data(svc.catalog, svc.progress, kind=kind), indent=2)
    if output is None:
        click.echo(text)
    else:
        output.write_text(text)
        click.echo(f"Wrote {output}")
