"""liveloader CLI - Catalog maintenance commands."""
import typer
from rich.console import Console
from rich.table import Table
from rich.prompt import Confirm

app = typer.Typer()
console = Console()


@app.command("collections")
def list_collections(
    stats: bool = typer.Option(False, "--stats", "-s", help="Include imported and archive counts"),
):
    """List configured artist collections."""
    from liveloader.database import SessionLocal
    from liveloader.services.import_management import ImportManagementService

    db = SessionLocal()
    service = ImportManagementService(db)
    try:
        collections = service.list_collections(include_stats=stats)

        if not collections:
            console.print("No artist mappings configured (set ARTIST_MAPPINGS)")
            return

        table = Table(title="Collections")
        table.add_column("Artist", style="cyan")
        table.add_column("Collection")
        table.add_column("Category", justify="right")
        if stats:
            table.add_column("Imported", justify="right")
            table.add_column("Archive", justify="right")

        for item in collections:
            row = [
                item["artist_name"] or "",
                item["collection_id"] or "",
                str(item["category_id"] or ""),
            ]
            if stats:
                total = item["total_items"]
                row.append(str(item["imported_count"]))
                row.append(str(total) if total is not None else "[yellow]unavailable[/yellow]")
            table.add_row(*row)

        console.print(table)
    finally:
        service.close()
        db.close()


@app.command("delete")
def delete_entry(
    sku: str = typer.Argument(..., help="Entry SKU"),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation"),
):
    """Delete one imported catalog entry."""
    from liveloader.database import SessionLocal
    from liveloader.services.import_management import (
        ImportManagementService,
        ValidationError,
        EntryNotFoundError,
        EntryDeleteError,
    )

    if not force:
        if not Confirm.ask(f"Delete entry '{sku}'?"):
            console.print("Cancelled")
            return

    db = SessionLocal()
    try:
        try:
            ImportManagementService(db).delete_entry(sku, actor="cli")
        except (ValidationError, EntryNotFoundError, EntryDeleteError) as e:
            console.print(f"[red]{e}[/red]")
            raise typer.Exit(1)
        console.print(f"[green]Entry '{sku}' deleted[/green]")
    finally:
        db.close()


@app.command("cleanup")
def cleanup_entries(
    collection: str = typer.Option(None, "--collection", "-c", help="Collection/artist name"),
    older_than: int = typer.Option(None, "--older-than", help="Only entries created more than N days ago"),
    dry_run: bool = typer.Option(False, "--dry-run", "-n", help="Show what would be deleted"),
    batch_size: int = typer.Option(100, "--batch-size", "-b", help="Entries deleted per batch (1-1000)"),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation"),
):
    """Delete imported entries by collection and/or age."""
    from liveloader.database import SessionLocal
    from liveloader.services.import_management import ImportManagementService, ValidationError

    db = SessionLocal()
    try:
        service = ImportManagementService(db)
        try:
            preview = service.cleanup_entries(collection, older_than, dry_run=True, batch_size=batch_size)
        except ValidationError as e:
            console.print(f"[red]{e}[/red]")
            raise typer.Exit(1)

        console.print(f"Found {preview['found']} entries")
        for sku in preview["preview"]:
            console.print(f"  {sku}")
        if preview["found"] > len(preview["preview"]):
            console.print(f"  ... and {preview['found'] - len(preview['preview'])} more")

        if dry_run or not preview["found"]:
            return

        if not force:
            if not Confirm.ask(f"Delete {preview['found']} entries?"):
                console.print("Cancelled")
                return

        with console.status("Deleting entries..."):
            summary = service.cleanup_entries(
                collection, older_than, dry_run=False, batch_size=batch_size, actor="cli"
            )

        console.print(f"[green]Deleted {summary['deleted']} entries[/green]")
        if summary["errors"]:
            console.print(f"[red]{summary['errors']} entries could not be deleted[/red]")
            raise typer.Exit(1)
    finally:
        db.close()


@app.command("reindex")
def reindex():
    """Rebuild the search index and return indexers to realtime mode."""
    from liveloader.database import SessionLocal
    from liveloader.services.import_management import ImportManagementService

    db = SessionLocal()
    try:
        with console.status("Reindexing..."):
            written = ImportManagementService(db).reindex()
        console.print(f"[green]Indexed {written} entries[/green]")
    finally:
        db.close()


@app.command("validate")
def validate_catalogs(
    artist: str = typer.Argument(None, help="Artist name or key (default: every catalog)"),
):
    """Validate artist catalog YAML files."""
    from liveloader.services.artist_catalog import ArtistCatalogLoader
    from liveloader.utils.normalize import artist_key

    loader = ArtistCatalogLoader()
    keys = [artist_key(artist)] if artist else loader.available_artists()
    if not keys:
        console.print(f"[yellow]No catalogs in {loader.catalog_dir}[/yellow]")
        return

    failed = False
    for key in keys:
        errors, warnings = loader.validate_file(key)
        if errors:
            failed = True
            console.print(f"[red]{key}: invalid[/red]")
        else:
            console.print(f"[green]{key}: ok[/green]")
        for error in errors:
            console.print(f"  [red]{error}[/red]")
        for warning in warnings:
            console.print(f"  [yellow]{warning}[/yellow]")

    if failed:
        raise typer.Exit(1)


@app.command("match")
def match_title(
    title: str = typer.Argument(..., help="Track title as it appears in the archive"),
    artist: str = typer.Option(..., "--artist", "-a", help="Artist name"),
):
    """Show how a track title resolves against an artist's catalog."""
    from liveloader.services.track_matcher import TrackMatcher
    from liveloader.utils.normalize import artist_key

    matcher = TrackMatcher()
    key = artist_key(artist)
    if not matcher.has_catalog(key):
        console.print(f"[red]No catalog for '{artist}' ({key})[/red]")
        raise typer.Exit(1)

    result = matcher.match(title, key)
    if result is None:
        suggestion = matcher.suggest(title, key)
        console.print(f"[yellow]No match for '{title}'[/yellow]")
        if suggestion:
            console.print(f"  Closest: {suggestion.track_name} ({suggestion.confidence}%)")
        raise typer.Exit(1)

    console.print(
        f"[green]{result.track_name}[/green] \\[{result.track_key}] "
        f"via {result.algorithm} ({result.confidence}%)"
    )


@app.command("benchmark")
def benchmark_writers(
    shows: int = typer.Option(10, "--shows", help="Synthetic shows to import"),
    tracks: int = typer.Option(100, "--tracks", help="Tracks per show"),
    method: str = typer.Option("all", "--method", "-m", help="orm, bulk or all"),
    keep: bool = typer.Option(False, "--keep", help="Keep the benchmark entries afterwards"),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation"),
):
    """Compare the ORM and bulk catalog writers on synthetic shows."""
    from liveloader.database import SessionLocal
    from liveloader.services.benchmark import (
        BENCHMARK_ARTIST,
        MEMORY_REDUCTION_TARGET,
        SPEEDUP_TARGET,
        WRITERS,
        ImportBenchmark,
        generate_test_shows,
    )

    if method not in WRITERS + ("all",):
        console.print("[red]--method must be 'orm', 'bulk' or 'all'[/red]")
        raise typer.Exit(1)
    if shows < 1 or tracks < 1:
        console.print("[red]--shows and --tracks must be positive[/red]")
        raise typer.Exit(1)

    if not force:
        if not Confirm.ask(f"Create {shows * tracks} catalog entries for '{BENCHMARK_ARTIST}'?"):
            console.print("Cancelled")
            return

    db = SessionLocal()
    try:
        benchmark = ImportBenchmark(db, generate_test_shows(shows, tracks))
        writers = WRITERS if method == "all" else (method,)

        table = Table(title=f"Import benchmark ({shows} shows x {tracks} tracks)")
        table.add_column("Writer", style="cyan")
        table.add_column("Duration", justify="right")
        table.add_column("Peak MB", justify="right")
        table.add_column("Statements", justify="right")
        table.add_column("Created", justify="right")
        table.add_column("Tracks/s", justify="right")

        for writer in writers:
            with console.status(f"Running {writer} writer..."):
                result = benchmark.run(writer)
            table.add_row(
                writer,
                f"{result['duration_seconds']:.2f}s",
                f"{result['peak_memory_mb']:.2f}",
                str(result["statements"]),
                str(result["created"]),
                f"{result['tracks_per_second']:.1f}",
            )
        console.print(table)

        if method == "all":
            comparison = benchmark.compare()
            speed_style = "green" if comparison["speedup_met_target"] else "yellow"
            memory_style = "green" if comparison["memory_reduction_met_target"] else "yellow"
            console.print(
                f"Speedup: [{speed_style}]{comparison['speedup_factor']}x[/{speed_style}] "
                f"(target {SPEEDUP_TARGET:g}x)"
            )
            console.print(
                f"Memory reduction: [{memory_style}]{comparison['memory_reduction_percent']}%[/{memory_style}] "
                f"(target {MEMORY_REDUCTION_TARGET:g}%)"
            )
            console.print(f"Statement reduction: {comparison['statement_reduction_percent']}%")

        if keep:
            console.print(f"[yellow]Benchmark entries kept under artist '{BENCHMARK_ARTIST}'[/yellow]")
        else:
            removed = benchmark.cleanup()
            console.print(f"Removed {removed} benchmark entries")
    finally:
        db.close()


@app.command("status")
def artist_status(
    artist: str = typer.Argument(None, help="Artist name (default: all artists)"),
):
    """Show per-artist catalog and matching totals."""
    from liveloader.database import SessionLocal
    from liveloader.services.import_management import ImportManagementService, ValidationError

    db = SessionLocal()
    service = ImportManagementService(db)
    try:
        if artist is not None:
            try:
                statuses = [service.get_artist_status(artist)]
            except ValidationError as e:
                console.print(f"[red]{e}[/red]")
                raise typer.Exit(1)
        else:
            statuses = service.list_artist_status()

        if not statuses:
            console.print("No artist status recorded yet")
            return

        table = Table(title="Artist Status")
        table.add_column("Artist", style="cyan")
        table.add_column("Tracks", justify="right")
        table.add_column("Matched", justify="right")
        table.add_column("Pending", justify="right")
        table.add_column("Match Rate", justify="right")
        table.add_column("Shows", justify="right")
        table.add_column("Hours", justify="right")
        table.add_column("Last Import")

        for status in statuses:
            last = ""
            if status.last_import_at:
                last = f"{status.last_import_at:%Y-%m-%d %H:%M} ({status.last_status})"
            table.add_row(
                status.artist_name,
                str(status.imported_tracks),
                str(status.matched_tracks),
                str(status.unmatched_tracks),
                f"{status.match_rate_percent:.1f}%",
                str(status.total_shows),
                str(status.total_hours),
                last,
            )

        console.print(table)
    finally:
        service.close()
        db.close()
