"""liveloader CLI - Import commands."""
from typing import Optional
import typer
from rich.console import Console
from rich.table import Table

app = typer.Typer()
console = Console()


def print_job(job) -> None:
    """Render an import job's counters."""
    table = Table(title=f"Import job {job.job_id}")
    table.add_column("Field", style="cyan")
    table.add_column("Value")

    status_style = {
        "completed": "green",
        "partial": "yellow",
        "failed": "red",
        "cancelled": "yellow",
    }.get(job.status, "white")

    table.add_row("Status", f"[{status_style}]{job.status}[/{status_style}]")
    table.add_row("Artist", job.artist_name)
    table.add_row("Collection", job.collection_id)
    table.add_row("Dry run", "yes" if job.dry_run else "no")
    table.add_row("Shows", f"{job.processed_shows or 0}/{job.total_shows or 0} ({job.progress}%)")
    table.add_row("Created", str(job.tracks_created or 0))
    table.add_row("Updated", str(job.tracks_updated or 0))
    table.add_row("Skipped", str(job.tracks_skipped or 0))
    table.add_row("Errors", str(job.error_count or 0))
    if job.message:
        table.add_row("Message", job.message)
    console.print(table)

    for error in (job.errors or [])[:10]:
        context = f" ({error['context']})" if error.get("context") else ""
        console.print(f"  [red]{error['message']}{context}[/red]")


def _run(artist: str, collection: Optional[str], limit, offset, dry_run: bool, queue: bool, writer: Optional[str]):
    from liveloader.database import SessionLocal
    from liveloader.services.import_management import ImportManagementService, ValidationError

    db = SessionLocal()
    service = ImportManagementService(db)
    try:
        collection = collection or service.collection_for(artist)
        if not collection:
            console.print(f"[red]No collection mapped for '{artist}'. Pass --collection.[/red]")
            raise typer.Exit(1)

        try:
            if queue:
                job = service.start_import(
                    artist, collection, limit, offset, dry_run=dry_run, run_async=True, started_by="cli", writer=writer
                )
                console.print(f"[green]Queued job {job.job_id}[/green]")
                return

            with console.status(f"Importing {artist} ({collection})...") as status:
                def progress(total: int, current: int, message: str) -> None:
                    status.update(f"{current}/{total} {message}")

                job = service.start_import(
                    artist,
                    collection,
                    limit,
                    offset,
                    dry_run=dry_run,
                    run_async=False,
                    started_by="cli",
                    writer=writer,
                    progress_callback=progress,
                )
        except ValidationError as e:
            console.print(f"[red]{e}[/red]")
            raise typer.Exit(1)

        print_job(job)
        if job.status == "failed":
            raise typer.Exit(1)
    finally:
        service.close()
        db.close()


@app.command("collection")
def import_collection(
    artist: str = typer.Argument(..., help="Artist name"),
    collection: str = typer.Option(None, "--collection", "-c", help="Archive collection id (defaults to the artist mapping)"),
    limit: int = typer.Option(None, "--limit", "-l", help="Maximum number of shows"),
    offset: int = typer.Option(None, "--offset", "-o", help="Shows to skip"),
    queue: bool = typer.Option(False, "--queue", "-q", help="Queue for a worker instead of running here"),
    writer: str = typer.Option(None, "--writer", "-w", help="Catalog writer: orm or bulk"),
):
    """Import an artist's archive collection."""
    if writer is not None and writer not in ("orm", "bulk"):
        console.print("[red]--writer must be 'orm' or 'bulk'[/red]")
        raise typer.Exit(1)
    _run(artist, collection, limit, offset, False, queue, writer)


@app.command("dry-run")
def dry_run(
    artist: str = typer.Argument(..., help="Artist name"),
    collection: str = typer.Option(None, "--collection", "-c", help="Archive collection id (defaults to the artist mapping)"),
    limit: int = typer.Option(None, "--limit", "-l", help="Maximum number of shows"),
    offset: int = typer.Option(None, "--offset", "-o", help="Shows to skip"),
):
    """Show what an import would create or update, without writing."""
    _run(artist, collection, limit, offset, True, False, None)


@app.command("show")
def import_show(
    identifier: str = typer.Argument(..., help="Archive item identifier"),
    artist: str = typer.Argument(..., help="Artist name"),
    writer: str = typer.Option(None, "--writer", "-w", help="Catalog writer: orm or bulk"),
):
    """Import a single show."""
    from liveloader.database import SessionLocal
    from liveloader.services.import_management import ImportManagementService, ValidationError
    from liveloader.services.lock import LockError

    db = SessionLocal()
    service = ImportManagementService(db)
    try:
        try:
            result = service.import_show(identifier, artist, started_by="cli", writer=writer)
        except (ValidationError, LockError) as e:
            console.print(f"[red]{e}[/red]")
            raise typer.Exit(1)

        console.print(
            f"Created: {result.tracks_created}  Updated: {result.tracks_updated}  "
            f"Skipped: {result.tracks_skipped}  Unmatched: {result.tracks_unmatched}"
        )
        for error in result.errors:
            console.print(f"  [red]{error['message']}[/red]")
        if result.has_errors:
            raise typer.Exit(1)
    finally:
        service.close()
        db.close()
