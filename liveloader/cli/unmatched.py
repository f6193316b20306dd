"""liveloader CLI - Unmatched track review commands."""
import typer
from rich.console import Console
from rich.table import Table

app = typer.Typer()
console = Console()


@app.command("list")
def list_unmatched(
    artist: str = typer.Option(None, "--artist", "-a", help="Filter by artist"),
    status: str = typer.Option("pending", "--status", "-s", help="pending, mapped, ignored or new_track"),
    limit: int = typer.Option(50, "--limit", "-l", help="Number of rows"),
):
    """List track titles no matching tier resolved."""
    from liveloader.database import SessionLocal
    from liveloader.services.import_management import ImportManagementService

    db = SessionLocal()
    try:
        rows = ImportManagementService(db).list_unmatched(artist, status, limit)

        if not rows:
            console.print("No unmatched tracks")
            return

        table = Table(title="Unmatched Tracks")
        table.add_column("ID", style="dim")
        table.add_column("Artist", style="cyan")
        table.add_column("Title")
        table.add_column("Seen", justify="right")
        table.add_column("Suggestion")
        table.add_column("Status")

        for row in rows:
            suggestion = ""
            if row.suggested_match:
                suggestion = f"{row.suggested_match} ({row.match_confidence}%)"
            table.add_row(
                str(row.id),
                row.artist_name,
                row.track_title,
                str(row.occurrence_count),
                suggestion,
                row.status,
            )

        console.print(table)
    finally:
        db.close()


@app.command("resolve")
def resolve_unmatched(
    unmatched_id: int = typer.Argument(..., help="Unmatched track id"),
    status: str = typer.Argument(..., help="mapped, ignored or new_track"),
    track_key: str = typer.Option(None, "--track-key", "-k", help="Canonical track key (required for mapped)"),
):
    """Resolve an unmatched track title."""
    from liveloader.database import SessionLocal
    from liveloader.services.import_management import ImportManagementService
    from liveloader.services.unmatched import UnmatchedTrackError

    db = SessionLocal()
    try:
        try:
            row = ImportManagementService(db).resolve_unmatched(unmatched_id, status, track_key)
        except UnmatchedTrackError as e:
            console.print(f"[red]{e}[/red]")
            raise typer.Exit(1)
        console.print(f"[green]'{row.track_title}' marked {row.status}[/green]")
    finally:
        db.close()


@app.command("stats")
def unmatched_stats(
    artist: str = typer.Option(None, "--artist", "-a", help="Filter by artist"),
):
    """Show unmatched track counts per review status."""
    from liveloader.database import SessionLocal
    from liveloader.services.import_management import ImportManagementService

    db = SessionLocal()
    try:
        stats = ImportManagementService(db).unmatched_stats(artist)

        table = Table(title=f"Unmatched Tracks: {artist}" if artist else "Unmatched Tracks")
        table.add_column("Status")
        table.add_column("Count", justify="right")
        for status, count in stats.items():
            table.add_row(status, str(count))

        console.print(table)
    finally:
        db.close()
