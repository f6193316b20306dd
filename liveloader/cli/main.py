"""liveloader CLI - Main entry point."""
import typer
from rich.console import Console
from rich.table import Table

from liveloader.cli import imports, jobs, catalog, locks, unmatched
from liveloader.logging_config import setup_logging

app = typer.Typer(
    name="liveloader",
    help="liveloader - Live concert archive ingestion",
    add_completion=True,
)

console = Console()

# Add subcommands
app.add_typer(imports.app, name="import", help="Import commands")
app.add_typer(jobs.app, name="jobs", help="Import job commands")
app.add_typer(catalog.app, name="catalog", help="Catalog maintenance commands")
app.add_typer(locks.app, name="locks", help="Lock commands")
app.add_typer(unmatched.app, name="unmatched", help="Unmatched track review commands")


@app.callback()
def main():
    """Configure logging for every command."""
    setup_logging()


@app.command()
def version():
    """Show version information."""
    from liveloader import __version__
    console.print(f"liveloader v{__version__}")


@app.command()
def status():
    """Check system status."""
    from liveloader.config import settings

    table = Table(title="liveloader Status")
    table.add_column("Component", style="cyan")
    table.add_column("Status", style="green")

    # Check database
    try:
        from sqlalchemy import text
        from liveloader.database import engine
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        table.add_row("Database", "Connected")
    except Exception as e:
        table.add_row("Database", f"[red]Error: {e}[/red]")

    # Check archive
    from liveloader.integrations.archive import ArchiveClient
    with ArchiveClient() as archive:
        if archive.test_connection():
            table.add_row("Archive API", f"OK ({settings.archive_base_url})")
        else:
            table.add_row("Archive API", f"[red]Unreachable ({settings.archive_base_url})[/red]")

    # Check paths
    from pathlib import Path
    for name, path in [
        ("Artist Catalogs", settings.artist_catalog_dir),
        ("Locks", settings.lock_dir),
    ]:
        p = Path(path)
        if p.exists():
            table.add_row(name, f"OK ({path})")
        else:
            table.add_row(name, f"[yellow]Missing ({path})[/yellow]")

    table.add_row("Writer", settings.import_writer)
    table.add_row("Artist Mappings", str(len(settings.artist_mappings)))

    console.print(table)


if __name__ == "__main__":
    app()
