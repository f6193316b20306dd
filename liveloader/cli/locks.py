"""liveloader CLI - Lock commands."""
import typer
from rich.console import Console
from rich.table import Table
from rich.prompt import Confirm

app = typer.Typer()
console = Console()


@app.command("list")
def list_locks():
    """List lock files and their holders."""
    from liveloader.services.lock import LockService

    locks = LockService().list_locks()
    if not locks:
        console.print("No locks held")
        return

    table = Table(title="Locks")
    table.add_column("Operation", style="cyan")
    table.add_column("Entity")
    table.add_column("PID", justify="right")
    table.add_column("Host")
    table.add_column("Since")
    table.add_column("Stale")

    for lock in locks:
        table.add_row(
            lock.get("operation", "?"),
            lock.get("entity", lock["file"]),
            str(lock.get("pid", "")),
            lock.get("hostname", ""),
            lock.get("acquired_at", ""),
            "[yellow]yes[/yellow]" if lock["stale"] else "no",
        )

    console.print(table)


@app.command("release")
def release_lock(
    operation: str = typer.Argument(..., help="Locked operation, e.g. import"),
    entity: str = typer.Argument(..., help="Locked entity, e.g. artist name"),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation"),
):
    """Force-release a lock held by another process."""
    from liveloader.services.lock import LockService

    service = LockService()
    info = service.get_lock_info(operation, entity)
    if info is None:
        console.print(f"[yellow]No lock for {operation} '{entity}'[/yellow]")
        raise typer.Exit(1)

    if not force:
        if not Confirm.ask(f"Release lock held by pid {info.get('pid')} on {info.get('hostname')}?"):
            console.print("Cancelled")
            return

    service.force_release(operation, entity)
    console.print(f"[green]Released {operation} lock for '{entity}'[/green]")


@app.command("cleanup")
def cleanup_locks(
    max_age_hours: int = typer.Option(None, "--max-age-hours", help="Treat locks older than this as stale"),
):
    """Remove stale lock files."""
    from liveloader.services.lock import LockService

    removed = LockService().cleanup_stale_locks(max_age_hours)
    console.print(f"[green]Removed {removed} stale locks[/green]")
