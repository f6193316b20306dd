"""liveloader CLI - Import job commands."""
import typer
from rich.console import Console
from rich.table import Table

from liveloader.cli.imports import print_job

app = typer.Typer()
console = Console()


@app.command("status")
def job_status(
    job_id: str = typer.Argument(..., help="Import job id"),
):
    """Show an import job's status and progress."""
    from liveloader.database import SessionLocal
    from liveloader.services.import_management import ImportManagementService
    from liveloader.services.job_status import JobNotFoundError

    db = SessionLocal()
    try:
        try:
            job = ImportManagementService(db).get_job_status(job_id)
        except JobNotFoundError as e:
            console.print(f"[red]{e}[/red]")
            raise typer.Exit(1)
        print_job(job)
    finally:
        db.close()


@app.command("list")
def list_jobs(
    status: str = typer.Option(None, "--status", "-s", help="Filter by status"),
    limit: int = typer.Option(20, "--limit", "-l", help="Number of jobs"),
):
    """List recent import jobs."""
    from liveloader.database import SessionLocal
    from liveloader.services.import_management import ImportManagementService

    db = SessionLocal()
    try:
        jobs = ImportManagementService(db).list_jobs(status, limit)

        if not jobs:
            console.print("No import jobs")
            return

        table = Table(title="Import Jobs")
        table.add_column("Job", style="dim")
        table.add_column("Artist", style="cyan")
        table.add_column("Collection")
        table.add_column("Status")
        table.add_column("Progress", justify="right")
        table.add_column("Created", justify="right")
        table.add_column("Errors", justify="right")

        for job in jobs:
            table.add_row(
                job.job_id,
                job.artist_name,
                job.collection_id,
                job.status,
                f"{job.progress}%",
                str(job.tracks_created or 0),
                str(job.error_count or 0),
            )

        console.print(table)
    finally:
        db.close()


@app.command("cancel")
def cancel_job(
    job_id: str = typer.Argument(..., help="Import job id"),
):
    """Cancel a queued or running import job."""
    from liveloader.database import SessionLocal
    from liveloader.services.import_management import ImportManagementService
    from liveloader.services.job_status import JobNotFoundError, JobStateError

    db = SessionLocal()
    try:
        try:
            ImportManagementService(db).cancel_job(job_id, actor="cli")
        except (JobNotFoundError, JobStateError) as e:
            console.print(f"[red]{e}[/red]")
            raise typer.Exit(1)
        console.print(f"[green]Job {job_id} cancelled[/green]")
    finally:
        db.close()


@app.command("cleanup")
def cleanup_jobs(
    days: int = typer.Option(None, "--days", "-d", help="Remove finished jobs older than N days (default from settings)"),
):
    """Remove finished import jobs past the retention window."""
    from liveloader.database import SessionLocal
    from liveloader.services.import_management import ImportManagementService

    if days is not None and days <= 0:
        console.print("[red]--days must be a positive number[/red]")
        raise typer.Exit(1)

    db = SessionLocal()
    try:
        deleted = ImportManagementService(db).cleanup_jobs(days)
        console.print(f"[green]Removed {deleted} jobs[/green]")
    finally:
        db.close()
