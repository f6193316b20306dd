"""Tests for CLI commands."""
import pytest
from sqlalchemy import func, select
from typer.testing import CliRunner

from liveloader.cli.main import app
from liveloader.config import settings
from liveloader.models.catalog_entry import CatalogEntry

runner = CliRunner()


def entry_count(db):
    return db.execute(select(func.count(CatalogEntry.id))).scalar_one()


@pytest.fixture
def cli_env(db, monkeypatch, tmp_path, fake_archive, catalog_loader, artist_mappings, make_show):
    """Point every command at the test session, the fake archive and temp dirs."""
    monkeypatch.setattr("liveloader.database.SessionLocal", lambda: db)
    monkeypatch.setattr("liveloader.services.import_management.ArchiveClient", lambda: fake_archive)
    monkeypatch.setattr(settings, "artist_mappings", artist_mappings)
    monkeypatch.setattr(settings, "lock_dir", str(tmp_path / "locks"))
    monkeypatch.setattr(settings, "artist_catalog_dir", str(catalog_loader.catalog_dir))

    for i in range(1, 4):
        fake_archive.add_show("Lettuce", make_show(f"lettuce2019-08-{i:02d}", tracks=5))
    return fake_archive


def test_version():
    """Test version command."""
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert "liveloader v" in result.stdout


class TestImportCommands:

    def test_collection_uses_artist_mapping(self, db, cli_env):
        result = runner.invoke(app, ["import", "collection", "Lettuce"])

        assert result.exit_code == 0, result.stdout
        assert "completed" in result.stdout
        assert entry_count(db) == 15

    def test_collection_with_limit_and_bulk_writer(self, db, cli_env):
        result = runner.invoke(app, ["import", "collection", "Lettuce", "--limit", "1", "--writer", "bulk"])

        assert result.exit_code == 0, result.stdout
        assert entry_count(db) == 5

    def test_unknown_writer(self, cli_env):
        result = runner.invoke(app, ["import", "collection", "Lettuce", "--writer", "fast"])
        assert result.exit_code == 1

    def test_unmapped_artist(self, cli_env):
        result = runner.invoke(app, ["import", "collection", "Phish"])

        assert result.exit_code == 1
        assert "No collection mapped" in result.stdout

    def test_invalid_collection(self, cli_env):
        result = runner.invoke(app, ["import", "collection", "Lettuce", "--collection", "bad id"])

        assert result.exit_code == 1
        assert "Invalid collection ID" in result.stdout

    def test_listing_failure_exits_nonzero(self, cli_env):
        cli_env.listing_error = "Service Unavailable"

        result = runner.invoke(app, ["import", "collection", "Lettuce"])

        assert result.exit_code == 1
        assert "failed" in result.stdout

    def test_dry_run(self, db, cli_env):
        result = runner.invoke(app, ["import", "dry-run", "Lettuce"])

        assert result.exit_code == 0, result.stdout
        assert entry_count(db) == 0

    def test_show(self, db, cli_env):
        result = runner.invoke(app, ["import", "show", "lettuce2019-08-01", "Lettuce"])

        assert result.exit_code == 0, result.stdout
        assert "Created: 5" in result.stdout

    def test_show_missing(self, cli_env):
        result = runner.invoke(app, ["import", "show", "nope", "Lettuce"])
        assert result.exit_code == 1


class TestJobCommands:

    def test_list_empty(self, cli_env):
        result = runner.invoke(app, ["jobs", "list"])
        assert "No import jobs" in result.stdout

    def test_status_unknown(self, cli_env):
        result = runner.invoke(app, ["jobs", "status", "import_nope"])

        assert result.exit_code == 1
        assert "does not exist" in result.stdout

    def test_cancel_finished_job(self, db, cli_env):
        from liveloader.models.import_job import ImportJob

        runner.invoke(app, ["import", "collection", "Lettuce"])
        job_id = db.execute(select(ImportJob.job_id)).scalar_one()

        result = runner.invoke(app, ["jobs", "cancel", job_id])

        assert result.exit_code == 1
        assert "Cannot cancel" in result.stdout

    def test_cleanup_rejects_bad_days(self, cli_env):
        result = runner.invoke(app, ["jobs", "cleanup", "--days", "0"])
        assert result.exit_code == 1


class TestCatalogCommands:

    def test_cleanup_dry_run(self, db, cli_env):
        runner.invoke(app, ["import", "collection", "Lettuce"])

        result = runner.invoke(app, ["catalog", "cleanup", "--collection", "Lettuce", "--dry-run"])

        assert result.exit_code == 0
        assert "Found 15 entries" in result.stdout
        assert entry_count(db) == 15

    def test_cleanup_force(self, db, cli_env):
        runner.invoke(app, ["import", "collection", "Lettuce"])

        result = runner.invoke(app, ["catalog", "cleanup", "--collection", "Lettuce", "--force"])

        assert result.exit_code == 0, result.stdout
        assert "Deleted 15 entries" in result.stdout
        assert entry_count(db) == 0

    def test_cleanup_requires_filter(self, cli_env):
        result = runner.invoke(app, ["catalog", "cleanup"])

        assert result.exit_code == 1
        assert "Specify at least one filter" in result.stdout

    def test_delete_confirm_declined(self, db, cli_env):
        runner.invoke(app, ["import", "collection", "Lettuce"])
        sku = db.execute(select(CatalogEntry.sku)).scalars().first()

        result = runner.invoke(app, ["catalog", "delete", sku], input="n\n")

        assert "Cancelled" in result.stdout
        assert entry_count(db) == 15

    def test_delete_force(self, db, cli_env):
        runner.invoke(app, ["import", "collection", "Lettuce"])
        sku = db.execute(select(CatalogEntry.sku)).scalars().first()

        result = runner.invoke(app, ["catalog", "delete", sku, "--force"])

        assert result.exit_code == 0, result.stdout
        assert entry_count(db) == 14

    def test_collections(self, cli_env):
        result = runner.invoke(app, ["catalog", "collections", "--stats"])

        assert result.exit_code == 0
        assert "Lettuce" in result.stdout

    def test_reindex(self, cli_env):
        runner.invoke(app, ["import", "collection", "Lettuce"])

        result = runner.invoke(app, ["catalog", "reindex"])

        assert result.exit_code == 0
        assert "Indexed 15 entries" in result.stdout

    def test_validate(self, cli_env):
        result = runner.invoke(app, ["catalog", "validate"])

        assert result.exit_code == 0
        assert "lettuce: ok" in result.stdout

    def test_validate_invalid(self, cli_env, catalog_loader):
        catalog_loader.path_for("broken").write_text("tracks: nope\n")

        result = runner.invoke(app, ["catalog", "validate", "broken"])

        assert result.exit_code == 1
        assert "broken: invalid" in result.stdout

    def test_match(self, cli_env):
        result = runner.invoke(app, ["catalog", "match", "Phylis", "--artist", "Lettuce"])

        assert result.exit_code == 0
        assert "[phyllis] via metaphone" in result.stdout

    def test_match_without_catalog(self, cli_env):
        result = runner.invoke(app, ["catalog", "match", "Tweezer", "--artist", "Phish"])
        assert result.exit_code == 1

    def test_benchmark_all(self, db, cli_env):
        result = runner.invoke(app, ["catalog", "benchmark", "--shows", "2", "--tracks", "3", "--force"])

        assert result.exit_code == 0, result.stdout
        assert "Speedup:" in result.stdout
        assert "Removed 6 benchmark entries" in result.stdout
        assert entry_count(db) == 0

    def test_benchmark_keep(self, db, cli_env):
        result = runner.invoke(
            app, ["catalog", "benchmark", "--shows", "1", "--tracks", "4", "--method", "bulk", "--keep", "--force"]
        )

        assert result.exit_code == 0, result.stdout
        assert "Speedup:" not in result.stdout
        assert entry_count(db) == 4

    def test_benchmark_bad_method(self, cli_env):
        result = runner.invoke(app, ["catalog", "benchmark", "--method", "fast", "--force"])
        assert result.exit_code == 1

    def test_benchmark_declined(self, db, cli_env):
        result = runner.invoke(app, ["catalog", "benchmark", "--shows", "1", "--tracks", "1"], input="n\n")

        assert "Cancelled" in result.stdout
        assert entry_count(db) == 0


class TestLockCommands:

    def test_list_empty(self, cli_env):
        result = runner.invoke(app, ["locks", "list"])
        assert "No locks held" in result.stdout

    def test_release_missing(self, cli_env):
        result = runner.invoke(app, ["locks", "release", "import", "Lettuce", "--force"])
        assert result.exit_code == 1

    def test_release_held(self, cli_env, tmp_path):
        from liveloader.services.lock import LockService

        holder = LockService(lock_dir=str(tmp_path / "locks"))
        holder.acquire("import", "Lettuce")

        result = runner.invoke(app, ["locks", "release", "import", "Lettuce", "--force"])

        assert result.exit_code == 0
        assert "Released import lock" in result.stdout
        assert not holder.lock_path("import", "Lettuce").exists()


class TestUnmatchedCommands:

    def test_list_and_resolve(self, cli_env, fake_archive, make_show):
        fake_archive.add_show("Other", make_show("lettuce2020-01-01", titles=["Zzyzx Road"]))
        runner.invoke(app, ["import", "show", "lettuce2020-01-01", "Lettuce"])

        listed = runner.invoke(app, ["unmatched", "list"])
        assert "Zzyzx Road" in listed.stdout

        resolved = runner.invoke(app, ["unmatched", "resolve", "1", "ignored"])
        assert resolved.exit_code == 0
        assert "marked ignored" in resolved.stdout

    def test_resolve_mapped_needs_key(self, cli_env, fake_archive, make_show):
        fake_archive.add_show("Other", make_show("lettuce2020-01-01", titles=["Zzyzx Road"]))
        runner.invoke(app, ["import", "show", "lettuce2020-01-01", "Lettuce"])

        result = runner.invoke(app, ["unmatched", "resolve", "1", "mapped"])
        assert result.exit_code == 1

    def test_stats(self, cli_env, fake_archive, make_show):
        fake_archive.add_show("Other", make_show("lettuce2020-01-01", titles=["Zzyzx Road"]))
        runner.invoke(app, ["import", "show", "lettuce2020-01-01", "Lettuce"])

        result = runner.invoke(app, ["unmatched", "stats", "--artist", "Lettuce"])

        assert result.exit_code == 0
        assert "pending" in result.stdout
        assert "total" in result.stdout


class TestArtistStatusCommand:

    def test_empty(self, cli_env):
        result = runner.invoke(app, ["catalog", "status"])

        assert result.exit_code == 0
        assert "No artist status recorded yet" in result.stdout

    def test_after_import(self, db, cli_env):
        runner.invoke(app, ["import", "collection", "Lettuce"])

        result = runner.invoke(app, ["catalog", "status"])

        assert result.exit_code == 0
        assert "Artist Status" in result.stdout

    def test_blank_artist(self, cli_env):
        result = runner.invoke(app, ["catalog", "status", " "])

        assert result.exit_code == 1
        assert "Artist name cannot be empty." in result.stdout
