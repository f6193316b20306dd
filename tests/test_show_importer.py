"""Tests for collection and show import orchestration."""
import pytest
from sqlalchemy import func, select

from liveloader.models.catalog_entry import CatalogEntry
from liveloader.models.classification import ClassificationNode, EntryNodeLink
from liveloader.services.attribute_options import AttributeOptionManager
from liveloader.services.bulk_importer import BulkTrackImporter
from liveloader.services.classification import CategoryAssignmentService
from liveloader.services.show_importer import CollectionImportError, ImportResult, ShowImporter
from liveloader.services.track_importer import TrackImportResult
from liveloader.services.track_matcher import TrackMatcher


def entry_count(db):
    return db.execute(select(func.count(CatalogEntry.id))).scalar_one()


@pytest.fixture
def build_importer(db, fake_archive, catalog_loader, artist_mappings):
    """Factory for a ShowImporter wired like the management service does it."""
    def _build(batch_size=10, bulk=False):
        options = AttributeOptionManager(db)
        matcher = TrackMatcher(catalog_loader)
        writer = BulkTrackImporter if bulk else None
        kwargs = {}
        if writer is not None:
            kwargs["track_importer"] = writer(db, attribute_options=options, matcher=matcher)
        return ShowImporter(
            db,
            fake_archive,
            classification=CategoryAssignmentService(db, artist_mappings),
            attribute_options=options,
            matcher=matcher,
            batch_size=batch_size,
            **kwargs,
        )

    return _build


@pytest.fixture
def collection(fake_archive, make_show):
    """Three shows of five tracks each in TestCollection."""
    for i in range(1, 4):
        fake_archive.add_show("TestCollection", make_show(f"lettuce2019-08-{i:02d}", tracks=5))
    return "TestCollection"


class TestImportCollection:

    def test_creates_then_updates(self, db, build_importer, collection):
        first = build_importer().import_collection("Lettuce", collection)

        assert first.shows_processed == 3
        assert first.tracks_created == 15
        assert first.tracks_updated == 0
        assert entry_count(db) == 15

        second = build_importer().import_collection("Lettuce", collection)

        assert second.tracks_created == 0
        assert second.tracks_updated == 15
        assert entry_count(db) == 15

    def test_bulk_writer_gives_same_counts(self, db, build_importer, collection):
        first = build_importer(bulk=True).import_collection("Lettuce", collection)
        second = build_importer(bulk=True).import_collection("Lettuce", collection)

        assert (first.tracks_created, first.tracks_updated) == (15, 0)
        assert (second.tracks_created, second.tracks_updated) == (0, 15)

    def test_entries_linked_to_artist_and_show(self, db, build_importer, collection, artist_node):
        build_importer().import_collection("Lettuce", collection)

        show_nodes = db.execute(
            select(ClassificationNode).where(ClassificationNode.parent_id == artist_node.id)
        ).scalars().all()
        assert len(show_nodes) == 3

        artist_links = db.execute(
            select(func.count(EntryNodeLink.id)).where(EntryNodeLink.node_id == artist_node.id)
        ).scalar_one()
        assert artist_links == 15

        show_links = db.execute(
            select(func.count(EntryNodeLink.id)).where(EntryNodeLink.node_id == show_nodes[0].id)
        ).scalar_one()
        assert show_links == 5

    def test_reimport_does_not_duplicate_links(self, db, build_importer, collection, artist_node):
        build_importer().import_collection("Lettuce", collection)
        build_importer().import_collection("Lettuce", collection)

        assert db.execute(select(func.count(EntryNodeLink.id))).scalar_one() == 30

    def test_unmapped_artist_still_imports(self, db, fake_archive, make_show):
        fake_archive.add_show("phish", make_show("phish1997-11-22", tracks=2))
        importer = ShowImporter(db, fake_archive, classification=CategoryAssignmentService(db, []))

        result = importer.import_collection("Phish", "phish")

        assert result.tracks_created == 2
        assert db.execute(select(func.count(EntryNodeLink.id))).scalar_one() == 0

    def test_limit_and_offset(self, db, build_importer, fake_archive, collection):
        result = build_importer().import_collection("Lettuce", collection, limit=1, offset=1)

        assert result.shows_processed == 1
        assert fake_archive.fetched == ["lettuce2019-08-02"]


class TestBatching:

    def test_caches_cleared_per_batch(self, build_importer, fake_archive, make_show):
        for i in range(15):
            fake_archive.add_show("Big", make_show(f"show{i:02d}", tracks=1))

        result = build_importer(batch_size=10).import_collection("Lettuce", "Big")

        assert result.shows_processed == 15
        assert result.cache_clears == 2

    def test_progress_callback(self, build_importer, collection):
        calls = []
        build_importer().import_collection(
            "Lettuce", collection, progress_callback=lambda total, current, message: calls.append((total, current, message))
        )

        assert calls[0] == (3, 0, "Starting import of 3 shows")
        assert calls[-1] == (3, 3, "Processed: lettuce2019-08-03")
        assert len(calls) == 4


class TestErrors:

    def test_show_failure_does_not_stop_collection(self, db, build_importer, fake_archive, collection):
        fake_archive.failing.add("lettuce2019-08-02")

        result = build_importer().import_collection("Lettuce", collection)

        assert result.shows_processed == 2
        assert result.tracks_created == 10
        assert result.error_count == 1
        assert result.errors[0]["context"] == "lettuce2019-08-02"
        assert entry_count(db) == 10

    def test_listing_failure_raises(self, build_importer, fake_archive, collection):
        fake_archive.listing_error = "Service Unavailable"

        with pytest.raises(CollectionImportError) as exc:
            build_importer().import_collection("Lettuce", collection)

        assert str(exc.value) == "Collection import failed: Service Unavailable"

    def test_empty_collection(self, build_importer):
        result = build_importer().import_collection("Lettuce", "Nothing")

        assert result.shows_processed == 0
        assert not result.has_errors
        assert result.completed_at is not None


class TestCancel:

    def test_stops_before_next_show(self, db, build_importer, fake_archive, collection):
        checks = []

        def cancel_check():
            checks.append(True)
            return len(checks) > 1

        result = build_importer().import_collection("Lettuce", collection, cancel_check=cancel_check)

        assert result.cancelled is True
        assert result.shows_processed == 1
        assert fake_archive.fetched == ["lettuce2019-08-01"]
        assert entry_count(db) == 5


class TestDryRun:

    def test_counts_without_writing(self, db, build_importer, fake_archive, make_show):
        existing = make_show("lettuce2019-08-01", tracks=1)
        fake_archive.add_show("Dry", existing)
        build_importer().import_show("lettuce2019-08-01", "Lettuce")

        fake_archive.add_show("Dry", make_show("lettuce2019-08-02", tracks=1))
        before = entry_count(db)

        result = build_importer().dry_run("Lettuce", "Dry")

        assert result.tracks_created == 1
        assert result.tracks_updated == 1
        assert result.shows_processed == 2
        assert entry_count(db) == before

    def test_listing_failure_aborts(self, build_importer, fake_archive):
        fake_archive.listing_error = "timeout"

        with pytest.raises(CollectionImportError) as exc:
            build_importer().dry_run("Lettuce", "Dry")
        assert str(exc.value) == "Dry run failed: timeout"


class TestImportShow:

    def test_single_show(self, db, build_importer, fake_archive, make_show):
        fake_archive.add_show("Lettuce", make_show("lettuce2019-08-10", tracks=4))

        result = build_importer().import_show("lettuce2019-08-10", "Lettuce")

        assert result.tracks_created == 4
        assert result.shows_processed == 1

    def test_missing_show_recorded_as_error(self, build_importer):
        result = build_importer().import_show("nope", "Lettuce")

        assert result.shows_processed == 0
        assert result.errors[0]["context"] == "nope"


class TestImportResult:

    def test_add_tracks_and_to_dict(self):
        result = ImportResult(artist_name="Lettuce", collection_id="Lettuce")
        tracks = TrackImportResult(created=2, updated=1, skipped=1, matched=3)
        tracks.add_error("Failed to import track x: boom", "show1")

        result.add_tracks(tracks)
        data = result.finish().to_dict()

        assert data["tracks_created"] == 2
        assert data["total_tracks"] == 4
        assert data["error_count"] == 1
        assert data["errors"][0] == {"message": "Failed to import track x: boom", "context": "show1"}
        assert data["duration"] is not None

    def test_merge(self):
        a = ImportResult(shows_processed=1, tracks_created=5)
        b = ImportResult(shows_processed=2, tracks_created=3, cancelled=True)
        b.add_error("x")

        a.merge(b)

        assert (a.shows_processed, a.tracks_created, a.error_count, a.cancelled) == (3, 8, 1, True)
