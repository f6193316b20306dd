"""Tests for the row-at-a-time catalog writer."""
from unittest.mock import patch

from sqlalchemy import func, select

from liveloader.models.attribute_option import AttributeOption
from liveloader.models.catalog_entry import CatalogEntry
from liveloader.models.indexer import IndexerMode, SearchIndexRow
from liveloader.models.unmatched_track import UnmatchedTrack
from liveloader.services.attribute_options import AttributeOptionManager
from liveloader.services.catalog_values import generate_entry_key
from liveloader.services.indexer import CATALOG_SEARCH, IndexerService
from liveloader.services.track_importer import TrackImporter
from liveloader.services.track_matcher import TrackMatcher


def entry_count(db):
    return db.execute(select(func.count(CatalogEntry.id))).scalar_one()


class TestImportShowTracks:

    def test_creates_one_entry_per_track(self, db, make_show):
        show = make_show("lettuce2019-08-10", tracks=3)

        result = TrackImporter(db).import_show_tracks(show, "Lettuce")

        assert (result.created, result.updated, result.skipped) == (3, 0, 0)
        assert len(result.entry_ids) == 3
        assert entry_count(db) == 3

        entry = db.get(CatalogEntry, result.entry_ids[0])
        assert entry.sku == generate_entry_key(show.identifier, show.tracks[0].name)
        assert entry.name == "Lettuce Jam 1 2019 Red Rocks Amphitheatre"
        assert entry.show_identifier == "lettuce2019-08-10"
        assert entry.length_display == "5:01"
        assert entry.year_option_id is not None
        assert entry.collection_option_id is not None

    def test_reimport_updates_in_place(self, db, make_show):
        show = make_show("lettuce2019-08-10", tracks=3)
        first = TrackImporter(db).import_show_tracks(show, "Lettuce")

        show.venue = "Red Rocks"
        second = TrackImporter(db).import_show_tracks(show, "Lettuce")

        assert (second.created, second.updated) == (0, 3)
        assert second.entry_ids == first.entry_ids
        assert entry_count(db) == 3
        assert db.get(CatalogEntry, first.entry_ids[0]).name.endswith("Red Rocks")

    def test_entry_ids_in_track_order(self, db, make_show):
        show = make_show("lettuce2019-08-10", tracks=4)
        result = TrackImporter(db).import_show_tracks(show, "Lettuce")

        skus = [db.get(CatalogEntry, i).sku for i in result.entry_ids]
        assert skus == [generate_entry_key(show.identifier, t.name) for t in show.tracks]

    def test_track_without_file_is_skipped(self, db, make_show):
        show = make_show("lettuce2019-08-10", tracks=2)
        show.tracks[0].name = ""

        result = TrackImporter(db).import_show_tracks(show, "Lettuce")

        assert (result.created, result.skipped) == (1, 1)
        assert result.errors == []

    def test_failing_track_does_not_stop_the_show(self, db, make_show):
        show = make_show("lettuce2019-08-10", tracks=3)
        importer = TrackImporter(db)
        original = importer.find_entry

        def flaky(key):
            if key == generate_entry_key(show.identifier, show.tracks[1].name):
                raise RuntimeError("disk on fire")
            return original(key)

        with patch.object(importer, "find_entry", side_effect=flaky):
            result = importer.import_show_tracks(show, "Lettuce")

        assert (result.created, result.skipped) == (2, 1)
        assert len(result.errors) == 1
        assert "disk on fire" in result.errors[0]["message"]
        assert result.errors[0]["context"] == "lettuce2019-08-10"
        assert entry_count(db) == 2

    def test_failed_first_track_keeps_new_options(self, db, make_show):
        show = make_show("lettuce2019-08-10", tracks=3, venue="Brand New Venue")
        options = AttributeOptionManager(db)
        importer = TrackImporter(db, attribute_options=options)
        original = importer.find_entry

        def flaky(key):
            if key == generate_entry_key(show.identifier, show.tracks[0].name):
                raise RuntimeError("disk on fire")
            return original(key)

        with patch.object(importer, "find_entry", side_effect=flaky):
            result = importer.import_show_tracks(show, "Lettuce")

        assert (result.created, result.skipped) == (2, 1)
        for entry_id in result.entry_ids:
            venue = db.get(AttributeOption, db.get(CatalogEntry, entry_id).venue_option_id)
            assert venue is not None
            assert venue.label == "Brand New Venue"

        later = importer.import_show_tracks(make_show("lettuce2019-08-11", tracks=1, venue="Brand New Venue"), "Lettuce")
        entry = db.get(CatalogEntry, later.entry_ids[0])
        assert db.get(AttributeOption, entry.venue_option_id).label == "Brand New Venue"


class TestMatching:

    def test_matched_and_unmatched_counts(self, db, make_show, catalog_loader):
        show = make_show("lettuce2019-08-10", titles=["Phyllis", "Royal", "Zzyzx Road"])
        importer = TrackImporter(db, matcher=TrackMatcher(catalog_loader))

        result = importer.import_show_tracks(show, "Lettuce")

        assert (result.matched, result.unmatched) == (2, 1)
        entry = db.get(CatalogEntry, result.entry_ids[0])
        assert entry.canonical_track_key == "phyllis"
        assert entry.match_algorithm == "exact"

        unmatched = db.execute(select(UnmatchedTrack)).scalars().all()
        assert [u.track_title for u in unmatched] == ["Zzyzx Road"]
        assert unmatched[0].show_identifier == "lettuce2019-08-10"
        assert unmatched[0].status == "pending"
        assert unmatched[0].occurrence_count == 1

    def test_nonsense_title_recorded_for_review(self, db, make_show, catalog_loader):
        importer = TrackImporter(db, matcher=TrackMatcher(catalog_loader))

        result = importer.import_show_tracks(make_show("lettuce2019-08-10", titles=["Xkcd Qwerty Asdfgh"]), "Lettuce")

        assert (result.created, result.matched, result.unmatched) == (1, 0, 1)
        assert db.get(CatalogEntry, result.entry_ids[0]).canonical_track_key is None
        row = db.execute(select(UnmatchedTrack)).scalar_one()
        assert row.track_title == "Xkcd Qwerty Asdfgh"
        assert row.status == "pending"
        assert row.occurrence_count == 1

    def test_unmatched_occurrences_accumulate(self, db, make_show, catalog_loader):
        importer = TrackImporter(db, matcher=TrackMatcher(catalog_loader))
        importer.import_show_tracks(make_show("a", titles=["Zzyzx Road"]), "Lettuce")
        importer.import_show_tracks(make_show("b", titles=["zzyzx road"]), "Lettuce")

        row = db.execute(select(UnmatchedTrack)).scalar_one()
        assert row.occurrence_count == 2
        assert row.show_identifier == "b"

    def test_artist_without_catalog_records_nothing(self, db, make_show, catalog_loader):
        importer = TrackImporter(db, matcher=TrackMatcher(catalog_loader))
        result = importer.import_show_tracks(make_show("phish1997", titles=["Tweezer"]), "Phish")

        assert (result.matched, result.unmatched) == (0, 0)
        assert db.execute(select(func.count(UnmatchedTrack.id))).scalar_one() == 0


class TestIndexing:

    def test_realtime_indexes_each_save(self, db, make_show):
        result = TrackImporter(db).import_show_tracks(make_show("a", tracks=2), "Lettuce")

        rows = db.execute(select(SearchIndexRow)).scalars().all()
        assert sorted(r.entry_id for r in rows) == sorted(result.entry_ids)
        assert "lettuce" in rows[0].search_text

    def test_schedule_mode_skips_index(self, db, make_show):
        IndexerService(db).set_mode(CATALOG_SEARCH, IndexerMode.SCHEDULE.value)
        db.commit()

        TrackImporter(db).import_show_tracks(make_show("a", tracks=2), "Lettuce")

        assert db.execute(select(func.count(SearchIndexRow.entry_id))).scalar_one() == 0
        assert IndexerService(db).reindex_all() == 2
