"""Tests for the ORM vs bulk writer benchmark."""
import pytest
from sqlalchemy import func, select, text

from liveloader.models.catalog_entry import CatalogEntry
from liveloader.models.indexer import SearchIndexRow
from liveloader.services.benchmark import (
    BENCHMARK_ARTIST,
    BenchmarkError,
    ImportBenchmark,
    StatementCounter,
    generate_test_shows,
)


def entry_count(db):
    return db.execute(select(func.count(CatalogEntry.id))).scalar_one()


@pytest.fixture
def benchmark(db):
    return ImportBenchmark(db, generate_test_shows(show_count=3, tracks_per_show=10))


class TestGenerateShows:

    def test_shape(self):
        shows = generate_test_shows(show_count=2, tracks_per_show=3)

        assert [s.identifier for s in shows] == ["benchmark-artist-2024-01-01", "benchmark-artist-2024-01-02"]
        assert [len(s.tracks) for s in shows] == [3, 3]
        assert shows[0].tracks[0].name == "benchmark-track-001.flac"
        assert shows[0].venue == "Benchmark Venue 2"

    def test_deterministic(self):
        assert generate_test_shows(1, 2) == generate_test_shows(1, 2)


class TestStatementCounter:

    def test_counts_only_while_active(self, db):
        db.execute(text("SELECT 0"))

        with StatementCounter(db.get_bind()) as counter:
            db.execute(text("SELECT 1"))
            db.execute(text("SELECT 2"))
        db.execute(text("SELECT 3"))

        assert counter.count == 2


class TestRun:

    def test_orm_writer(self, db, benchmark):
        result = benchmark.run("orm")

        assert result["method"] == "orm"
        assert (result["created"], result["updated"], result["skipped"]) == (30, 0, 0)
        assert result["statements"] > 0
        assert result["duration_seconds"] >= 0
        assert entry_count(db) == 30

    def test_each_run_starts_clean(self, db, benchmark):
        benchmark.run("orm")
        result = benchmark.run("bulk")

        assert (result["created"], result["updated"]) == (30, 0)
        assert entry_count(db) == 30
        assert db.execute(select(func.count(SearchIndexRow.entry_id))).scalar_one() == 30

    def test_bulk_issues_fewer_statements(self, benchmark):
        orm = benchmark.run("orm")
        bulk = benchmark.run("bulk")

        assert bulk["statements"] < orm["statements"]

    def test_unknown_writer(self, benchmark):
        with pytest.raises(BenchmarkError):
            benchmark.run("fast")


class TestCompare:

    def test_requires_both_writers(self, benchmark):
        benchmark.run("orm")

        with pytest.raises(BenchmarkError) as exc:
            benchmark.compare()
        assert str(exc.value) == "Run both writers before comparing"

    def test_reports_reductions(self, benchmark):
        benchmark.run("orm")
        benchmark.run("bulk")

        comparison = benchmark.compare()

        assert comparison["statement_reduction_percent"] > 0
        assert comparison["orm_tracks_per_second"] == benchmark.results["orm"]["tracks_per_second"]
        assert set(comparison) >= {"speedup_factor", "speedup_met_target", "memory_reduction_percent"}

    def test_compare_arithmetic(self, benchmark):
        benchmark.results = {
            "orm": {"duration_seconds": 10.0, "peak_memory_mb": 40.0, "statements": 200, "tracks_per_second": 10.0},
            "bulk": {"duration_seconds": 1.0, "peak_memory_mb": 10.0, "statements": 20, "tracks_per_second": 100.0},
        }

        comparison = benchmark.compare()

        assert comparison["speedup_factor"] == 10.0
        assert comparison["speedup_met_target"] is True
        assert comparison["memory_reduction_percent"] == 75.0
        assert comparison["statement_reduction_percent"] == 90.0


class TestCleanup:

    def test_removes_only_benchmark_entries(self, db, benchmark, make_show):
        from liveloader.services.track_importer import TrackImporter

        TrackImporter(db).import_show_tracks(make_show("lettuce2019-08-10", tracks=2), "Lettuce")
        benchmark.run("bulk")

        assert benchmark.cleanup() == 30
        assert entry_count(db) == 2
        assert db.execute(
            select(func.count(CatalogEntry.id)).where(CatalogEntry.artist_name == BENCHMARK_ARTIST)
        ).scalar_one() == 0
