"""ORM vs bulk writer benchmark on synthetic shows.

Both writers import the same generated shows into a clean slate. The
catalog rows they create belong to BENCHMARK_ARTIST and are removed by
cleanup().
"""
import gc
import hashlib
import logging
import time
import tracemalloc
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import delete, event
from sqlalchemy.orm import Session

from liveloader.integrations.archive import Show, Track
from liveloader.models.catalog_entry import CatalogEntry
from liveloader.models.classification import EntryNodeLink
from liveloader.services.attribute_options import AttributeOptionManager
from liveloader.services.bulk_importer import BulkTrackImporter
from liveloader.services.indexer import IndexerService
from liveloader.services.track_importer import TrackImporter

logger = logging.getLogger(__name__)

BENCHMARK_ARTIST = "Benchmark Artist"
BENCHMARK_PREFIX = "benchmark-artist-"
WRITERS = ("orm", "bulk")

# Targets the bulk writer is expected to reach against the ORM writer
SPEEDUP_TARGET = 10.0
MEMORY_REDUCTION_TARGET = 50.0


class BenchmarkError(Exception):
    """Benchmark could not run."""
    pass


class StatementCounter:
    """Counts SQL statements sent through one engine while active."""

    def __init__(self, bind):
        self.bind = bind
        self.count = 0

    def _before_cursor_execute(self, conn, cursor, statement, parameters, context, executemany):
        self.count += 1

    def __enter__(self) -> "StatementCounter":
        event.listen(self.bind, "before_cursor_execute", self._before_cursor_execute)
        return self

    def __exit__(self, *exc) -> None:
        event.remove(self.bind, "before_cursor_execute", self._before_cursor_execute)


@contextmanager
def traced_memory() -> Iterator[dict]:
    """Peak traced allocation in MB, written to the yielded dict on exit."""
    stats = {"peak_memory_mb": 0.0}
    already_tracing = tracemalloc.is_tracing()
    if not already_tracing:
        tracemalloc.start()
    tracemalloc.reset_peak()
    try:
        yield stats
    finally:
        stats["peak_memory_mb"] = round(tracemalloc.get_traced_memory()[1] / (1024 * 1024), 2)
        if not already_tracing:
            tracemalloc.stop()


def generate_test_shows(show_count: int = 10, tracks_per_show: int = 100) -> list[Show]:
    """Deterministic shows for BENCHMARK_ARTIST; venues rotate over five labels."""
    shows = []
    for show_index in range(1, show_count + 1):
        identifier = f"{BENCHMARK_PREFIX}2024-01-{show_index:02d}"
        tracks = []
        for number in range(1, tracks_per_show + 1):
            file_name = f"benchmark-track-{number:03d}.flac"
            tracks.append(Track(
                name=file_name,
                title=f"Benchmark Track {number}",
                track_number=number,
                length=120.0 + (number * 7) % 780,
                sha1=hashlib.sha1(f"{identifier}/{file_name}".encode("utf-8")).hexdigest(),
                format="Flac",
                size=5_000_000 + number * 1000,
            ))
        shows.append(Show(
            identifier=identifier,
            title=f"Benchmark Artist Show {show_index}",
            date=f"2024-01-{show_index:02d}",
            year="2024",
            venue=f"Benchmark Venue {show_index % 5 + 1}",
            coverage="Testville, CA",
            taper="Benchmark Taper",
            lineage="Benchmark lineage",
            notes="Benchmark show notes",
            server_one="ia800100.us.archive.org",
            dir=f"/0/items/{identifier}",
            tracks=tracks,
        ))
    return shows


class ImportBenchmark:
    """Times both catalog writers on the same synthetic shows."""

    def __init__(self, db: Session, shows: Optional[list[Show]] = None):
        self.db = db
        self.shows = shows if shows is not None else generate_test_shows()
        self.results: dict[str, dict] = {}

    @property
    def track_count(self) -> int:
        return sum(len(show.tracks) for show in self.shows)

    def run(self, writer: str) -> dict:
        """Import every show with one writer, starting from no benchmark rows.

        Raises:
            BenchmarkError: Unknown writer
        """
        if writer not in WRITERS:
            raise BenchmarkError(f"Unknown writer: {writer}")

        self.cleanup()
        gc.collect()

        logger.info(f"Benchmarking {writer} writer: {len(self.shows)} shows, {self.track_count} tracks")
        with traced_memory() as memory, StatementCounter(self.db.get_bind()) as counter:
            started = time.perf_counter()
            counts = self._import(writer)
            duration = time.perf_counter() - started

        result = {
            "method": writer,
            "duration_seconds": round(duration, 3),
            "peak_memory_mb": memory["peak_memory_mb"],
            "statements": counter.count,
            "created": counts["created"],
            "updated": counts["updated"],
            "skipped": counts["skipped"],
            "tracks_per_second": round(counts["created"] / duration, 2) if duration > 0 else 0.0,
            "avg_time_per_track_ms": (
                round(duration / counts["created"] * 1000, 3) if counts["created"] else 0.0
            ),
        }
        self.results[writer] = result
        logger.info(
            f"{writer} writer: {result['created']} created in {result['duration_seconds']}s, "
            f"{result['statements']} statements"
        )
        return result

    def compare(self) -> dict:
        """Bulk against ORM; both writers must have run.

        Raises:
            BenchmarkError: A writer has no result yet
        """
        if "orm" not in self.results or "bulk" not in self.results:
            raise BenchmarkError("Run both writers before comparing")

        orm, bulk = self.results["orm"], self.results["bulk"]
        speedup = orm["duration_seconds"] / bulk["duration_seconds"] if bulk["duration_seconds"] else 0.0
        memory_reduction = _reduction(orm["peak_memory_mb"], bulk["peak_memory_mb"])
        statement_reduction = _reduction(orm["statements"], bulk["statements"])

        return {
            "speedup_factor": round(speedup, 2),
            "speedup_met_target": speedup >= SPEEDUP_TARGET,
            "memory_reduction_percent": round(memory_reduction, 2),
            "memory_reduction_met_target": memory_reduction >= MEMORY_REDUCTION_TARGET,
            "statement_reduction_percent": round(statement_reduction, 2),
            "orm_tracks_per_second": orm["tracks_per_second"],
            "bulk_tracks_per_second": bulk["tracks_per_second"],
        }

    def cleanup(self) -> int:
        """Delete every benchmark entry with its links and search rows."""
        ids = [
            row.id for row in
            self.db.query(CatalogEntry.id).filter(CatalogEntry.artist_name == BENCHMARK_ARTIST).all()
        ]
        if ids:
            self.db.execute(delete(EntryNodeLink).where(EntryNodeLink.entry_id.in_(ids)))
            IndexerService(self.db).remove_entries(ids)
            self.db.execute(delete(CatalogEntry).where(CatalogEntry.id.in_(ids)))
        self.db.commit()
        logger.debug(f"Removed {len(ids)} benchmark entries")
        return len(ids)

    def _import(self, writer: str) -> dict:
        options = AttributeOptionManager(self.db)
        if writer == "bulk":
            summary = BulkTrackImporter(self.db, attribute_options=options).import_bulk(
                self.shows, BENCHMARK_ARTIST
            )
            return {key: summary[key] for key in ("created", "updated", "skipped")}

        importer = TrackImporter(self.db, attribute_options=options)
        counts = {"created": 0, "updated": 0, "skipped": 0}
        for show in self.shows:
            result = importer.import_show_tracks(show, BENCHMARK_ARTIST)
            counts["created"] += result.created
            counts["updated"] += result.updated
            counts["skipped"] += result.skipped
        return counts


def _reduction(before: float, after: float) -> float:
    if not before:
        return 0.0
    return (before - after) / before * 100
