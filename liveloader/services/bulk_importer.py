"""Set-based catalog writer.

Same contract as TrackImporter, but option ids are prefetched for the whole
batch, existing keys are read in one SELECT and rows are written with a
multi-row INSERT plus an executemany UPDATE. Search indexing is suspended
for the duration of a run and rebuilt once at the end.
"""
import logging
from typing import Callable, Optional

from sqlalchemy import bindparam, insert, update
from sqlalchemy.exc import SQLAlchemyError

from liveloader.integrations.archive import Show
from liveloader.models.catalog_entry import CatalogEntry
from liveloader.models.indexer import IndexerMode
from liveloader.services.catalog_values import (
    entry_values,
    generate_entry_key,
    option_labels,
)
from liveloader.services.track_importer import TrackImporter, TrackImportResult

logger = logging.getLogger(__name__)

# Keeps IN () lists and multi-row VALUES under driver parameter limits
CHUNK_SIZE = 500

ProgressCallback = Callable[[int, int, str], None]


class BulkTrackImporter(TrackImporter):
    """Writes catalog entries in a handful of statements per batch."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        # SQL statements issued by the last write
        self.statements = 0
        self._saved_modes: Optional[dict[str, str]] = None

    def begin_run(self) -> None:
        """Suspend realtime indexing until end_run()."""
        if self._saved_modes is None:
            self._saved_modes = self.prepare_indexers()

    def end_run(self) -> None:
        """Rebuild the search index and put the indexer modes back."""
        if self._saved_modes is None:
            return
        modes, self._saved_modes = self._saved_modes, None
        try:
            self.reindex_all()
        finally:
            self.restore_indexers(modes)

    def import_show_tracks(self, show: Show, artist: str) -> TrackImportResult:
        result = self._write_shows([show], artist)

        # Outside a run nothing rebuilds the index later
        if self._saved_modes is None and self.indexer.is_realtime():
            self.indexer.reindex_entries(result.entry_ids)

        self.db.commit()
        return result

    def import_bulk(
        self,
        shows: list[Show],
        artist: str,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> dict:
        """Import many shows at once with indexing suspended.

        Returns:
            TrackImportResult.to_dict() plus the statement count
        """
        modes = self.prepare_indexers()
        try:
            result = self._write_shows(shows, artist, progress_callback)
            self.db.commit()
            self.reindex_all()
        finally:
            self.restore_indexers(modes)

        summary = result.to_dict()
        summary["statements"] = self.statements
        return summary

    def prepare_indexers(self) -> dict[str, str]:
        """Switch every indexer to schedule mode.

        Returns:
            Indexer id -> mode before the switch
        """
        modes = self.indexer.get_modes()
        for indexer_id in modes:
            self.indexer.set_mode(indexer_id, IndexerMode.SCHEDULE.value)
        self.db.commit()
        logger.debug(f"Indexers switched to schedule (were {modes})")
        return modes

    def restore_indexers(self, modes: dict[str, str]) -> None:
        for indexer_id, mode in modes.items():
            self.indexer.set_mode(indexer_id, mode)
        self.db.commit()
        logger.debug(f"Indexer modes restored: {modes}")

    def reindex_all(self) -> int:
        written = self.indexer.reindex_all()
        self.db.commit()
        return written

    def _write_shows(
        self,
        shows: list[Show],
        artist: str,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> TrackImportResult:
        result = TrackImportResult()
        self.statements = 0

        pending = []
        for show in shows:
            for track in show.tracks:
                key = generate_entry_key(show.identifier, track.name)
                if key:
                    pending.append((show, track, key))
                else:
                    result.skipped += 1

        if not pending:
            return result

        option_ids = self._prefetch_options(shows, artist)
        existing = {}
        keys = list(dict.fromkeys(key for _, _, key in pending))
        for start in range(0, len(keys), CHUNK_SIZE):
            existing.update(self.existing_keys(keys[start:start + CHUNK_SIZE]))
            self.statements += 1

        inserts: dict[str, dict] = {}
        updates: dict[str, dict] = {}
        written_keys: list[str] = []
        total = len(pending)

        for current, (show, track, key) in enumerate(pending, 1):
            try:
                match = self.match_track(track, show, artist, result)
                values = entry_values(show, track, artist, key, option_ids[show.identifier], match)
            except Exception as e:
                logger.error(f"Bulk import track error: {show.identifier}/{track.name}: {e}")
                result.skipped += 1
                result.add_error(f"Bulk import track error for {key}: {e}", show.identifier)
                continue

            if key in existing:
                updates[key] = values
                result.updated += 1
            elif key in inserts:
                # Same file listed twice in the batch: last values win
                inserts[key] = values
                result.updated += 1
            else:
                inserts[key] = values
                result.created += 1
            written_keys.append(key)

            if progress_callback:
                progress_callback(total, current, f"Prepared: {show.identifier}/{track.name}")

        failed = set()
        failed |= self._execute_inserts(list(inserts.values()), result)
        failed |= self._execute_updates(updates, existing, result)

        if inserts:
            created_keys = [k for k in inserts if k not in failed]
            for start in range(0, len(created_keys), CHUNK_SIZE):
                existing.update(self.existing_keys(created_keys[start:start + CHUNK_SIZE]))
                self.statements += 1

        for key in written_keys:
            if key in failed:
                continue
            result.entry_ids.append(existing[key])

        logger.info(
            f"Bulk wrote {result.created} new, {result.updated} updated entries "
            f"for {artist} in {self.statements} statements"
        )
        return result

    def _prefetch_options(self, shows: list[Show], artist: str) -> dict[str, dict[str, int]]:
        """Show identifier -> {attribute code: option id}."""
        labels_by_show = {show.identifier: option_labels(show, artist) for show in shows}

        wanted: dict[str, set[str]] = {}
        for labels in labels_by_show.values():
            for code, label in labels.items():
                wanted.setdefault(code, set()).add(label)

        resolved = {}
        for code, labels in wanted.items():
            resolved[code] = self.attribute_options.bulk_get_or_create_option_ids(code, labels)
            self.statements += 1

        return {
            identifier: {code: resolved[code][label] for code, label in labels.items()}
            for identifier, labels in labels_by_show.items()
        }

    def _execute_inserts(self, rows: list[dict], result: TrackImportResult) -> set[str]:
        table = CatalogEntry.__table__
        failed = set()

        for start in range(0, len(rows), CHUNK_SIZE):
            chunk = rows[start:start + CHUNK_SIZE]
            try:
                with self.db.begin_nested():
                    self.db.execute(insert(table), chunk)
                self.statements += 1
            except SQLAlchemyError as e:
                logger.warning(f"Bulk insert failed, retrying row by row: {e}")
                failed |= self._retry_rows(insert(table), chunk, result, created=True)

        return failed

    def _execute_updates(
        self, updates: dict[str, dict], existing: dict[str, int], result: TrackImportResult
    ) -> set[str]:
        if not updates:
            return set()

        table = CatalogEntry.__table__
        columns = [c for c in next(iter(updates.values())) if c != "sku"]
        stmt = (
            update(table)
            .where(table.c.id == bindparam("b_id"))
            .values({column: bindparam(f"b_{column}") for column in columns})
        )

        params = []
        for key, values in updates.items():
            row = {f"b_{column}": values[column] for column in columns}
            row["b_id"] = existing[key]
            row["sku"] = key
            params.append(row)

        failed = set()
        for start in range(0, len(params), CHUNK_SIZE):
            chunk = params[start:start + CHUNK_SIZE]
            try:
                with self.db.begin_nested():
                    self.db.execute(stmt, [{k: v for k, v in p.items() if k != "sku"} for p in chunk])
                self.statements += 1
            except SQLAlchemyError as e:
                logger.warning(f"Bulk update failed, retrying row by row: {e}")
                failed |= self._retry_rows(stmt, chunk, result, created=False)

        return failed

    def _retry_rows(self, stmt, rows: list[dict], result: TrackImportResult, created: bool) -> set[str]:
        """Execute one row per savepoint; failures become skipped tracks."""
        failed = set()
        for row in rows:
            key = row["sku"]
            params = {k: v for k, v in row.items() if k != "sku"} if not created else row
            try:
                with self.db.begin_nested():
                    self.db.execute(stmt, params)
                self.statements += 1
            except SQLAlchemyError as e:
                logger.error(f"Bulk import track error: {key}: {e}")
                failed.add(key)
                if created:
                    result.created -= 1
                else:
                    result.updated -= 1
                result.skipped += 1
                result.add_error(f"Bulk import track error for {key}: {e}", key.rsplit("-", 1)[0])
        return failed
