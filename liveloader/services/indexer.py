"""Catalog search index maintenance."""
import logging
from typing import Optional

from sqlalchemy import delete, insert, select
from sqlalchemy.orm import Session

from liveloader.models.catalog_entry import CatalogEntry
from liveloader.models.indexer import IndexerMode, IndexerState, SearchIndexRow
from liveloader.services.catalog_values import search_text

logger = logging.getLogger(__name__)

CATALOG_SEARCH = "catalog_search"
INDEXERS = (CATALOG_SEARCH,)

_INDEXED_COLUMNS = (
    CatalogEntry.id,
    CatalogEntry.artist_name,
    CatalogEntry.title,
    CatalogEntry.show_title,
    CatalogEntry.show_date,
    CatalogEntry.canonical_track_key,
)


class IndexerService:
    """Reads and switches indexer modes; refreshes search rows.

    In realtime mode every entry save refreshes its search row. In schedule
    mode saves skip the index and reindex_all() rebuilds it in one pass.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_mode(self, indexer_id: str = CATALOG_SEARCH) -> str:
        state = self.db.query(IndexerState).filter(IndexerState.indexer_id == indexer_id).first()
        return state.mode if state is not None else IndexerMode.REALTIME.value

    def set_mode(self, indexer_id: str, mode: str) -> None:
        if mode not in {m.value for m in IndexerMode}:
            raise ValueError(f"Unknown indexer mode: {mode}")

        state = self.db.get(IndexerState, indexer_id)
        if state is None:
            self.db.add(IndexerState(indexer_id=indexer_id, mode=mode))
        else:
            state.mode = mode
        self.db.flush()

    def get_modes(self) -> dict[str, str]:
        return {indexer_id: self.get_mode(indexer_id) for indexer_id in INDEXERS}

    def is_realtime(self, indexer_id: str = CATALOG_SEARCH) -> bool:
        return self.get_mode(indexer_id) == IndexerMode.REALTIME.value

    def index_entry(self, entry: CatalogEntry) -> None:
        """Refresh one entry's search row (realtime path)."""
        values = {
            "artist_name": entry.artist_name,
            "title": entry.title,
            "show_title": entry.show_title,
            "show_date": entry.show_date,
            "canonical_track_key": entry.canonical_track_key,
        }
        row = self.db.get(SearchIndexRow, entry.id)
        if row is None:
            self.db.add(SearchIndexRow(
                entry_id=entry.id,
                artist_name=entry.artist_name,
                search_text=search_text(values),
            ))
        else:
            row.artist_name = entry.artist_name
            row.search_text = search_text(values)

    def remove_entries(self, entry_ids: list[int]) -> None:
        if entry_ids:
            self.db.execute(delete(SearchIndexRow).where(SearchIndexRow.entry_id.in_(entry_ids)))

    def reindex_entries(self, entry_ids: list[int]) -> int:
        """Rebuild search rows for specific entries."""
        if not entry_ids:
            return 0
        table = SearchIndexRow.__table__
        entry_ids = list(set(entry_ids))
        return self._rebuild(
            delete(table).where(table.c.entry_id.in_(entry_ids)),
            select(*_INDEXED_COLUMNS).where(CatalogEntry.id.in_(entry_ids)).order_by(CatalogEntry.id),
        )

    def reindex_all(self, artist_name: Optional[str] = None) -> int:
        """Rebuild search rows from catalog entries.

        Returns:
            Number of rows written
        """
        table = SearchIndexRow.__table__
        wipe = delete(table)
        query = select(*_INDEXED_COLUMNS).order_by(CatalogEntry.id)
        if artist_name:
            wipe = wipe.where(table.c.artist_name == artist_name)
            query = query.where(CatalogEntry.artist_name == artist_name)

        written = self._rebuild(wipe, query)
        logger.info(f"Reindexed {written} catalog entries")
        return written

    def _rebuild(self, wipe, query, chunk_size: int = 1000) -> int:
        table = SearchIndexRow.__table__

        self.db.execute(wipe)

        written = 0
        rows = []
        for row in self.db.execute(query).all():
            values = row._asdict()
            rows.append({
                "entry_id": values["id"],
                "artist_name": values["artist_name"],
                "search_text": search_text(values),
            })
            if len(rows) >= chunk_size:
                self.db.execute(insert(table), rows)
                written += len(rows)
                rows = []

        if rows:
            self.db.execute(insert(table), rows)
            written += len(rows)

        return written
