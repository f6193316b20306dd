"""Artist/show classification nodes and entry assignment."""
import logging
from typing import Optional

from sqlalchemy import bindparam, func, select, update, insert
from sqlalchemy.orm import Session

from liveloader.config import settings
from liveloader.models.catalog_entry import CatalogEntry
from liveloader.models.classification import ClassificationNode, EntryNodeLink
from liveloader.utils.normalize import build_url_key, sanitize_node_name

logger = logging.getLogger(__name__)


class CategoryAssignmentService:
    """Finds artist nodes, finds-or-creates show nodes, links entries to them.

    Node lookups are cached for one batch; the show importer calls
    clear_cache() at every batch boundary.
    """

    def __init__(self, db: Session, artist_mappings: Optional[list[dict]] = None):
        self.db = db
        self.artist_mappings = artist_mappings if artist_mappings is not None else settings.artist_mappings
        self._artist_cache: dict[str, Optional[int]] = {}
        self._show_cache: dict[str, int] = {}

    def get_or_create_artist_node(self, artist_name: str, collection_id: Optional[str] = None) -> Optional[int]:
        """Resolve the artist's node from configured mappings.

        Checks the collection id mapping first, then the artist name mapping.
        Artist nodes are never created implicitly: an unmapped artist returns None.
        """
        cache_key = f"{collection_id or ''}|{artist_name}"
        if cache_key in self._artist_cache:
            return self._artist_cache[cache_key]

        node_id = None
        if collection_id:
            node_id = self._mapped_node(lambda m: m.get("collection_id") == collection_id)
        if node_id is None:
            node_id = self._mapped_node(lambda m: m.get("artist_name") == artist_name)

        if node_id is None:
            logger.warning(
                f"No classification node mapped for artist '{artist_name}' "
                f"(collection {collection_id}); entries will not be assigned to an artist"
            )

        self._artist_cache[cache_key] = node_id
        return node_id

    def create_artist_node(self, artist_name: str) -> ClassificationNode:
        """Explicitly create a root node for an artist (admin/CLI setup only)."""
        node = ClassificationNode(
            name=sanitize_node_name(artist_name, default="Unknown Artist"),
            url_key=build_url_key(artist_name),
            level=1,
        )
        self.db.add(node)
        self.db.flush()
        return node

    def get_or_create_show_node(self, identifier: str, title: str, parent_id: int) -> int:
        """Find the show node under parent_id keyed by identifier, creating it on first use."""
        cache_key = f"{identifier}_{parent_id}"
        if cache_key in self._show_cache:
            return self._show_cache[cache_key]

        existing = self.db.query(ClassificationNode).filter(
            ClassificationNode.parent_id == parent_id,
            ClassificationNode.external_identifier == identifier,
        ).first()

        if existing is not None:
            node_id = existing.id
        else:
            parent = self.db.query(ClassificationNode).filter(ClassificationNode.id == parent_id).first()
            parent_level = (parent.level if parent else None) or 1
            name = sanitize_node_name(title)
            node = ClassificationNode(
                parent_id=parent_id,
                name=name,
                url_key=build_url_key(identifier),
                level=parent_level + 1,
                external_identifier=identifier,
            )
            self.db.add(node)
            self.db.flush()
            node_id = node.id
            logger.debug(f"Created show node {node_id} '{name}' under {parent_id}")

        self._show_cache[cache_key] = node_id
        return node_id

    def bulk_assign(self, entry_ids: list[int], node_id: int) -> int:
        """Link entries to a node, appending after the node's current max position.

        Entries already linked keep their link and get the new position.

        Returns:
            Number of entries assigned
        """
        entry_ids = list(dict.fromkeys(entry_ids))
        if not entry_ids:
            return 0

        max_position = self.db.execute(
            select(func.coalesce(func.max(EntryNodeLink.position), 0))
            .where(EntryNodeLink.node_id == node_id)
        ).scalar_one()

        existing = set(self.db.execute(
            select(EntryNodeLink.entry_id).where(
                EntryNodeLink.node_id == node_id,
                EntryNodeLink.entry_id.in_(entry_ids),
            )
        ).scalars())

        new_rows = []
        moved_rows = []
        for offset, entry_id in enumerate(entry_ids, start=1):
            position = max_position + offset
            if entry_id in existing:
                moved_rows.append({"b_entry": entry_id, "b_node": node_id, "b_position": position})
            else:
                new_rows.append({"entry_id": entry_id, "node_id": node_id, "position": position})

        links = EntryNodeLink.__table__
        if new_rows:
            self.db.execute(insert(links), new_rows)
        if moved_rows:
            self.db.execute(
                update(links)
                .where(links.c.node_id == bindparam("b_node"), links.c.entry_id == bindparam("b_entry"))
                .values(position=bindparam("b_position")),
                moved_rows,
            )

        return len(entry_ids)

    def get_node_entries(self, node_id: int) -> list[CatalogEntry]:
        """Entries linked to a node in position order."""
        return (
            self.db.query(CatalogEntry)
            .join(EntryNodeLink, EntryNodeLink.entry_id == CatalogEntry.id)
            .filter(EntryNodeLink.node_id == node_id)
            .order_by(EntryNodeLink.position)
            .all()
        )

    def clear_cache(self) -> None:
        self._artist_cache.clear()
        self._show_cache.clear()

    def _mapped_node(self, predicate) -> Optional[int]:
        for mapping in self.artist_mappings:
            if not predicate(mapping):
                continue
            category_id = mapping.get("category_id")
            if category_id in (None, ""):
                continue
            node = self.db.query(ClassificationNode).filter(ClassificationNode.id == int(category_id)).first()
            if node is not None:
                return node.id
            logger.warning(f"Mapped category {category_id} does not exist")
        return None
