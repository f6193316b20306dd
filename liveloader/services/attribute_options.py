"""Label -> option code interning for enumerable catalog attributes."""
import logging
from typing import Iterable, Optional

from sqlalchemy import insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from liveloader.models.attribute_option import AttributeOption

logger = logging.getLogger(__name__)

# Attributes stored as option codes on catalog entries
SHOW_YEAR = "show_year"
SHOW_VENUE = "show_venue"
SHOW_TAPER = "show_taper"
SHOW_TRANSFERER = "show_transferer"
SHOW_LOCATION = "show_location"
ARCHIVE_COLLECTION = "archive_collection"

OPTION_ATTRIBUTES = (
    SHOW_YEAR,
    SHOW_VENUE,
    SHOW_TAPER,
    SHOW_TRANSFERER,
    SHOW_LOCATION,
    ARCHIVE_COLLECTION,
)


class AttributeOptionError(Exception):
    """Option label rejected."""
    pass


class AttributeOptionManager:
    """Caches (attribute, label) -> option id for the lifetime of one batch.

    The cache for an attribute is loaded in full on first use. A miss
    creates exactly one row; after that the cache is authoritative until
    clear_cache() is called between batches.
    """

    def __init__(self, db: Session):
        self.db = db
        self._cache: dict[str, dict[str, int]] = {}
        self.queries = 0

    def get_or_create_option_id(self, attribute: str, label: str) -> int:
        """Get the option id for a label, creating the option if needed.

        Raises:
            AttributeOptionError: Label is empty after trimming
        """
        label = (label or "").strip()
        if not label:
            raise AttributeOptionError(f"Option label for '{attribute}' cannot be empty")

        options = self._options(attribute)
        if label in options:
            return options[label]

        option_id = self._create(attribute, label)
        options[label] = option_id
        return option_id

    def bulk_get_or_create_option_ids(self, attribute: str, labels: Iterable[str]) -> dict[str, int]:
        """Resolve many labels with one insert for all missing ones.

        Empty labels are dropped silently.

        Returns:
            Dict mapping trimmed label -> option id
        """
        wanted = {(label or "").strip() for label in labels}
        wanted.discard("")
        if not wanted:
            return {}

        options = self._options(attribute)
        missing = sorted(wanted - options.keys())

        if missing:
            try:
                with self.db.begin_nested():
                    self.db.execute(
                        insert(AttributeOption),
                        [{"attribute_code": attribute, "label": label} for label in missing],
                    )
                self.queries += 1
            except IntegrityError:
                # Another run created some of them; fall through to one-by-one
                logger.debug(f"Concurrent option insert for {attribute}, resolving individually")
                for label in missing:
                    options[label] = self._create(attribute, label)
            else:
                self._reload(attribute, missing)

        return {label: options[label] for label in wanted}

    def option_exists(self, attribute: str, label: str) -> bool:
        return (label or "").strip() in self._options(attribute)

    def get_all_options(self, attribute: str) -> dict[str, int]:
        return dict(self._options(attribute))

    def get_label(self, attribute: str, option_id: int) -> Optional[str]:
        for label, value in self._options(attribute).items():
            if value == option_id:
                return label
        return None

    def clear_cache(self, attribute: Optional[str] = None) -> None:
        """Evict cached options for one attribute, or all of them."""
        if attribute is None:
            self._cache.clear()
        else:
            self._cache.pop(attribute, None)

    def _options(self, attribute: str) -> dict[str, int]:
        if attribute not in self._cache:
            rows = (
                self.db.query(AttributeOption.label, AttributeOption.id)
                .filter(AttributeOption.attribute_code == attribute)
                .all()
            )
            self.queries += 1
            self._cache[attribute] = {label: option_id for label, option_id in rows}
        return self._cache[attribute]

    def _reload(self, attribute: str, labels: list[str]) -> None:
        rows = (
            self.db.query(AttributeOption.label, AttributeOption.id)
            .filter(
                AttributeOption.attribute_code == attribute,
                AttributeOption.label.in_(labels),
            )
            .all()
        )
        self.queries += 1
        self._cache[attribute].update({label: option_id for label, option_id in rows})

    def _create(self, attribute: str, label: str) -> int:
        option = AttributeOption(attribute_code=attribute, label=label)
        try:
            with self.db.begin_nested():
                self.db.add(option)
            self.queries += 1
            return option.id
        except IntegrityError:
            existing = (
                self.db.query(AttributeOption)
                .filter(
                    AttributeOption.attribute_code == attribute,
                    AttributeOption.label == label,
                )
                .one()
            )
            self.queries += 1
            return existing.id
