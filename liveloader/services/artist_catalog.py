"""Canonical per-artist track catalogs loaded from YAML.

One file per artist key under `settings.artist_catalog_dir`:

    name: Lettuce
    collection: Lettuce
    tracks:
      - key: phyllis
        name: Phyllis
        aliases: ["Phylis", "Phyllis Jam"]
"""
import logging
from pathlib import Path
from typing import Optional

import yaml

from liveloader.config import settings
from liveloader.utils.normalize import normalize_track_name

logger = logging.getLogger(__name__)


class CatalogConfigError(Exception):
    """Artist catalog file missing or invalid."""
    pass


def validate_catalog(config: dict) -> tuple[list[str], list[str]]:
    """Check an artist catalog for structural problems.

    Returns:
        Tuple of (errors, warnings). Errors make the catalog unusable.
    """
    errors = []
    warnings = []

    if not isinstance(config, dict):
        return ["Catalog must be a mapping"], warnings

    tracks = config.get("tracks")
    if tracks is None:
        errors.append("Missing required key: tracks")
        return errors, warnings
    if not isinstance(tracks, list):
        errors.append("'tracks' must be a list")
        return errors, warnings

    seen_keys = set()
    seen_aliases: dict[str, str] = {}

    for i, track in enumerate(tracks):
        if not isinstance(track, dict) or "key" not in track or "name" not in track:
            errors.append(f"Track #{i} needs 'key' and 'name'")
            continue

        key = str(track["key"])
        if key in seen_keys:
            errors.append(f"Duplicate track key: {key}")
        seen_keys.add(key)

        aliases = track.get("aliases") or []
        if not isinstance(aliases, list):
            errors.append(f"Track '{key}': aliases must be a list")
            continue

        for alias in aliases:
            normalized = normalize_track_name(str(alias))
            other = seen_aliases.get(normalized)
            if other and other != key:
                warnings.append(f"Alias '{alias}' used by both '{other}' and '{key}'")
            seen_aliases[normalized] = key

    return errors, warnings


class ArtistCatalogLoader:
    """Loads and caches artist catalogs."""

    def __init__(self, catalog_dir: Optional[str] = None):
        self.catalog_dir = Path(catalog_dir or settings.artist_catalog_dir)
        self._cache: dict[str, dict] = {}

    def path_for(self, artist_key: str) -> Path:
        return self.catalog_dir / f"{artist_key}.yaml"

    def load(self, artist_key: str) -> dict:
        """Load one artist's catalog.

        Raises:
            CatalogConfigError: File missing, unparsable, or invalid
        """
        if artist_key in self._cache:
            return self._cache[artist_key]

        path = self.path_for(artist_key)
        if not path.exists():
            raise CatalogConfigError(f"Artist catalog not found: {path}")

        try:
            with open(path) as f:
                config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise CatalogConfigError(f"Failed to parse {path}: {e}")

        errors, warnings = validate_catalog(config)
        if errors:
            raise CatalogConfigError(
                f"Invalid catalog for '{artist_key}':\n" + "\n".join(errors)
            )

        for warning in warnings:
            logger.warning(f"[{artist_key}] {warning}")

        self._cache[artist_key] = config
        return config

    def validate_file(self, artist_key: str) -> tuple[list[str], list[str]]:
        """Validate one catalog file without caching it.

        Returns:
            Tuple of (errors, warnings)
        """
        path = self.path_for(artist_key)
        if not path.exists():
            return [f"Artist catalog not found: {path}"], []
        try:
            with open(path) as f:
                config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            return [f"Failed to parse {path}: {e}"], []
        return validate_catalog(config)

    def available_artists(self) -> list[str]:
        """Artist keys that have a catalog file."""
        if not self.catalog_dir.is_dir():
            return []
        return sorted(
            p.stem for p in self.catalog_dir.glob("*.yaml")
            if p.stem != "template"
        )

    def clear_cache(self, artist_key: Optional[str] = None) -> None:
        if artist_key is None:
            self._cache.clear()
        else:
            self._cache.pop(artist_key, None)
