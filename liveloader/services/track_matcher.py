"""Tiered track matching against an artist's canonical catalog.

Tiers, first hit wins:
1. Exact - normalized name lookup, O(1)
2. Alias - curated alternate titles, O(1)
3. Metaphone - phonetic key lookup, O(1)
4. Limited fuzzy - similarity scored only against the closest phonetic
   candidates (default 5), never the whole catalog
"""
import logging
from dataclasses import dataclass, field
from typing import Optional

import jellyfish
from rapidfuzz import fuzz
from rapidfuzz.distance import Levenshtein

from liveloader.config import settings
from liveloader.services.artist_catalog import ArtistCatalogLoader, CatalogConfigError
from liveloader.utils.normalize import normalize_track_name

logger = logging.getLogger(__name__)

MATCH_EXACT = "exact"
MATCH_ALIAS = "alias"
MATCH_METAPHONE = "metaphone"
MATCH_FUZZY = "fuzzy"

CONFIDENCE = {
    MATCH_EXACT: 100,
    MATCH_ALIAS: 95,
    MATCH_METAPHONE: 85,
}


@dataclass
class MatchResult:
    """A resolved canonical track."""
    track_key: str
    track_name: str
    algorithm: str
    confidence: int


@dataclass
class ArtistIndex:
    """In-memory indexes for one artist."""
    exact: dict[str, str] = field(default_factory=dict)
    alias: dict[str, str] = field(default_factory=dict)
    phonetic: dict[str, str] = field(default_factory=dict)
    # (track key, normalized name, metaphone) in catalog order
    tracks: list[tuple[str, str, str]] = field(default_factory=list)
    names: dict[str, str] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.exact and not self.alias


def phonetic_key(normalized: str) -> str:
    """Metaphone of an already-normalized name."""
    if not normalized:
        return ""
    return jellyfish.metaphone(normalized)


class TrackMatcher:
    """Matches incoming track titles to canonical track keys.

    Indexes are built lazily per artist and held until clear_indexes() is
    called; the show importer clears them at every batch boundary.
    """

    def __init__(
        self,
        catalog_loader: Optional[ArtistCatalogLoader] = None,
        threshold: Optional[int] = None,
        candidate_limit: Optional[int] = None,
        max_phonetic_distance: Optional[int] = None,
    ):
        self.catalog_loader = catalog_loader or ArtistCatalogLoader()
        self.threshold = threshold if threshold is not None else settings.fuzzy_threshold
        self.candidate_limit = candidate_limit if candidate_limit is not None else settings.fuzzy_candidate_limit
        self.max_phonetic_distance = (
            max_phonetic_distance if max_phonetic_distance is not None else settings.phonetic_max_distance
        )
        self._indexes: dict[str, ArtistIndex] = {}
        # Number of similarity scores computed by the fuzzy tier
        self.comparisons = 0

    def build_indexes(self, artist_key: str) -> ArtistIndex:
        """(Re)build all indexes for one artist from its catalog."""
        index = ArtistIndex()
        self._indexes[artist_key] = index

        try:
            catalog = self.catalog_loader.load(artist_key)
        except CatalogConfigError as e:
            logger.debug(f"No catalog for artist {artist_key}: {e}")
            return index

        for track in catalog.get("tracks", []):
            track_key = str(track["key"])
            normalized = normalize_track_name(str(track["name"]))
            if not normalized:
                continue

            index.exact[normalized] = track_key
            index.names[track_key] = str(track["name"])

            for alias in track.get("aliases") or []:
                normalized_alias = normalize_track_name(str(alias))
                if normalized_alias:
                    index.alias[normalized_alias] = track_key

            metaphone = phonetic_key(normalized)
            # First track wins for a shared phonetic key
            if metaphone and metaphone not in index.phonetic:
                index.phonetic[metaphone] = track_key

            index.tracks.append((track_key, normalized, metaphone))

        logger.debug(
            f"Built indexes for {artist_key}: {len(index.exact)} tracks, "
            f"{len(index.alias)} aliases, {len(index.phonetic)} metaphones"
        )
        return index

    def match(self, track_name: str, artist_key: str) -> Optional[MatchResult]:
        """Resolve a track title to a canonical track, or None if every tier misses."""
        index = self._ensure_indexed(artist_key)
        if index.is_empty:
            return None

        normalized = normalize_track_name(track_name)
        if not normalized:
            return None

        if normalized in index.exact:
            return self._result(index, index.exact[normalized], MATCH_EXACT)

        if normalized in index.alias:
            return self._result(index, index.alias[normalized], MATCH_ALIAS)

        metaphone = phonetic_key(normalized)
        if metaphone and metaphone in index.phonetic:
            return self._result(index, index.phonetic[metaphone], MATCH_METAPHONE)

        best = self._best_fuzzy(normalized, metaphone, index)
        if best is not None and best.confidence >= self.threshold:
            return best

        return None

    def suggest(self, track_name: str, artist_key: str) -> Optional[MatchResult]:
        """Best fuzzy candidate regardless of threshold, for manual review."""
        index = self._ensure_indexed(artist_key)
        normalized = normalize_track_name(track_name)
        if not normalized:
            return None
        return self._best_fuzzy(normalized, phonetic_key(normalized), index)

    def phonetic_candidates(self, metaphone: str, index: ArtistIndex) -> list[tuple[str, str]]:
        """Closest catalog tracks by metaphone edit distance, at most candidate_limit.

        Returns:
            List of (track key, normalized name), closest first, catalog order on ties
        """
        if not metaphone:
            return []

        scored = []
        for position, (track_key, normalized, track_metaphone) in enumerate(index.tracks):
            if not track_metaphone:
                continue
            distance = Levenshtein.distance(metaphone, track_metaphone)
            if distance <= self.max_phonetic_distance:
                scored.append((distance, position, track_key, normalized))

        scored.sort()
        return [(key, name) for _, _, key, name in scored[:self.candidate_limit]]

    def clear_indexes(self, artist_key: Optional[str] = None) -> None:
        """Drop indexes for one artist, or all of them."""
        if artist_key is None:
            self._indexes.clear()
        else:
            self._indexes.pop(artist_key, None)

    def has_catalog(self, artist_key: str) -> bool:
        """True if the artist has any canonical tracks to match against."""
        return not self._ensure_indexed(artist_key).is_empty

    def index_stats(self, artist_key: str) -> dict:
        index = self._ensure_indexed(artist_key)
        return {
            "tracks": len(index.exact),
            "aliases": len(index.alias),
            "metaphones": len(index.phonetic),
        }

    def _ensure_indexed(self, artist_key: str) -> ArtistIndex:
        index = self._indexes.get(artist_key)
        if index is None:
            index = self.build_indexes(artist_key)
        return index

    def _best_fuzzy(self, normalized: str, metaphone: str, index: ArtistIndex) -> Optional[MatchResult]:
        best = None
        for track_key, candidate in self.phonetic_candidates(metaphone, index):
            self.comparisons += 1
            score = int(fuzz.ratio(normalized, candidate))
            if best is None or score > best.confidence:
                best = MatchResult(track_key, index.names.get(track_key, candidate), MATCH_FUZZY, score)
        return best

    def _result(self, index: ArtistIndex, track_key: str, algorithm: str) -> MatchResult:
        return MatchResult(
            track_key=track_key,
            track_name=index.names.get(track_key, track_key),
            algorithm=algorithm,
            confidence=CONFIDENCE[algorithm],
        )
