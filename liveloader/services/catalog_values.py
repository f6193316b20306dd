"""Field derivation shared by the ORM and bulk writers.

Both writers must produce identical catalog rows for identical input, so
every value that lands in `catalog_entries` is computed here.
"""
import hashlib
from typing import Optional

from liveloader.config import settings
from liveloader.integrations.archive import Show, Track
from liveloader.services.attribute_options import (
    SHOW_YEAR,
    SHOW_VENUE,
    SHOW_TAPER,
    SHOW_TRANSFERER,
    SHOW_LOCATION,
    ARCHIVE_COLLECTION,
)
from liveloader.services.track_matcher import MatchResult
from liveloader.utils.normalize import build_url_key

# catalog_entries column -> attribute code
OPTION_COLUMNS = {
    "year_option_id": SHOW_YEAR,
    "venue_option_id": SHOW_VENUE,
    "taper_option_id": SHOW_TAPER,
    "transferer_option_id": SHOW_TRANSFERER,
    "location_option_id": SHOW_LOCATION,
    "collection_option_id": ARCHIVE_COLLECTION,
}


def generate_entry_key(show_identifier: str, file_ref: str) -> str:
    """Deterministic catalog key for one file of one show.

    Returns "" when either part is missing; such tracks are never written.
    """
    show_identifier = (show_identifier or "").strip()
    file_ref = (file_ref or "").strip()
    if not show_identifier or not file_ref:
        return ""

    digest = hashlib.sha1(f"{show_identifier}/{file_ref}".encode("utf-8")).hexdigest()
    return f"{show_identifier}-{digest[:16]}"


def build_entry_name(artist: str, track: Track, show: Show) -> str:
    """"Artist Title Year Venue", skipping empty parts."""
    parts = [artist, track.title, show.year, show.venue]
    return " ".join(p.strip() for p in parts if p and p.strip())


def build_entry_url_key(name: str, entry_key: str) -> str:
    """URL key from the entry name, suffixed with part of the key to stay unique."""
    base = build_url_key(name, max_length=55)
    suffix = entry_key[-8:].lower()
    return f"{base}-{suffix}" if base else suffix


def format_length(seconds: Optional[float]) -> Optional[str]:
    """323.4 -> "5:23", 3723 -> "1:02:03"."""
    if seconds is None:
        return None

    total = int(seconds)
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)

    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def build_song_url(show: Show, track: Track, extension: Optional[str] = None) -> Optional[str]:
    """Streaming URL: https://<host><dir>/<file without extension>.<ext>."""
    host = show.streaming_host
    if not host or not show.dir:
        return None

    extension = (extension or settings.import_song_url_extension).lstrip(".")
    stem = track.name.rsplit(".", 1)[0] if "." in track.name else track.name
    directory = show.dir if show.dir.startswith("/") else f"/{show.dir}"
    return f"https://{host}{directory.rstrip('/')}/{stem}.{extension}"


def option_labels(show: Show, artist: str) -> dict[str, str]:
    """Attribute code -> label for one show (empty labels omitted)."""
    labels = {
        SHOW_YEAR: show.year,
        SHOW_VENUE: show.venue,
        SHOW_TAPER: show.taper,
        SHOW_TRANSFERER: show.transferer,
        SHOW_LOCATION: show.coverage,
        ARCHIVE_COLLECTION: artist,
    }
    return {code: label.strip() for code, label in labels.items() if label and label.strip()}


def entry_values(
    show: Show,
    track: Track,
    artist: str,
    entry_key: str,
    option_ids: dict[str, int],
    match: Optional[MatchResult] = None,
) -> dict:
    """Column values for one catalog entry.

    Args:
        option_ids: Attribute code -> option id for this show
        match: Matcher result, or None if the title is unmatched
    """
    name = build_entry_name(artist, track, show)
    values = {
        "sku": entry_key,
        "name": name,
        "url_key": build_entry_url_key(name, entry_key),
        "title": track.title,
        "artist_name": artist,
        "show_identifier": show.identifier,
        "show_title": show.title,
        "show_date": show.date,
        "lineage": show.lineage or None,
        "notes": show.notes or None,
        "rating": show.avg_rating,
        "num_reviews": show.num_reviews or 0,
        "track_number": track.track_number,
        "file_name": track.name,
        "file_format": track.format,
        "file_size": track.size,
        "file_sha1": track.sha1,
        "length_seconds": track.length,
        "length_display": format_length(track.length),
        "song_url": build_song_url(show, track),
        "canonical_track_key": match.track_key if match else None,
        "match_algorithm": match.algorithm if match else None,
        "match_confidence": match.confidence if match else None,
    }
    for column, code in OPTION_COLUMNS.items():
        values[column] = option_ids.get(code)
    return values


def search_text(values: dict) -> str:
    """Denormalized text stored in the search index for one entry."""
    parts = [
        values.get("artist_name"),
        values.get("title"),
        values.get("show_title"),
        values.get("show_date"),
        values.get("canonical_track_key"),
    ]
    return " ".join(str(p) for p in parts if p).lower()
