"""Utility functions."""
from liveloader.utils.normalize import (
    normalize_track_name,
    build_url_key,
    artist_key,
    sanitize_lock_name,
    sanitize_node_name,
)

__all__ = [
    "normalize_track_name",
    "build_url_key",
    "artist_key",
    "sanitize_lock_name",
    "sanitize_node_name",
]
