"""Text normalization utilities."""
import re
import unicodedata

# Unicode dashes and arrows that show up in setlists and file titles
_DASH_TRANSLATION = str.maketrans({
    "—": "-",  # em dash
    "–": "-",  # en dash
    "−": "-",  # minus sign
    "‐": "-",  # hyphen
    "‑": "-",  # non-breaking hyphen
    "‒": "-",  # figure dash
    "―": "-",  # horizontal bar
    "→": ">",  # right arrow (segue marker)
})

_COMBINING_MARKS = re.compile("[\u0300-\u036f]")
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")


def normalize_track_name(text: str) -> str:
    """
    Normalize a track title for index lookups.

    - Strip accents (NFD, drop combining marks)
    - Unicode dashes to "-", arrows to ">"
    - Collapse whitespace
    - Lowercase

    Punctuation is kept: "Tweezer Reprise" and "Tweezer -> Reprise" are
    different keys on purpose, aliases cover the variants.
    """
    if not text:
        return ""

    text = unicodedata.normalize("NFD", text)
    text = _COMBINING_MARKS.sub("", text)
    text = text.translate(_DASH_TRANSLATION)
    text = re.sub(r"\s+", " ", text.strip())

    return text.lower()


def build_url_key(text: str, max_length: int = 64) -> str:
    """
    Create a URL-safe key.

    - "Phish 2019-12-31 Madison Square Garden" -> "phish-2019-12-31-madison-square-garden"
    """
    if not text:
        return ""

    key = re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")
    return key[:max_length].rstrip("-")


def artist_key(name: str) -> str:
    """Artist catalog key: "String Cheese Incident" -> "string-cheese-incident"."""
    return build_url_key(normalize_track_name(name), max_length=128)


def sanitize_lock_name(value: str) -> str:
    """Replace anything outside [a-zA-Z0-9_-] so the value is safe in a file name."""
    return re.sub(r"[^a-zA-Z0-9_-]", "_", value)


def sanitize_node_name(name: str, default: str = "Unknown Show", max_length: int = 200) -> str:
    """Clean a show title for use as a classification node name."""
    if not name:
        return default

    name = _CONTROL_CHARS.sub("", name).strip()
    if not name:
        return default

    return name[:max_length].strip()
