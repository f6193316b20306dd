"""Archive metadata source: collection listings and per-item show metadata."""
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Optional, Protocol

import httpx

from liveloader import __version__
from liveloader.config import settings

logger = logging.getLogger(__name__)

MAX_ROWS_PER_PAGE = 10000


class ArchiveError(Exception):
    """Archive request failed or returned unusable data."""
    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


@dataclass
class Track:
    """One audio file within a show, in archive order."""
    name: str  # file reference, e.g. "lettuce2019-08-10d1t01.flac"
    title: str
    track_number: Optional[int] = None
    length: Optional[float] = None  # seconds
    sha1: Optional[str] = None
    format: Optional[str] = None
    size: Optional[int] = None


@dataclass
class Show:
    """Metadata for one recorded performance."""
    identifier: str
    title: str = ""
    description: str = ""
    date: str = ""
    year: str = ""
    venue: str = ""
    coverage: str = ""  # city/state
    creator: str = ""
    taper: str = ""
    transferer: str = ""
    lineage: str = ""
    notes: str = ""
    collection: str = ""
    server_one: str = ""
    server_two: str = ""
    dir: str = ""
    pub_date: str = ""
    guid: str = ""
    avg_rating: Optional[float] = None
    num_reviews: int = 0
    tracks: list[Track] = field(default_factory=list)

    @property
    def streaming_host(self) -> str:
        return self.server_one or self.server_two


class ArchiveSource(Protocol):
    """What the importers need from the archive."""

    def list_collection_identifiers(
        self, collection_id: str, limit: Optional[int] = None, offset: Optional[int] = None
    ) -> list[str]: ...

    def fetch_item_metadata(self, identifier: str) -> Show: ...

    def test_connection(self) -> bool: ...

    def get_collection_count(self, collection_id: str) -> int: ...


def parse_length(value) -> Optional[float]:
    """Archive lengths come as seconds ("323.45") or clock time ("5:23", "1:02:03")."""
    if value in (None, ""):
        return None
    text = str(value).strip()
    try:
        if ":" in text:
            seconds = 0.0
            for part in text.split(":"):
                seconds = seconds * 60 + float(part)
            return seconds
        return float(text)
    except ValueError:
        return None


def _first(value) -> str:
    """Metadata fields may be a string or a list of strings."""
    if isinstance(value, list):
        return str(value[0]).strip() if value else ""
    return str(value).strip() if value is not None else ""


def _to_int(value) -> Optional[int]:
    try:
        # "3", "03", "3/12"
        return int(str(value).split("/")[0])
    except (TypeError, ValueError):
        return None


def parse_show(identifier: str, data: dict, audio_format: str) -> Show:
    """Build a Show from a /metadata/<identifier> response.

    Only files with the configured audio extension become tracks.
    """
    metadata = data.get("metadata")
    if not isinstance(metadata, dict):
        raise ArchiveError(f"Invalid response format for {identifier}: missing metadata")

    date = _first(metadata.get("date"))
    year = _first(metadata.get("year")) or date[:4]

    try:
        avg_rating = float(_first(metadata.get("avg_rating"))) if metadata.get("avg_rating") else None
    except ValueError:
        avg_rating = None

    extension = f".{audio_format.lower().lstrip('.')}"
    tracks = []
    for file in data.get("files") or []:
        name = file.get("name") or ""
        if not name.lower().endswith(extension):
            continue
        tracks.append(Track(
            name=name,
            title=(file.get("title") or name.rsplit(".", 1)[0]).strip(),
            track_number=_to_int(file.get("track")),
            length=parse_length(file.get("length")),
            sha1=file.get("sha1"),
            format=file.get("format"),
            size=_to_int(file.get("size")),
        ))

    return Show(
        identifier=identifier,
        title=_first(metadata.get("title")),
        description=_first(metadata.get("description")),
        date=date,
        year=year,
        venue=_first(metadata.get("venue")),
        coverage=_first(metadata.get("coverage")),
        creator=_first(metadata.get("creator")),
        taper=_first(metadata.get("taper")),
        transferer=_first(metadata.get("transferer")),
        lineage=_first(metadata.get("lineage")),
        notes=_first(metadata.get("notes")),
        collection=_first(metadata.get("collection")),
        server_one=data.get("d1") or "",
        server_two=data.get("d2") or "",
        dir=data.get("dir") or "",
        pub_date=_first(metadata.get("publicdate")),
        guid=identifier,
        avg_rating=avg_rating,
        num_reviews=_to_int(_first(metadata.get("num_reviews"))) or 0,
        tracks=tracks,
    )


class ArchiveClient:
    """Synchronous archive.org API client.

    Runs inside a blocking worker: retries 5xx/429 with linear backoff,
    never retries other 4xx, enforces a per-minute request limit, and
    opens a circuit after repeated failures.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        client: Optional[httpx.Client] = None,
        audio_format: Optional[str] = None,
    ):
        self.base_url = (base_url or settings.archive_base_url).rstrip("/")
        self.audio_format = audio_format or settings.import_audio_format
        self.retry_attempts = max(1, settings.archive_retry_attempts)
        self.retry_delay = settings.archive_retry_delay
        self.page_size = min(settings.archive_page_size, MAX_ROWS_PER_PAGE)
        self._client = client or httpx.Client(
            timeout=settings.archive_timeout,
            headers={"User-Agent": f"liveloader/{__version__}"},
            follow_redirects=True,
        )
        # Rate limiting: archive_rate_limit requests per minute
        self._rate_limit = settings.archive_rate_limit
        self._request_times: deque = deque(maxlen=max(1, self._rate_limit))
        # Circuit breaker
        self._failures = 0
        self._circuit_threshold = 5
        self._circuit_reset = 60
        self._circuit_opened_at: Optional[float] = None

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def list_collection_identifiers(
        self, collection_id: str, limit: Optional[int] = None, offset: Optional[int] = None
    ) -> list[str]:
        """Identifiers in a collection, in archive order.

        Raises:
            ArchiveError: Listing failed or the response is malformed
        """
        offset = offset or 0
        wanted = offset + limit if limit else None
        rows = min(self.page_size, wanted) if wanted else self.page_size

        identifiers: list[str] = []
        page = 1
        while True:
            data = self._search(collection_id, rows, page)
            response = data.get("response")
            if not isinstance(response, dict) or not isinstance(response.get("docs"), list):
                raise ArchiveError("Invalid response format")

            docs = response["docs"]
            identifiers.extend(d["identifier"] for d in docs if d.get("identifier"))
            num_found = int(response.get("numFound") or 0)

            if not docs or len(identifiers) >= num_found:
                break
            if wanted and len(identifiers) >= wanted:
                break
            page += 1

        identifiers = identifiers[offset:]
        if limit:
            identifiers = identifiers[:limit]

        logger.info(f"Collection {collection_id}: {len(identifiers)} identifiers (offset {offset})")
        return identifiers

    def get_collection_count(self, collection_id: str) -> int:
        """Total items in a collection (0 if the response has no count)."""
        data = self._search(collection_id, rows=0, page=1)
        response = data.get("response") or {}
        try:
            return int(response.get("numFound") or 0)
        except (TypeError, ValueError):
            return 0

    def fetch_item_metadata(self, identifier: str) -> Show:
        """Fetch and parse one show."""
        data = self._request(f"{self.base_url}/metadata/{identifier}")
        if not data:
            # archive.org answers {} for unknown identifiers
            raise ArchiveError(f"Item not found: {identifier}", status_code=404)
        return parse_show(identifier, data, self.audio_format)

    def test_connection(self) -> bool:
        """True if the archive answers (404 still means reachable)."""
        try:
            response = self._client.get(f"{self.base_url}/metadata/", timeout=10)
            return response.status_code in (200, 404)
        except httpx.HTTPError:
            return False

    def _search(self, collection_id: str, rows: int, page: int) -> dict:
        return self._request(
            f"{self.base_url}/advancedsearch.php",
            params={
                "q": f"collection:{collection_id}",
                "fl[]": "identifier",
                "sort[]": "date asc",
                "rows": rows,
                "page": page,
                "output": "json",
            },
        )

    def _request(self, url: str, params: Optional[dict] = None) -> dict:
        """GET with retry on 5xx/429/transport errors."""
        self._check_circuit()

        last_error: Optional[ArchiveError] = None
        for attempt in range(1, self.retry_attempts + 1):
            self._check_rate_limit()
            try:
                response = self._client.get(url, params=params)
            except httpx.TransportError as e:
                last_error = ArchiveError(f"Request failed: {e}")
                logger.warning(f"Archive request error (attempt {attempt}/{self.retry_attempts}): {e}")
            else:
                if response.status_code == 200:
                    self._record_success()
                    try:
                        return response.json()
                    except ValueError:
                        raise ArchiveError("Invalid JSON response")

                last_error = ArchiveError(f"API error: HTTP {response.status_code}", response.status_code)
                if response.status_code < 500 and response.status_code != 429:
                    # Client errors are not retried
                    raise last_error
                logger.warning(
                    f"Archive HTTP {response.status_code} for {url} (attempt {attempt}/{self.retry_attempts})"
                )

            if attempt < self.retry_attempts:
                time.sleep(self.retry_delay * attempt)

        self._record_failure()
        raise last_error

    def _check_rate_limit(self) -> None:
        """Enforce rate limiting."""
        if self._rate_limit <= 0:
            return
        now = time.monotonic()
        while self._request_times and now - self._request_times[0] > 60:
            self._request_times.popleft()

        if len(self._request_times) >= self._rate_limit:
            wait_time = 60 - (now - self._request_times[0])
            if wait_time > 0:
                logger.debug(f"Rate limit reached, sleeping {wait_time:.1f}s")
                time.sleep(wait_time)

        self._request_times.append(time.monotonic())

    def _check_circuit(self) -> None:
        if self._circuit_opened_at is None:
            return
        if time.monotonic() - self._circuit_opened_at >= self._circuit_reset:
            # Half-open: let one request through
            self._circuit_opened_at = None
            self._failures = self._circuit_threshold - 1
            return
        raise ArchiveError("Archive API circuit open after repeated failures")

    def _record_success(self) -> None:
        self._failures = 0
        self._circuit_opened_at = None

    def _record_failure(self) -> None:
        self._failures += 1
        if self._failures >= self._circuit_threshold:
            logger.error(f"Opening archive circuit after {self._failures} failures")
            self._circuit_opened_at = time.monotonic()
