"""Tests for the archive API client."""
import httpx
import pytest

from liveloader.integrations.archive import ArchiveClient, ArchiveError, parse_length, parse_show

IDENTIFIERS = [f"lettuce2019-08-{i:02d}" for i in range(1, 6)]

ITEM = {
    "d1": "ia800100.us.archive.org",
    "d2": "ia600100.us.archive.org",
    "dir": "/12/items/lettuce2019-08-10",
    "metadata": {
        "identifier": "lettuce2019-08-10",
        "title": "Lettuce Live at Red Rocks Amphitheatre on 2019-08-10",
        "date": "2019-08-10",
        "venue": "Red Rocks Amphitheatre",
        "coverage": "Morrison, CO",
        "taper": ["Taper Joe", "Taper Jane"],
        "collection": ["Lettuce", "etree"],
        "avg_rating": "4.50",
        "num_reviews": "3",
    },
    "files": [
        {"name": "lettuce2019-08-10d1t01.flac", "title": "Phyllis", "track": "1", "length": "323.45",
         "format": "Flac", "size": "1000", "sha1": "abc"},
        {"name": "lettuce2019-08-10d1t01.mp3", "title": "Phyllis", "track": "1", "length": "5:23"},
        {"name": "lettuce2019-08-10d1t02.flac", "track": "2/12", "length": "1:02:03"},
        {"name": "lettuce2019-08-10.ffp"},
    ],
}


def search_handler(request: httpx.Request) -> httpx.Response:
    rows = int(request.url.params["rows"])
    page = int(request.url.params["page"])
    start = (page - 1) * rows
    docs = [{"identifier": i} for i in IDENTIFIERS[start:start + rows]] if rows else []
    return httpx.Response(200, json={"response": {"numFound": len(IDENTIFIERS), "docs": docs}})


def make_client(handler, page_size=2) -> ArchiveClient:
    client = ArchiveClient(
        base_url="https://archive.test",
        client=httpx.Client(transport=httpx.MockTransport(handler)),
        audio_format="flac",
    )
    client.page_size = page_size
    client.retry_delay = 0
    client._rate_limit = 0
    return client


class TestParsing:

    @pytest.mark.parametrize("value,expected", [
        ("323.45", 323.45),
        ("5:23", 323.0),
        ("1:02:03", 3723.0),
        ("", None),
        (None, None),
        ("abc", None),
    ])
    def test_parse_length(self, value, expected):
        assert parse_length(value) == expected

    def test_parse_show(self):
        show = parse_show("lettuce2019-08-10", ITEM, "flac")

        assert show.year == "2019"
        assert show.taper == "Taper Joe"
        assert show.collection == "Lettuce"
        assert show.avg_rating == 4.5
        assert show.num_reviews == 3
        assert show.streaming_host == "ia800100.us.archive.org"

        assert [t.name for t in show.tracks] == [
            "lettuce2019-08-10d1t01.flac",
            "lettuce2019-08-10d1t02.flac",
        ]
        first, second = show.tracks
        assert first.title == "Phyllis"
        assert first.length == 323.45
        assert first.size == 1000
        # untitled files fall back to the file stem
        assert second.title == "lettuce2019-08-10d1t02"
        assert second.track_number == 2

    def test_parse_show_without_metadata(self):
        with pytest.raises(ArchiveError):
            parse_show("x", {"files": []}, "flac")


class TestListing:

    def test_pages_through_collection(self):
        requested_pages = []

        def handler(request):
            requested_pages.append(request.url.params["page"])
            return search_handler(request)

        client = make_client(handler)

        assert client.list_collection_identifiers("Lettuce") == IDENTIFIERS
        assert requested_pages == ["1", "2", "3"]

    def test_limit_and_offset(self):
        client = make_client(search_handler)

        assert client.list_collection_identifiers("Lettuce", limit=3, offset=1) == IDENTIFIERS[1:4]

    def test_invalid_response_format(self):
        client = make_client(lambda request: httpx.Response(200, json={"docs": []}))

        with pytest.raises(ArchiveError) as exc:
            client.list_collection_identifiers("Lettuce")
        assert str(exc.value) == "Invalid response format"

    def test_collection_count(self):
        client = make_client(search_handler)
        assert client.get_collection_count("Lettuce") == 5


class TestRequests:

    def test_fetch_item_metadata(self):
        def handler(request):
            assert request.url.path == "/metadata/lettuce2019-08-10"
            return httpx.Response(200, json=ITEM)

        show = make_client(handler).fetch_item_metadata("lettuce2019-08-10")
        assert show.venue == "Red Rocks Amphitheatre"

    def test_unknown_item(self):
        client = make_client(lambda request: httpx.Response(200, json={}))

        with pytest.raises(ArchiveError) as exc:
            client.fetch_item_metadata("nope")
        assert exc.value.status_code == 404

    def test_client_error_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(403)

        client = make_client(handler)
        client.retry_attempts = 3

        with pytest.raises(ArchiveError) as exc:
            client.fetch_item_metadata("lettuce2019-08-10")
        assert exc.value.status_code == 403
        assert len(calls) == 1

    def test_server_error_retried(self):
        responses = [httpx.Response(503), httpx.Response(500), httpx.Response(200, json=ITEM)]
        client = make_client(lambda request: responses.pop(0))
        client.retry_attempts = 3

        show = client.fetch_item_metadata("lettuce2019-08-10")

        assert show.identifier == "lettuce2019-08-10"
        assert responses == []

    def test_server_error_exhausts_retries(self):
        client = make_client(lambda request: httpx.Response(500))
        client.retry_attempts = 2

        with pytest.raises(ArchiveError) as exc:
            client.fetch_item_metadata("lettuce2019-08-10")
        assert str(exc.value) == "API error: HTTP 500"

    def test_circuit_opens_after_repeated_failures(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500)

        client = make_client(handler)
        client.retry_attempts = 1

        for _ in range(5):
            with pytest.raises(ArchiveError):
                client.fetch_item_metadata("lettuce2019-08-10")

        with pytest.raises(ArchiveError) as exc:
            client.fetch_item_metadata("lettuce2019-08-10")
        assert "circuit open" in str(exc.value)
        assert len(calls) == 5

    def test_connection(self):
        assert make_client(lambda request: httpx.Response(404)).test_connection() is True
        assert make_client(lambda request: httpx.Response(500)).test_connection() is False
