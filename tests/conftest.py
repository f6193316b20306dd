"""Pytest fixtures for liveloader tests."""
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import liveloader.models  # noqa: F401
from liveloader.main import app
from liveloader.database import Base, get_db, enable_sqlite_savepoints
from liveloader.dependencies import get_import_service
from liveloader.integrations.archive import ArchiveError, Show, Track
from liveloader.services.artist_catalog import ArtistCatalogLoader
from liveloader.services.classification import CategoryAssignmentService
from liveloader.services.import_management import ImportManagementService
from liveloader.services.lock import LockService

# In-memory SQLite for tests
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
enable_sqlite_savepoints(engine)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

LETTUCE_CATALOG = """\
name: Lettuce
collection: Lettuce
tracks:
  - key: phyllis
    name: Phyllis
    aliases: ["Phylis Jam"]
  - key: the-love-is-what-we-came-here-for
    name: The Love Is What We Came Here For
    aliases: ["Love Is What We Came Here For"]
  - key: madison-square
    name: Madison Square
  - key: squadlive
    name: Squadlive
  - key: royal-highness
    name: Royal Highness
    aliases: ["Royal"]
  - key: blast-off
    name: Blast Off
"""


class FakeArchive:
    """In-memory archive: collection listings and show metadata."""

    def __init__(self):
        self.collections: dict[str, list[str]] = {}
        self.shows: dict[str, Show] = {}
        self.failing: set[str] = set()
        self.listing_error: str = ""
        self.fetched: list[str] = []

    def add_show(self, collection_id: str, show: Show) -> Show:
        self.collections.setdefault(collection_id, []).append(show.identifier)
        self.shows[show.identifier] = show
        return show

    def list_collection_identifiers(self, collection_id, limit=None, offset=None):
        if self.listing_error:
            raise ArchiveError(self.listing_error, status_code=503)
        identifiers = list(self.collections.get(collection_id, []))
        identifiers = identifiers[offset or 0:]
        return identifiers[:limit] if limit else identifiers

    def fetch_item_metadata(self, identifier):
        self.fetched.append(identifier)
        if identifier in self.failing:
            raise ArchiveError("API error: HTTP 500", status_code=500)
        if identifier not in self.shows:
            raise ArchiveError(f"Item not found: {identifier}", status_code=404)
        return self.shows[identifier]

    def test_connection(self):
        return True

    def get_collection_count(self, collection_id):
        if self.listing_error:
            raise ArchiveError(self.listing_error, status_code=503)
        return len(self.collections.get(collection_id, []))


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def make_show():
    """Factory fixture building a Show with N flac tracks."""
    def _make(identifier, titles=None, tracks=3, **fields):
        titles = titles or [f"Jam {i}" for i in range(1, tracks + 1)]
        defaults = {
            "title": f"Lettuce Live at Red Rocks ({identifier})",
            "date": "2019-08-10",
            "year": "2019",
            "venue": "Red Rocks Amphitheatre",
            "coverage": "Morrison, CO",
            "taper": "Taper Joe",
            "transferer": "Transfer Tom",
            "lineage": "Schoeps > Sonosax > Sound Devices",
            "server_one": "ia800100.us.archive.org",
            "dir": f"/12/items/{identifier}",
            "avg_rating": 4.5,
            "num_reviews": 3,
        }
        defaults.update(fields)
        return Show(
            identifier=identifier,
            tracks=[
                Track(
                    name=f"{identifier}d1t{i:02d}.flac",
                    title=title,
                    track_number=i,
                    length=300.0 + i,
                    format="Flac",
                    size=20_000_000 + i,
                )
                for i, title in enumerate(titles, start=1)
            ],
            **defaults,
        )

    return _make


@pytest.fixture
def fake_archive():
    """Empty FakeArchive; tests add shows with add_show()."""
    return FakeArchive()


@pytest.fixture
def catalog_loader(tmp_path):
    """Artist catalog directory holding a Lettuce catalog."""
    catalog_dir = tmp_path / "artists"
    catalog_dir.mkdir()
    (catalog_dir / "lettuce.yaml").write_text(LETTUCE_CATALOG)
    return ArtistCatalogLoader(str(catalog_dir))


@pytest.fixture
def lock_service(tmp_path):
    """Lock service writing into a temporary directory."""
    service = LockService(lock_dir=str(tmp_path / "locks"), stale_hours=24)
    yield service
    service.release_all()


@pytest.fixture
def artist_node(db):
    """Root classification node for Lettuce."""
    node = CategoryAssignmentService(db, []).create_artist_node("Lettuce")
    db.commit()
    return node


@pytest.fixture
def artist_mappings(artist_node):
    return [{"artist_name": "Lettuce", "collection_id": "Lettuce", "category_id": artist_node.id}]


@pytest.fixture
def import_service(db, fake_archive, lock_service, catalog_loader, artist_mappings):
    """ImportManagementService wired to the fakes."""
    return ImportManagementService(
        db,
        archive=fake_archive,
        lock_service=lock_service,
        catalog_loader=catalog_loader,
        artist_mappings=artist_mappings,
    )


@pytest.fixture(scope="function")
def client(db, import_service):
    """Create a test client with the test database."""
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_import_service] = lambda: import_service
    yield TestClient(app)
    app.dependency_overrides.clear()
