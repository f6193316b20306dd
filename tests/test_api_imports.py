"""Tests for import and catalog maintenance endpoints."""
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy import select

from liveloader.models.catalog_entry import CatalogEntry


@pytest.fixture
def collection(fake_archive, make_show):
    for i in range(1, 4):
        fake_archive.add_show("Lettuce", make_show(f"lettuce2019-08-{i:02d}", tracks=5))
    return "Lettuce"


@pytest.fixture
def imported(import_service, collection):
    return import_service.start_import("Lettuce", collection, run_async=False)


def test_liveness(client):
    response = client.get("/live")
    assert response.status_code == 200
    assert response.json()["alive"] is True


def test_root(client):
    assert client.get("/").json()["name"] == "liveloader"


class TestStartImport:

    def test_queues_job(self, client, collection):
        task = MagicMock()
        task.delay.return_value.id = "task-1"

        with patch("liveloader.tasks.imports.run_import_job", task):
            response = client.post("/api/imports", json={"artist": "Lettuce", "collection": collection, "limit": 2})

        assert response.status_code == 202
        data = response.json()
        assert data["status"] == "queued"
        assert data["limit"] == 2
        assert data["celery_task_id"] == "task-1"
        task.delay.assert_called_once_with(data["job_id"], "api", None)

    def test_queues_with_writer(self, client, collection):
        task = MagicMock()
        task.delay.return_value.id = "task-1"

        with patch("liveloader.tasks.imports.run_import_job", task):
            response = client.post("/api/imports", json={"artist": "Lettuce", "collection": collection, "writer": "bulk"})

        assert response.status_code == 202
        task.delay.assert_called_once_with(response.json()["job_id"], "api", "bulk")

    @pytest.mark.parametrize("payload", [
        {"artist": "  ", "collection": "Lettuce"},
        {"artist": "Lettuce", "collection": "bad id"},
        {"artist": "Lettuce", "collection": "Lettuce", "limit": 0},
        {"artist": "Lettuce", "collection": "Lettuce", "offset": -1},
        {"artist": "Lettuce", "collection": "Lettuce", "writer": "fast"},
    ])
    def test_invalid_payload(self, client, payload):
        response = client.post("/api/imports", json=payload)
        assert response.status_code == 422
        assert client.get("/api/imports").json() == []


class TestJobs:

    def test_get_and_list(self, client, imported):
        response = client.get(f"/api/imports/{imported.job_id}")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "completed"
        assert data["progress"] == 100
        assert data["tracks_created"] == 15

        assert [j["job_id"] for j in client.get("/api/imports").json()] == [imported.job_id]
        assert client.get("/api/imports", params={"status": "failed"}).json() == []

    def test_get_unknown(self, client):
        response = client.get("/api/imports/import_nope")

        assert response.status_code == 404
        assert response.json()["detail"] == 'Import job with ID "import_nope" does not exist.'

    def test_cancel_queued(self, client, import_service, collection):
        task = MagicMock()
        task.delay.return_value.id = "task-1"

        with patch("liveloader.tasks.imports.run_import_job", task):
            job = import_service.start_import("Lettuce", collection)

        response = client.post(f"/api/imports/{job.job_id}/cancel")

        assert response.status_code == 200
        assert client.get(f"/api/imports/{job.job_id}").json()["status"] == "cancelled"

    def test_cancel_finished(self, client, imported):
        response = client.post(f"/api/imports/{imported.job_id}/cancel")
        assert response.status_code == 409

    def test_cancel_unknown(self, client):
        assert client.post("/api/imports/import_nope/cancel").status_code == 404


class TestCatalog:

    def test_collections(self, client, imported):
        data = client.get("/api/collections", params={"include_stats": True}).json()

        assert data[0]["artist_name"] == "Lettuce"
        assert data[0]["imported_count"] == 15
        assert data[0]["total_items"] == 3

    def test_delete_entry(self, client, db, imported):
        sku = db.execute(select(CatalogEntry.sku)).scalars().first()

        response = client.delete(f"/api/entries/{sku}")

        assert response.status_code == 200
        assert client.delete(f"/api/entries/{sku}").status_code == 404

    def test_delete_non_archive_entry(self, client, db):
        db.add(CatalogEntry(sku="manual", name="Manual", url_key="manual", title="Manual", artist_name="Lettuce"))
        db.commit()

        assert client.delete("/api/entries/manual").status_code == 409

    def test_cleanup_dry_run(self, client, imported):
        response = client.post("/api/entries/cleanup", json={"collection": "Lettuce", "dry_run": True})

        assert response.status_code == 200
        data = response.json()
        assert data["found"] == 15
        assert data["deleted"] == 0

    def test_cleanup_requires_filter(self, client):
        response = client.post("/api/entries/cleanup", json={})

        assert response.status_code == 400
        assert "Specify at least one filter" in response.json()["detail"]


class TestAudit:

    def test_runs(self, client, imported):
        runs = client.get("/api/runs", params={"artist": "Lettuce"}).json()

        assert len(runs) == 1
        assert runs[0]["job_id"] == imported.job_id
        assert runs[0]["status"] == "completed"
        assert runs[0]["items_successful"] == 15

    def test_unmatched_review(self, client, import_service, fake_archive, make_show):
        fake_archive.add_show("Other", make_show("lettuce2020-01-01", titles=["Zzyzx Road"]))
        import_service.import_show("lettuce2020-01-01", "Lettuce")

        pending = client.get("/api/unmatched", params={"artist": "Lettuce"}).json()
        assert [u["track_title"] for u in pending] == ["Zzyzx Road"]

        unmatched_id = pending[0]["id"]
        response = client.patch(f"/api/unmatched/{unmatched_id}", json={"status": "new_track"})
        assert response.status_code == 200
        assert response.json()["status"] == "new_track"

        assert client.patch(f"/api/unmatched/{unmatched_id}", json={"status": "mapped"}).status_code == 400
        assert client.patch("/api/unmatched/999", json={"status": "ignored"}).status_code == 404
        assert client.patch(f"/api/unmatched/{unmatched_id}", json={"status": "bogus"}).status_code == 422

    def test_unmatched_stats(self, client, import_service, fake_archive, make_show):
        fake_archive.add_show("Lettuce", make_show("lettuce2020-01-01", titles=["Phyllis", "Zzyzx Road"]))
        import_service.import_show("lettuce2020-01-01", "Lettuce")

        response = client.get("/api/unmatched/stats", params={"artist": "Lettuce"})

        assert response.status_code == 200
        assert response.json()["pending"] == 1
        assert response.json()["total"] == 1


class TestArtistStatus:

    def test_list(self, client, imported):
        statuses = client.get("/api/artists/status").json()

        assert [s["artist_name"] for s in statuses] == ["Lettuce"]
        assert statuses[0]["imported_tracks"] == 15
        assert statuses[0]["last_job_id"] == imported.job_id
        assert statuses[0]["last_status"] == "completed"

    def test_get(self, client, imported):
        response = client.get("/api/artists/Lettuce/status")

        assert response.status_code == 200
        assert response.json()["total_shows"] == 3

    def test_get_blank_artist(self, client):
        assert client.get("/api/artists/%20/status").status_code == 400
