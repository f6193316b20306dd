"""Tests for the import run audit trail and activity log."""
import pytest

from liveloader.services.activity import ActivityService
from liveloader.services.audit import AuditError, ImportRunRecorder, peak_memory_mb


def sample_result(errors=0):
    return {
        "tracks_created": 8,
        "tracks_updated": 2,
        "tracks_skipped": 0,
        "error_count": errors,
        "errors": [{"message": f"error {i}", "context": f"show{i}"} for i in range(errors)],
    }


class TestImportRunRecorder:

    def test_start(self, db):
        run = ImportRunRecorder(db).start("import", {"artist": "Lettuce"}, artist_name="Lettuce", job_id="job-1")

        assert run.id is not None
        assert run.status == "running"
        assert run.command_args == {"artist": "Lettuce"}
        assert run.correlation_id
        assert run.completed_at is None

    def test_finish_records_counters(self, db):
        recorder = ImportRunRecorder(db)
        run = recorder.start("import", artist_name="Lettuce")

        recorder.finish(run, sample_result(), "completed")

        assert run.status == "completed"
        assert run.exit_code == 0
        assert run.items_processed == 10
        assert run.items_successful == 10
        assert run.items_failed == 0
        assert run.duration_seconds >= 0
        assert run.memory_peak_mb > 0
        assert run.error_message is None

    def test_finish_keeps_first_ten_errors(self, db):
        recorder = ImportRunRecorder(db)
        run = recorder.start("import")

        recorder.finish(run, sample_result(errors=15), "partial", exit_code=1)

        assert run.items_failed == 15
        assert len(run.errors) == 10
        assert run.error_message == "error 0"

    def test_finish_with_exception_keeps_stacktrace(self, db):
        recorder = ImportRunRecorder(db)
        run = recorder.start("import")

        try:
            raise RuntimeError("listing exploded")
        except RuntimeError as e:
            recorder.finish(run, None, "failed", exit_code=1, error=e)

        assert run.error_message == "listing exploded"
        assert "RuntimeError" in run.error_stacktrace
        assert run.items_processed == 0

    def test_completed_run_is_immutable(self, db):
        recorder = ImportRunRecorder(db)
        run = recorder.start("import")
        recorder.finish(run, sample_result(), "completed")

        with pytest.raises(AuditError):
            recorder.finish(run, sample_result(), "failed")

    def test_finish_from_another_recorder(self, db):
        run = ImportRunRecorder(db).start("import")

        ImportRunRecorder(db).finish(run, sample_result(), "completed")

        assert run.duration_seconds is not None

    def test_recent_runs_filters(self, db):
        recorder = ImportRunRecorder(db)
        a = recorder.start("import", artist_name="Lettuce")
        recorder.start("import", artist_name="Phish")
        recorder.finish(a, sample_result(), "completed")

        assert len(recorder.recent_runs()) == 2
        assert [r.id for r in recorder.recent_runs(artist_name="Lettuce")] == [a.id]
        assert [r.id for r in recorder.recent_runs(status="completed")] == [a.id]


def test_peak_memory_positive():
    assert peak_memory_mb() > 0


class TestActivityService:

    def test_log_and_recent(self, db):
        service = ActivityService(db)
        service.log("cli", "delete_entry", "entry", "sku-1", {"name": "x"})
        service.log("api", "cancel_job", "job", "import_1")

        recent = service.recent()
        assert len(recent) == 2
        assert [a.action for a in service.recent(action="cancel_job")] == ["cancel_job"]
        assert recent[-1].details == {"name": "x"}
