"""Tests for the job screen session."""

import pytest

from cleanerapp.errors import ActionInFlight, NotFound, StoreError, ValidationError
from cleanerapp.schemas.job import JobStatus
from cleanerapp.schemas.photo import PhotoKind
from cleanerapp.services.job_session import JobDetailSession, ScreenRegistry, detail_view
from cleanerapp.services.lifecycle import JobLifecycleManager
from cleanerapp.services.photo_upload import PhotoUploadPipeline, PhotoUrlResolver
from cleanerapp.services.queries import JobQueries


@pytest.fixture
def make_screen(store, object_store, session, clock):
    def _make(job_id="job-1", lifecycle_store=None):
        resolver = PhotoUrlResolver(object_store, signed=False, clock=clock)
        return JobDetailSession(
            job_id,
            queries=JobQueries(store, session),
            lifecycle=JobLifecycleManager(lifecycle_store or store, session, clock=clock),
            uploader=PhotoUploadPipeline(store, object_store, resolver=resolver, clock=clock),
        )

    return _make


class FailingTaskStore:
    """Delegates to a real store but rejects task updates for chosen ids."""

    def __init__(self, inner, failing_ids):
        self.inner = inner
        self.failing_ids = set(failing_ids)

    def __getattr__(self, name):
        return getattr(self.inner, name)

    def update(self, table, row_id, values):
        if table == "tasks" and row_id in self.failing_ids:
            raise StoreError("network request failed")
        return self.inner.update(table, row_id, values)


def test_load(seed, make_screen):
    """Test loading job, tasks in creation order and photos."""
    seed()
    screen = make_screen()

    progress = screen.load()

    assert progress.job.id == "job-1"
    assert [t.description for t in progress.tasks] == ["Kitchen", "Bathroom", "Floors"]
    assert progress.photos == ()


def test_load_unknown_job(store, make_screen):
    """Test an unknown job id raises NotFound."""
    with pytest.raises(NotFound) as exc_info:
        make_screen("missing").load()

    assert exc_info.value.message == "Job not found."


def test_double_toggle_restores_state(seed, make_screen):
    """Test toggling a task twice returns to the original state."""
    seed(status="in_progress")
    screen = make_screen()
    screen.load()

    first = screen.toggle_task("job-1-task-1")
    assert first.optimistic.task("job-1-task-1").is_completed
    assert screen.eligibility().completed_tasks == 1

    second = screen.toggle_task("job-1-task-1")
    assert not second.settled.task("job-1-task-1").is_completed
    assert screen.eligibility().completed_tasks == 0


def test_failed_toggle_reverts_only_that_task(seed, store, make_screen):
    """Test rollback of a failed toggle keeps other tasks' changes."""
    seed(status="in_progress")
    screen = make_screen(lifecycle_store=FailingTaskStore(store, ["job-1-task-2"]))
    screen.load()

    screen.toggle_task("job-1-task-1")
    with pytest.raises(StoreError):
        screen.toggle_task("job-1-task-2")

    progress = screen.progress
    assert progress.task("job-1-task-1").is_completed
    assert not progress.task("job-1-task-2").is_completed


def test_toggle_on_completed_job_reverts(seed, make_screen):
    """Test a rejected toggle leaves the snapshot unchanged."""
    seed(status="completed")
    screen = make_screen()
    screen.load()

    with pytest.raises(ValidationError):
        screen.toggle_task("job-1-task-1")

    assert screen.progress.completed_count == 0


def test_toggle_unknown_task(seed, make_screen):
    """Test toggling a task that is not on the job."""
    seed(status="in_progress")
    screen = make_screen()
    screen.load()

    with pytest.raises(NotFound):
        screen.toggle_task("nope")


def test_action_in_flight(seed, make_screen):
    """Test the same action cannot run twice at once."""
    seed()
    screen = make_screen()
    screen.load()

    with screen._action("check_in"):
        assert screen.is_in_flight("check_in")
        with pytest.raises(ActionInFlight):
            screen.check_in()

    assert not screen.is_in_flight("check_in")
    assert screen.check_in().job.status == JobStatus.IN_PROGRESS


def test_complete_waits_for_photo_upload(seed, make_screen):
    """Test completion is refused while a photo is uploading."""
    seed(status="in_progress", completed=3)
    screen = make_screen()
    screen.load()

    with screen._action("photo:after"):
        with pytest.raises(ValidationError) as exc_info:
            screen.complete()

    assert "photo upload" in exc_info.value.message


def test_results_after_close_are_discarded(seed, store, session, make_screen):
    """Test a closed screen keeps its last snapshot."""
    seed()
    screen = make_screen()
    screen.load()

    screen.close()
    progress = screen.check_in()

    assert progress.job.status == JobStatus.SCHEDULED
    assert JobQueries(store, session).get_job("job-1").status == JobStatus.IN_PROGRESS


def test_full_flow_and_summary(seed, make_screen, object_store, jpeg_file):
    """Test check-in, tasks, photos, completion and the summary view."""
    seed()
    screen = make_screen()
    screen.load()

    screen.check_in()
    for task_id in ("job-1-task-1", "job-1-task-2", "job-1-task-3"):
        screen.toggle_task(task_id)

    with pytest.raises(ValidationError):
        screen.complete()

    before = screen.upload_photo(str(jpeg_file), PhotoKind.BEFORE)
    after = screen.upload_photo(str(jpeg_file), "after")
    assert detail_view(screen.progress).eligible

    done = screen.complete()
    assert done.job.status == JobStatus.COMPLETED

    summary = screen.summary()
    assert summary.client_name == "Sarah Johnson"
    assert summary.tasks_completed == 3
    assert summary.total_tasks == 3
    assert summary.duration is not None
    assert summary.before_photo_url.startswith(object_store.get_public_url(before.storage_path))
    assert summary.after_photo_url.startswith(object_store.get_public_url(after.storage_path))


def test_registry_replaces_and_closes(seed, make_screen):
    """Test opening a job again closes the previous screen."""
    seed()
    registry = ScreenRegistry()
    first = registry.open("cleaner-1", make_screen())
    second = registry.open("cleaner-1", make_screen())

    assert first.closed
    assert registry.get("cleaner-1", "job-1") is second

    registry.close_all("cleaner-1")
    assert second.closed
    assert registry.get("cleaner-1", "job-1") is None


def test_other_cleaners_job_is_not_found(seed, make_screen):
    """Test a job assigned to someone else cannot be opened."""
    seed(job_id="theirs", cleaner_id="client-1")

    with pytest.raises(NotFound) as exc_info:
        make_screen("theirs").load()

    assert exc_info.value.message == "Job not found."
