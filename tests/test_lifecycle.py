"""Tests for job lifecycle transitions and duration."""

from datetime import datetime, time

import pytest

from cleanerapp.errors import StoreError, TransitionError, ValidationError
from cleanerapp.schemas.job import JobProgress, JobRow, JobStatus
from cleanerapp.schemas.photo import PhotoKind, PhotoRow
from cleanerapp.services.lifecycle import (
    JobLifecycleManager,
    duration_label,
    evaluate_eligibility,
    format_duration,
    job_duration,
)
from cleanerapp.services.queries import JobQueries


class SpyStore:
    """Records writes; optionally fails them."""

    def __init__(self, inner=None, fail=False):
        self.inner = inner
        self.fail = fail
        self.updates = []

    def update(self, table, row_id, values):
        self.updates.append((table, row_id, values))
        if self.fail:
            raise StoreError("permission denied for table jobs")
        return self.inner.update(table, row_id, values)


def load_progress(store, session, job_id="job-1", photos=()):
    job_with_tasks = JobQueries(store, session).get_job_with_tasks(job_id)
    return JobProgress(job=job_with_tasks.job, tasks=tuple(job_with_tasks.tasks), photos=tuple(photos))


def photo(kind, minute=0):
    return PhotoRow(
        job_id="job-1",
        type=kind,
        image_url=f"jobs/job-1/{kind}-{minute}.jpg",
        created_at=datetime(2025, 1, 2, 11, minute),
    )


def make_job(**fields):
    return JobRow(id="job-1", status=JobStatus.IN_PROGRESS, **fields)


def test_duration_uses_actual_times():
    """Test actual on-site time wins over the planned window."""
    job = make_job(
        start_time=time(9, 0),
        end_time=time(10, 0),
        check_in_at=datetime(2025, 1, 2, 10, 0),
        check_out_at=datetime(2025, 1, 2, 12, 10),
    )

    assert duration_label(job) == "2h 10m"


def test_duration_falls_back_to_planned_window():
    """Test the planned window is used without both instants."""
    assert duration_label(make_job(start_time=time(10, 0), end_time=time(12, 0))) == "2h"
    assert duration_label(make_job(start_time=time(22, 0), end_time=time(1, 30))) == "3h 30m"


def test_duration_unknown():
    """Test no duration without any usable times."""
    assert duration_label(make_job()) is None
    assert job_duration(
        make_job(check_in_at=datetime(2025, 1, 2, 12, 0), check_out_at=datetime(2025, 1, 2, 11, 0))
    ) is None


def test_inverted_instants_fall_back_to_planned_window():
    """Test check-out before check-in uses the planned window."""
    job = make_job(
        start_time=time(10, 0),
        end_time=time(11, 45),
        check_in_at=datetime(2025, 1, 2, 12, 0),
        check_out_at=datetime(2025, 1, 2, 11, 0),
    )

    assert duration_label(job) == "1h 45m"


def test_format_duration():
    """Test duration formatting."""
    from datetime import timedelta

    assert format_duration(timedelta(minutes=5)) == "5m"
    assert format_duration(timedelta(seconds=30)) == "0m"
    assert format_duration(timedelta(hours=3)) == "3h"
    assert format_duration(timedelta(hours=1, minutes=1, seconds=59)) == "1h 1m"


def test_check_in(seed, store, session, clock):
    """Test check-in from scheduled."""
    seed()
    manager = JobLifecycleManager(store, session, clock=clock)
    job = JobQueries(store, session).get_job("job-1")

    updated = manager.check_in(job)

    assert updated.status == JobStatus.IN_PROGRESS
    assert updated.check_in_at == datetime(2025, 1, 2, 10, 0, 0)
    assert updated.check_out_at is None


def test_check_in_twice_is_noop(seed, store, session):
    """Test a job already in progress is returned without a write."""
    seed(status="in_progress", check_in_at=datetime(2025, 1, 2, 9, 0))
    spy = SpyStore(store)
    job = JobQueries(store, session).get_job("job-1")

    assert JobLifecycleManager(spy, session).check_in(job) == job
    assert spy.updates == []


def test_check_in_rejected_for_closed_jobs(seed, store, session):
    """Test completed and cancelled jobs cannot be checked into."""
    seed(job_id="done", status="completed")
    seed(job_id="gone", status="cancelled")
    spy = SpyStore(store)
    manager = JobLifecycleManager(spy, session)
    queries = JobQueries(store, session)

    for job_id in ("done", "gone"):
        with pytest.raises(ValidationError):
            manager.check_in(queries.get_job(job_id))
    assert spy.updates == []


def test_check_in_store_failure(seed, store, session):
    """Test a failed write raises TransitionError and leaves the row alone."""
    seed()
    job = JobQueries(store, session).get_job("job-1")

    with pytest.raises(TransitionError) as exc_info:
        JobLifecycleManager(SpyStore(store, fail=True), session).check_in(job)

    assert "permission denied" in exc_info.value.message
    assert JobQueries(store, session).get_job("job-1").status == JobStatus.SCHEDULED


def test_complete_rejected_without_network_call(seed, store, session):
    """Test an ineligible job is rejected locally."""
    seed(status="in_progress", completed=2)
    spy = SpyStore(store)
    progress = load_progress(store, session, photos=[photo("before")])

    with pytest.raises(ValidationError) as exc_info:
        JobLifecycleManager(spy, session).complete(progress)

    assert "1 task(s) still open" in exc_info.value.message
    assert "after photo" in exc_info.value.message
    assert spy.updates == []


def test_complete_requires_check_in(seed, store, session):
    """Test completing a scheduled job is rejected."""
    seed(completed=3)
    progress = load_progress(store, session, photos=[photo("before"), photo("after", 5)])

    with pytest.raises(ValidationError):
        JobLifecycleManager(store, session).complete(progress)


def test_complete_already_completed_is_noop(seed, store, session):
    """Test completing a completed job returns it unchanged."""
    seed(status="completed", completed=3)
    spy = SpyStore(store)
    progress = load_progress(store, session)

    assert JobLifecycleManager(spy, session).complete(progress) == progress.job
    assert spy.updates == []


def test_toggle_rejected_on_completed_job(seed, store, session):
    """Test tasks of a completed job cannot change."""
    seed(status="completed")
    progress = load_progress(store, session)

    with pytest.raises(ValidationError):
        JobLifecycleManager(store, session).toggle_task(progress.job, progress.tasks[0])


def test_full_job_scenario(seed, store, session, clock):
    """Test a three-task job from check-in to completion."""
    seed()
    manager = JobLifecycleManager(store, session, clock=clock)
    progress = load_progress(store, session)

    progress = progress.with_job(manager.check_in(progress.job))
    assert progress.job.status == JobStatus.IN_PROGRESS

    for task in progress.tasks:
        saved = manager.toggle_task(progress.job, task)
        progress = progress.with_task_completed(task.id, saved.is_completed)
    assert progress.completed_count == 3

    progress = progress.with_photo(photo("before", 1))
    assert not evaluate_eligibility(progress).eligible
    progress = progress.with_photo(photo("after", 2))
    assert evaluate_eligibility(progress).eligible

    clock.set(datetime(2025, 1, 2, 12, 10, 0))
    done = manager.complete(progress)

    assert done.status == JobStatus.COMPLETED
    assert done.check_in_at is not None
    assert done.check_out_at >= done.check_in_at
    assert duration_label(done) == "2h 10m"
    assert all(t.is_completed for t in JobQueries(store, session).get_tasks("job-1"))


def test_latest_photo_wins():
    """Test the most recent photo of a kind is the one evaluated."""
    job = make_job()
    progress = JobProgress(job=job).with_photo(photo("after", 1)).with_photo(photo("after", 30))

    assert progress.latest_photo(PhotoKind.AFTER).storage_path == "jobs/job-1/after-30.jpg"
    assert progress.latest_photo(PhotoKind.BEFORE) is None
