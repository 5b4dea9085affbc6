"""Job state machine: check-in, task toggles, completion gating, duration."""

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Optional

from cleanerapp.errors import NotFound, StoreError, TransitionError, ValidationError
from cleanerapp.schemas.auth import SessionContext
from cleanerapp.schemas.job import OPEN_STATUSES, Eligibility, JobProgress, JobRow, JobStatus, TaskRow
from cleanerapp.schemas.photo import PhotoKind
from cleanerapp.services.store import RelationalStore

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def evaluate_eligibility(progress: JobProgress) -> Eligibility:
    """Completion gate: all tasks done plus at least one before and one after photo."""
    return Eligibility(
        completed_tasks=progress.completed_count,
        total_tasks=progress.total_count,
        has_before=progress.latest_photo(PhotoKind.BEFORE) is not None,
        has_after=progress.latest_photo(PhotoKind.AFTER) is not None,
    )


def job_duration(job: JobRow) -> Optional[timedelta]:
    """Actual time on site if checked in and out, else the planned window.

    An inverted check-in/check-out pair is not usable and falls back too.
    """
    if job.check_in_at and job.check_out_at:
        actual = job.check_out_at - job.check_in_at
        if actual >= timedelta(0):
            return actual

    if job.start_time and job.end_time:
        planned = datetime.combine(date.min, job.end_time) - datetime.combine(date.min, job.start_time)
        if planned < timedelta(0):
            planned += timedelta(days=1)  # ends after midnight
        return planned

    return None


def format_duration(duration: timedelta) -> str:
    """'2h 10m', '2h' or '5m'; whole minutes, at least one unit."""
    hours, minutes = divmod(int(duration.total_seconds() // 60), 60)
    parts = []
    if hours:
        parts.append(f"{hours}h")
    if minutes or not hours:
        parts.append(f"{minutes}m")
    return " ".join(parts)


def duration_label(job: JobRow) -> Optional[str]:
    duration = job_duration(job)
    return format_duration(duration) if duration is not None else None


class JobLifecycleManager:
    """Sole writer of job status and check-in/check-out instants.

    Preconditions are checked locally before any network call. Check-in and
    completion are single-row updates and are not optimistic: on failure the
    caller's state is untouched and a TransitionError is raised.
    """

    def __init__(
        self,
        store: RelationalStore,
        session: SessionContext,
        clock: Callable[[], datetime] = utc_now,
    ):
        """Initialize with a store, the acting session and a clock."""
        self.store = store
        self.session = session
        self.clock = clock

    def _update_job(self, job: JobRow, values: dict, action: str) -> JobRow:
        try:
            row = self.store.update("jobs", job.id, values)
        except (StoreError, NotFound) as e:
            logger.error(f"{action} failed for job {job.id} by {self.session.user_id}: {e.message}")
            raise TransitionError(e.message) from e
        updated = JobRow.model_validate(row)
        logger.info(f"{action} job {job.id}: status={updated.status.value}")
        return updated

    def check_in(self, job: JobRow) -> JobRow:
        """
        Record arrival and move the job to in_progress.

        A job already in progress is returned unchanged without a network call.

        Raises:
            ValidationError: If the job is completed or cancelled
            TransitionError: If the store update fails
        """
        if job.status == JobStatus.IN_PROGRESS:
            return job
        if job.status != JobStatus.SCHEDULED:
            raise ValidationError(f"Cannot check in to a {job.status.value} job.")

        return self._update_job(
            job,
            {"check_in_at": self.clock(), "status": JobStatus.IN_PROGRESS.value},
            "Check-in",
        )

    def toggle_task(self, job: JobRow, task: TaskRow) -> TaskRow:
        """
        Persist the flipped completion flag of one task.

        Raises:
            ValidationError: If the job is completed or cancelled
            StoreError: If the store update fails
        """
        if job.status not in OPEN_STATUSES:
            raise ValidationError(f"Tasks of a {job.status.value} job cannot be changed.")
        if task.job_id != job.id:
            raise ValidationError("Task does not belong to this job.")

        row = self.store.update("tasks", task.id, {"is_completed": not task.is_completed})
        return TaskRow.model_validate(row)

    def complete(self, progress: JobProgress) -> JobRow:
        """
        Record departure and move the job to completed.

        Completing an already completed job returns it unchanged.

        Raises:
            ValidationError: If the job is not in progress or not eligible
            TransitionError: If the store update fails
        """
        job = progress.job
        if job.status == JobStatus.COMPLETED:
            return job
        if job.status != JobStatus.IN_PROGRESS:
            raise ValidationError("Check in before completing the job.")

        eligibility = evaluate_eligibility(progress)
        if not eligibility.eligible:
            raise ValidationError("Job cannot be completed yet: " + "; ".join(eligibility.reasons()) + ".")

        return self._update_job(
            job,
            {"check_out_at": self.clock(), "status": JobStatus.COMPLETED.value},
            "Check-out",
        )
