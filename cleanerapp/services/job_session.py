"""In-memory state of an open job screen."""

import logging
import threading
from contextlib import contextmanager
from typing import Callable, Dict, NamedTuple, Optional, Tuple

from cleanerapp.errors import ActionInFlight, NotFound, StoreError, ValidationError
from cleanerapp.schemas.job import Eligibility, JobDetailResponse, JobProgress, JobSummary
from cleanerapp.schemas.photo import PhotoKind, UploadResult
from cleanerapp.services.lifecycle import JobLifecycleManager, duration_label, evaluate_eligibility
from cleanerapp.services.photo_upload import PhotoUploadPipeline
from cleanerapp.services.queries import JobQueries

logger = logging.getLogger(__name__)


class TaskToggle(NamedTuple):
    """Snapshot right after the optimistic flip and after the store answered."""

    optimistic: JobProgress
    settled: JobProgress


class JobDetailSession:
    """One job screen: snapshot, in-flight flags and a relevance guard.

    Snapshots are immutable; every change swaps in a new one under a lock.
    Results that arrive after close() are dropped instead of applied.
    """

    def __init__(
        self,
        job_id: str,
        queries: JobQueries,
        lifecycle: JobLifecycleManager,
        uploader: PhotoUploadPipeline,
    ):
        """Initialize a screen session for one job (not loaded yet)."""
        self.job_id = job_id
        self.queries = queries
        self.lifecycle = lifecycle
        self.uploader = uploader
        self._progress: Optional[JobProgress] = None
        self._in_flight = set()
        self._lock = threading.Lock()
        self._closed = threading.Event()

    # State

    @property
    def progress(self) -> JobProgress:
        with self._lock:
            if self._progress is None:
                raise ValidationError("Job screen is not loaded.")
            return self._progress

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def eligibility(self) -> Eligibility:
        return evaluate_eligibility(self.progress)

    def _apply(self, change: Callable[[Optional[JobProgress]], JobProgress]) -> Optional[JobProgress]:
        """Derive and swap in a new snapshot unless the screen has gone away."""
        with self._lock:
            if self._closed.is_set():
                logger.debug(f"Screen for job {self.job_id} closed, dropping result")
                return self._progress
            self._progress = change(self._progress)
            return self._progress

    @contextmanager
    def _action(self, name: str):
        with self._lock:
            if name in self._in_flight:
                raise ActionInFlight("That action is already in progress.")
            self._in_flight.add(name)
        try:
            yield
        finally:
            with self._lock:
                self._in_flight.discard(name)

    def is_in_flight(self, name: str) -> bool:
        with self._lock:
            return name in self._in_flight

    # Actions

    def load(self) -> JobProgress:
        """
        Fetch job, tasks and photos.

        Raises:
            NotFound: If the job does not exist or is assigned to another cleaner
        """
        with self._action("load"):
            job_with_tasks = self.queries.get_job_with_tasks(self.job_id)
            if job_with_tasks.job.cleaner_id != self.queries.session.user_id:
                logger.warning(f"Job {self.job_id} is not assigned to {self.queries.session.user_id}")
                raise NotFound("Job not found.")
            photos = self.queries.list_photos_for_job(self.job_id)
            loaded = JobProgress(job=job_with_tasks.job, tasks=tuple(job_with_tasks.tasks), photos=tuple(photos))
            return self._apply(lambda _: loaded)

    def check_in(self) -> JobProgress:
        with self._action("check_in"):
            job = self.lifecycle.check_in(self.progress.job)
            return self._apply(lambda p: p.with_job(job))

    def toggle_task(self, task_id: str) -> TaskToggle:
        """
        Flip a task immediately, then persist it.

        On failure only this task is flipped back, so concurrent toggles on
        other tasks keep their state, and the store error is raised.
        """
        with self._action(f"task:{task_id}"):
            with self._lock:
                current = self._progress
                if current is None:
                    raise ValidationError("Job screen is not loaded.")
                task = current.task(task_id)
                if task is None:
                    raise NotFound("Task not found.")
                if self._closed.is_set():
                    return TaskToggle(current, current)
                optimistic = current.with_task_completed(task_id, not task.is_completed)
                self._progress = optimistic

            try:
                saved = self.lifecycle.toggle_task(current.job, task)
            except (StoreError, NotFound, ValidationError) as e:
                logger.warning(f"Task {task_id} update failed, reverting: {e.message}")
                with self._lock:
                    if not self._closed.is_set() and self._progress is not None:
                        self._progress = self._progress.with_task_completed(task_id, task.is_completed)
                raise

            settled = self._apply(lambda p: p.with_task_completed(task_id, saved.is_completed))
            return TaskToggle(optimistic, settled)

    def upload_photo(self, local_uri: str, kind: PhotoKind, signed_url: Optional[bool] = None) -> UploadResult:
        kind = PhotoKind(kind)
        with self._action(f"photo:{kind.value}"):
            result = self.uploader.upload(self.job_id, local_uri, kind, signed_url=signed_url)
            self._apply(lambda p: p.with_photo(result.photo))
            return result

    def complete(self) -> JobProgress:
        with self._action("complete"):
            if any(self.is_in_flight(f"photo:{k.value}") for k in PhotoKind):
                raise ValidationError("Wait for the photo upload to finish.")
            job = self.lifecycle.complete(self.progress)
            return self._apply(lambda p: p.with_job(job))

    def close(self):
        """Detach the screen; late results are discarded."""
        self._closed.set()

    # Views

    def detail(self) -> JobDetailResponse:
        return detail_view(self.progress)

    def summary(self) -> JobSummary:
        """Completion summary for the confirmation screen."""
        progress = self.progress
        job = progress.job
        before = progress.latest_photo(PhotoKind.BEFORE)
        after = progress.latest_photo(PhotoKind.AFTER)
        resolver = self.uploader.resolver
        return JobSummary(
            job_id=job.id,
            address=job.address,
            client_name=self.queries.get_user_name(job.client_id),
            check_in_at=job.check_in_at,
            check_out_at=job.check_out_at,
            duration=duration_label(job),
            tasks_completed=progress.completed_count,
            total_tasks=progress.total_count,
            notes=job.notes,
            before_photo_url=resolver.resolve(before.storage_path) if before else None,
            after_photo_url=resolver.resolve(after.storage_path) if after else None,
        )


def detail_view(progress: JobProgress) -> JobDetailResponse:
    eligibility = evaluate_eligibility(progress)
    return JobDetailResponse(
        job=progress.job,
        tasks=list(progress.tasks),
        completed_count=eligibility.completed_tasks,
        total_count=eligibility.total_tasks,
        has_before=eligibility.has_before,
        has_after=eligibility.has_after,
        eligible=eligibility.eligible,
        duration=duration_label(progress.job),
    )


class ScreenRegistry:
    """Open job screens keyed by (cleaner, job)."""

    def __init__(self):
        self._screens: Dict[Tuple[str, str], JobDetailSession] = {}
        self._lock = threading.Lock()

    def get(self, user_id: str, job_id: str) -> Optional[JobDetailSession]:
        with self._lock:
            return self._screens.get((user_id, job_id))

    def open(self, user_id: str, screen: JobDetailSession) -> JobDetailSession:
        """Register a screen, closing any previous one for the same job."""
        with self._lock:
            previous = self._screens.get((user_id, screen.job_id))
            self._screens[(user_id, screen.job_id)] = screen
        if previous is not None:
            previous.close()
        return screen

    def close(self, user_id: str, job_id: str) -> bool:
        with self._lock:
            screen = self._screens.pop((user_id, job_id), None)
        if screen is None:
            return False
        screen.close()
        return True

    def close_all(self, user_id: str):
        with self._lock:
            keys = [key for key in self._screens if key[0] == user_id]
            screens = [self._screens.pop(key) for key in keys]
        for screen in screens:
            screen.close()
