"""Job and task schemas."""

import datetime as dt
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from cleanerapp.schemas.photo import PhotoKind, PhotoRow


class JobStatus(str, Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


OPEN_STATUSES = (JobStatus.SCHEDULED, JobStatus.IN_PROGRESS)


class JobRow(BaseModel):
    """A row of the jobs table."""

    model_config = ConfigDict(frozen=True)

    id: str
    client_id: Optional[str] = None
    cleaner_id: Optional[str] = None
    status: JobStatus
    date: Optional[dt.date] = None
    start_time: Optional[dt.time] = None
    end_time: Optional[dt.time] = None
    address: Optional[str] = None
    notes: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[dt.datetime] = None
    check_in_at: Optional[dt.datetime] = None
    check_out_at: Optional[dt.datetime] = None


class TaskRow(BaseModel):
    """A row of the tasks table."""

    model_config = ConfigDict(frozen=True)

    id: str
    job_id: str
    description: str
    is_completed: bool = False
    created_at: Optional[dt.datetime] = None


class JobProgress(BaseModel):
    """Immutable in-memory snapshot of one job screen.

    Photos are kept newest first. Every change produces a new snapshot.
    """

    model_config = ConfigDict(frozen=True)

    job: JobRow
    tasks: Tuple[TaskRow, ...] = ()
    photos: Tuple[PhotoRow, ...] = ()

    @property
    def completed_count(self) -> int:
        return sum(1 for t in self.tasks if t.is_completed)

    @property
    def total_count(self) -> int:
        return len(self.tasks)

    def latest_photo(self, kind: PhotoKind) -> Optional[PhotoRow]:
        """Most recent photo of a kind; later timestamps win."""
        candidates = [p for p in self.photos if p.kind == kind]
        if not candidates:
            return None
        # max() keeps the first of equal keys, i.e. the newest-first order
        return max(candidates, key=lambda p: p.created_at.timestamp() if p.created_at else float("-inf"))

    def task(self, task_id: str) -> Optional[TaskRow]:
        return next((t for t in self.tasks if t.id == task_id), None)

    def with_job(self, job: JobRow) -> "JobProgress":
        return self.model_copy(update={"job": job})

    def with_task_completed(self, task_id: str, is_completed: bool) -> "JobProgress":
        tasks = tuple(
            t.model_copy(update={"is_completed": is_completed}) if t.id == task_id else t
            for t in self.tasks
        )
        return self.model_copy(update={"tasks": tasks})

    def with_photo(self, photo: PhotoRow) -> "JobProgress":
        return self.model_copy(update={"photos": (photo,) + self.photos})


class Eligibility(BaseModel):
    """Completion gate for a job."""

    completed_tasks: int
    total_tasks: int
    has_before: bool
    has_after: bool

    @property
    def eligible(self) -> bool:
        return self.completed_tasks == self.total_tasks and self.has_before and self.has_after

    def reasons(self) -> List[str]:
        """Human-readable reasons the job cannot be completed yet."""
        missing = []
        if self.completed_tasks != self.total_tasks:
            missing.append(f"{self.total_tasks - self.completed_tasks} task(s) still open")
        if not self.has_before:
            missing.append("a before photo is required")
        if not self.has_after:
            missing.append("an after photo is required")
        return missing


class JobWithTasks(BaseModel):
    """Job row plus its checklist."""

    job: JobRow
    tasks: List[TaskRow]


class JobDetailResponse(BaseModel):
    """Job screen state returned after every action."""

    job: JobRow
    tasks: List[TaskRow]
    completed_count: int
    total_count: int
    has_before: bool
    has_after: bool
    eligible: bool
    duration: Optional[str] = None


class TaskToggleResponse(BaseModel):
    """Optimistic and settled screen states of a task toggle."""

    optimistic: JobDetailResponse
    settled: JobDetailResponse


class JobSummary(BaseModel):
    """Completion summary shown on the confirmation screen."""

    job_id: str
    address: Optional[str] = None
    client_name: Optional[str] = None
    check_in_at: Optional[dt.datetime] = None
    check_out_at: Optional[dt.datetime] = None
    duration: Optional[str] = None
    tasks_completed: int
    total_tasks: int
    notes: Optional[str] = None
    before_photo_url: Optional[str] = None
    after_photo_url: Optional[str] = None
