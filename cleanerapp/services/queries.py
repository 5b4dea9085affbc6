"""Read operations over jobs, tasks, photos and users."""

import logging
from typing import List, Optional

from cleanerapp.errors import NotFound
from cleanerapp.schemas.auth import CleanerProfile, SessionContext
from cleanerapp.schemas.job import OPEN_STATUSES, JobRow, JobWithTasks, TaskRow
from cleanerapp.schemas.photo import PhotoRow
from cleanerapp.services.store import RelationalStore, asc, desc

logger = logging.getLogger(__name__)


class JobQueries:
    """Pure reads for the signed-in cleaner. Store errors surface unchanged."""

    def __init__(self, store: RelationalStore, session: SessionContext):
        """Initialize with a store and the session it acts for."""
        self.store = store
        self.session = session

    def list_upcoming_jobs(self) -> List[JobRow]:
        """Scheduled and in-progress jobs of the current cleaner, soonest first."""
        rows = self.store.select(
            "jobs",
            eq={"cleaner_id": self.session.user_id},
            in_={"status": [s.value for s in OPEN_STATUSES]},
            order=[asc("date"), asc("start_time")],
        )
        logger.info(f"Found {len(rows)} upcoming jobs for {self.session.user_id}")
        return [JobRow.model_validate(r) for r in rows]

    def get_job(self, job_id: str) -> JobRow:
        try:
            row = self.store.select_single("jobs", eq={"id": job_id})
        except NotFound as e:
            raise NotFound("Job not found.") from e
        return JobRow.model_validate(row)

    def get_tasks(self, job_id: str) -> List[TaskRow]:
        rows = self.store.select("tasks", eq={"job_id": job_id}, order=[asc("created_at")])
        return [TaskRow.model_validate(r) for r in rows]

    def get_job_with_tasks(self, job_id: str) -> JobWithTasks:
        """
        Job row and its checklist in creation order.

        Raises:
            NotFound: If the job id does not resolve
        """
        job = self.get_job(job_id)
        return JobWithTasks(job=job, tasks=self.get_tasks(job_id))

    def list_photos_for_job(self, job_id: str) -> List[PhotoRow]:
        """Photo rows for a job, newest first."""
        rows = self.store.select("photos", eq={"job_id": job_id}, order=[desc("created_at")])
        return [PhotoRow.model_validate(r) for r in rows]

    def get_cleaner_profile(self) -> CleanerProfile:
        """The signed-in user's row from the users table."""
        row = self.store.select_single("users", eq={"id": self.session.user_id}, columns="id,name,email,role")
        return CleanerProfile.model_validate(row)

    def get_user_name(self, user_id: Optional[str]) -> Optional[str]:
        """Display name for a user reference, or None when unknown."""
        if not user_id:
            return None
        rows = self.store.select("users", eq={"id": user_id}, columns="id,name")
        return rows[0].get("name") if rows else None
