"""SQLAlchemy ORM models."""

from cleanerapp.models.user import User
from cleanerapp.models.job import Job, Task
from cleanerapp.models.photo import Photo

__all__ = [
    "User",
    "Job",
    "Task",
    "Photo",
]
