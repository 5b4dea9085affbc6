"""Job and Task models."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Index, String, Text, Time

from cleanerapp.database import Base


class Job(Base):
    """A scheduled cleaning engagement at an address."""

    __tablename__ = "jobs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    client_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"))
    cleaner_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"))
    status = Column(Text, nullable=False, default="scheduled")  # 'scheduled', 'in_progress', 'completed', 'cancelled'
    date = Column(Date)
    start_time = Column(Time)
    end_time = Column(Time)
    address = Column(Text)
    notes = Column(Text)
    created_by = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"))
    created_at = Column(DateTime, default=datetime.utcnow)
    check_in_at = Column(DateTime)
    check_out_at = Column(DateTime)

    __table_args__ = (
        Index("idx_jobs_cleaner_status", "cleaner_id", "status"),
        Index("idx_jobs_date", "date", "start_time"),
    )


class Task(Base):
    """One checklist item within a job."""

    __tablename__ = "tasks"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    job_id = Column(String(36), ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False)
    description = Column(Text, nullable=False)
    is_completed = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (Index("idx_tasks_job_id", "job_id"),)
