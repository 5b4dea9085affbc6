"""Photo model."""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Index, String, Text

from cleanerapp.database import Base


class Photo(Base):
    """Before/after photo evidence for a job. Rows are insert-only."""

    __tablename__ = "photos"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    job_id = Column(String(36), ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False)
    type = Column(Text, nullable=False)  # 'before' or 'after'
    image_url = Column(Text, nullable=False)  # Object storage path, not a URL
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (Index("idx_photos_job_created", "job_id", "created_at"),)
