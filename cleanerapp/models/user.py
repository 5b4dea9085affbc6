"""User model."""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, String, Text

from cleanerapp.database import Base


class User(Base):
    """Application user. Only rows with role 'cleaner' may use the cleaner app."""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(Text)
    email = Column(Text)
    role = Column(Text, nullable=False)  # 'cleaner', 'client', 'admin'
    created_at = Column(DateTime, default=datetime.utcnow)
