"""Mentor teacher model."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, DateTime, Integer, JSON, UniqueConstraint

from practicum.database import Base


class Mentor(Base):
    __tablename__ = "mentors"
    __table_args__ = (
        # One mentor per student per period
        UniqueConstraint("observation_id", "student_id", name="uq_mentor_observation_student"),
        # One student per mentor per period
        UniqueConstraint(
            "observation_id", "school_name", "first_name", "last_name",
            name="uq_mentor_observation_identity",
        ),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    first_name = Column(String(255), nullable=False)
    last_name = Column(String(255), nullable=False)
    position = Column(String(255), nullable=False, default="")
    phone = Column(String(50), nullable=False, default="")
    email = Column(String(255), nullable=False, default="")
    education = Column(JSON, nullable=False, default=list)
    experience = Column(Integer, nullable=False, default=0)  # years
    department = Column(String(255), nullable=False, default="")
    teaching_subjects = Column(JSON, nullable=False, default=list)
    school_id = Column(String(36), nullable=True)
    school_name = Column(String(255), nullable=False)
    observation_id = Column(String(36), nullable=False, index=True)
    student_id = Column(String(36), nullable=False, index=True)
    created_by = Column(String(36), nullable=True)
    created_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
    last_updated_by = Column(String(36), nullable=True)
    last_updated_at = Column(DateTime, nullable=True)
