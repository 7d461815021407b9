"""Observation period (cohort practicum window) and student enrollment models."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, DateTime, Integer, Boolean, Text, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from practicum.database import Base


class ObservationPeriod(Base):
    __tablename__ = "observations"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), nullable=False)
    academic_year = Column(String(20), nullable=False, index=True)  # Buddhist calendar, e.g. "2568"
    year_level = Column(Integer, nullable=False)  # 1-4
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="active", index=True)  # active | completed
    created_by = Column(String(36), nullable=True)
    created_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime, nullable=True)

    # Relationships
    enrollments = relationship(
        "StudentEnrollment", back_populates="observation", cascade="all, delete-orphan"
    )


class StudentEnrollment(Base):
    __tablename__ = "observation_students"
    __table_args__ = (
        UniqueConstraint("observation_id", "student_id", name="uq_enrollment_observation_student"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    observation_id = Column(String(36), ForeignKey("observations.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="active")  # active | inactive
    # Cached counters, refreshed by the submission services
    evaluations_completed = Column(Integer, nullable=False, default=0)
    lesson_plan_submitted = Column(Boolean, nullable=False, default=False)
    notes = Column(Text, nullable=True)
    enrolled_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime, nullable=True)

    # Relationships
    observation = relationship("ObservationPeriod", back_populates="enrollments")
    student = relationship("User", back_populates="enrollments")
