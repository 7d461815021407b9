"""Evaluation aggregate — one row per (student, observation period) — and its attempts."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column, String, DateTime, Integer, Boolean, JSON, ForeignKey, UniqueConstraint, CheckConstraint,
)
from sqlalchemy.orm import relationship

from practicum.database import Base


class EvaluationAggregate(Base):
    __tablename__ = "evaluations"
    __table_args__ = (
        UniqueConstraint("student_id", "observation_id", name="uq_evaluation_student_observation"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    student_id = Column(String(36), nullable=False, index=True)
    observation_id = Column(String(36), nullable=False, index=True)
    year = Column(Integer, nullable=True)

    # Lesson-plan slot (write-once)
    lesson_plan_uploaded = Column(Boolean, nullable=False, default=False)
    lesson_plan_file_name = Column(String(512), nullable=True)
    lesson_plan_storage_path = Column(String(1024), nullable=True)
    lesson_plan_file_url = Column(String(1024), nullable=True)
    lesson_plan_file_size = Column(Integer, nullable=True)
    lesson_plan_mime_type = Column(String(255), nullable=True)
    lesson_plan_submitted_date = Column(DateTime, nullable=True)

    # Video slot (write-once, year 3 only)
    video_submitted = Column(Boolean, nullable=False, default=False)
    video_url = Column(String(1024), nullable=True)
    video_submitted_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
    last_updated_at = Column(DateTime, nullable=True)

    # Relationships
    attempts = relationship(
        "EvaluationAttempt",
        back_populates="aggregate",
        cascade="all, delete-orphan",
        order_by="EvaluationAttempt.evaluation_num",
    )


class EvaluationAttempt(Base):
    """One numbered classroom-observation evaluation (1..9). Rows are never updated."""

    __tablename__ = "evaluation_attempts"
    __table_args__ = (
        UniqueConstraint("aggregate_id", "evaluation_num", name="uq_attempt_aggregate_num"),
        CheckConstraint("evaluation_num BETWEEN 1 AND 9", name="ck_attempt_num_range"),
        CheckConstraint("week BETWEEN 1 AND 3", name="ck_attempt_week_range"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    aggregate_id = Column(String(36), ForeignKey("evaluations.id", ondelete="CASCADE"), nullable=False, index=True)
    evaluation_num = Column(Integer, nullable=False)
    week = Column(Integer, nullable=False)
    date = Column(String(40), nullable=False)  # ISO string as shown to the student
    answers = Column(JSON, nullable=False)  # {"q1": 1..5, ..., "q26": 1..5}
    submitted = Column(Boolean, nullable=False, default=True)
    submitted_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))

    # Relationships
    aggregate = relationship("EvaluationAggregate", back_populates="attempts")
