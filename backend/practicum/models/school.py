"""School model — one row per (school name, observation period), shared by its students."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, DateTime, Integer, JSON, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from practicum.database import Base


class School(Base):
    __tablename__ = "schools"
    __table_args__ = (
        UniqueConstraint("observation_id", "name", name="uq_school_observation_name"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), nullable=False, index=True)
    affiliation = Column(String(255), nullable=False)
    address = Column(String(512), nullable=False, default="")
    district_area = Column(String(255), nullable=False, default="")
    subdistrict = Column(String(255), nullable=False, default="")
    amphoe = Column(String(255), nullable=False)
    province = Column(String(255), nullable=False)
    postcode = Column(String(10), nullable=False)
    grade_levels = Column(JSON, nullable=False, default=list)
    principal = Column(String(255), nullable=False, default="")
    student_count = Column(Integer, nullable=False, default=0)
    teacher_count = Column(Integer, nullable=False, default=0)
    staff_count = Column(Integer, nullable=False, default=0)
    phone = Column(String(50), nullable=False, default="")
    email = Column(String(255), nullable=False, default="")
    observation_id = Column(String(36), ForeignKey("observations.id", ondelete="CASCADE"), nullable=False, index=True)
    created_by = Column(String(36), nullable=False)  # creating student, the only editor
    created_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
    last_updated_by = Column(String(36), nullable=True)
    last_updated_at = Column(DateTime, nullable=True)

    # Relationships
    links = relationship("SchoolStudent", back_populates="school", cascade="all, delete-orphan")


class SchoolStudent(Base):
    """A student's school for one observation period."""

    __tablename__ = "school_students"
    __table_args__ = (
        UniqueConstraint("observation_id", "student_id", name="uq_school_student_observation"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    school_id = Column(String(36), ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
    observation_id = Column(String(36), nullable=False, index=True)
    student_id = Column(String(36), nullable=False, index=True)
    linked_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))

    # Relationships
    school = relationship("School", back_populates="links")
