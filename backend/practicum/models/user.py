"""User model — students, teachers and admins share one table."""

from datetime import datetime, timezone

from sqlalchemy import Column, String, DateTime, Integer, Boolean
from sqlalchemy.orm import relationship

from practicum.database import Base


class User(Base):
    __tablename__ = "users"

    # Student id digits, or T... for teachers / A... for admins
    id = Column(String(36), primary_key=True)
    username = Column(String(100), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), nullable=True)  # student | teacher | admin
    first_name = Column(String(255), nullable=False, default="")
    last_name = Column(String(255), nullable=False, default="")
    email = Column(String(255), nullable=True, index=True)
    phone = Column(String(50), nullable=True)
    major = Column(String(255), nullable=True)
    room = Column(String(50), nullable=True)
    year = Column(Integer, nullable=True)  # 1-4
    avatar_url = Column(String(1024), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_by = Column(String(36), nullable=True)
    created_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime, nullable=True)

    # Relationships
    enrollments = relationship("StudentEnrollment", back_populates="student", cascade="all, delete-orphan")
    sessions = relationship("UserSession", back_populates="user", cascade="all, delete-orphan")

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()
